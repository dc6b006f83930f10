"""Delivery scheduler — turns travel time into protocol events.

The engine only knows that a packet's ``progress`` crept up to 1.0; it
never reacts to that on its own.  The scheduler is the piece that
notices "this packet has arrived" and feeds a ``ReceivePacket`` event
back into the store.  It also runs the two protocol timers the
teardown needs:

    1. **Close-wait delay** — after the passive closer's ACK lands, wait
       a moment, then let it send its own FIN.
    2. **TIME_WAIT (2×MSL)** — after a packet is delivered while an
       endpoint sits in TIME_WAIT, wait, then let it close for good.

Time here is a virtual millisecond clock, advanced explicitly with
``advance(ms)``.  Pending work lives in a heap of timers ordered by due
time, then by the order they were armed, so when two packets are in
flight at once they complete in the order their clocks say, never
re-sorted by protocol logic.

Arrival can be noticed from two places: the frame driver's ``Tick``
pushing a packet to 1.0, and the packet's own one-shot timer at its
trip duration.  Both go through ``deliver()``, which checks and records
the packet id in one step, so each packet's effect happens exactly once.

Every timer remembers the store generation it was armed in.  After a
Reset the generation moves on and old timers are discarded when they
come due.
"""

from __future__ import annotations

import heapq
import itertools
import math
from dataclasses import dataclass, field
from enum import StrEnum

from tcp_sim.config import SimulationConfig
from tcp_sim.connection import ConnectionState
from tcp_sim.events import (
    CloseConnection,
    ContinueServerClose,
    ReceivePacket,
    Reset,
    Tick,
    Timeout,
    describe,
)
from tcp_sim.logging import Logger, LogLevel
from tcp_sim.packets import Packet
from tcp_sim.states import PacketType, Party, TcpState
from tcp_sim.store import ConnectionStore

# Upper bound on timers fired by one run_until_idle() call.
_MAX_TIMER_FIRES = 100_000


class TimerKind(StrEnum):
    """What a pending timer will do when it comes due."""

    FRAME = "frame"
    DELIVERY = "delivery"
    CLOSE_WAIT = "close_wait"
    TIME_WAIT = "time_wait"
    DEFERRED = "deferred"


@dataclass(order=True)
class _Timer:
    """One pending timer on the heap (ordered by due time, then arming order)."""

    due_ms: float
    order: int
    kind: TimerKind = field(compare=False)
    generation: int = field(compare=False)
    event: object = field(default=None, compare=False)
    packet_id: str | None = field(default=None, compare=False)


class DeliveryScheduler:
    """Drive packet travel and protocol timers for one connection store."""

    def __init__(
        self,
        store: ConnectionStore,
        config: SimulationConfig | None = None,
        *,
        logger: Logger | None = None,
    ) -> None:
        """Attach a scheduler to *store*.

        Args:
            store: The store whose state the scheduler watches and feeds.
            config: Timing configuration; defaults to ``SimulationConfig()``.
            logger: Where to record timer activity; defaults to the
                store's logger.

        """
        self._store = store
        self._config = config if config is not None else SimulationConfig()
        self._logger = logger if logger is not None else store.logger
        self._now = 0.0
        self._timers: list[_Timer] = []
        self._order = itertools.count()
        self._processed: set[str] = set()
        self._watched: set[str] = set()
        self._frame_armed = False
        self._unsubscribe = store.subscribe(self._on_change)
        self._observe(store.state)

    # -- Properties ----------------------------------------------------------

    @property
    def now_ms(self) -> float:
        """Return the virtual clock in milliseconds."""
        return self._now

    @property
    def processed(self) -> frozenset[str]:
        """Return the ids of packets whose delivery has been applied."""
        return frozenset(self._processed)

    @property
    def frame_running(self) -> bool:
        """Return True while the frame driver has a tick pending."""
        return self._frame_armed

    @property
    def pending_timers(self) -> int:
        """Return the number of live (current-generation) timers."""
        generation = self._store.generation
        return sum(1 for t in self._timers if t.generation == generation)

    def pending(self, kind: TimerKind) -> int:
        """Return the number of live timers of one kind."""
        generation = self._store.generation
        return sum(1 for t in self._timers if t.kind is kind and t.generation == generation)

    # -- Driving time --------------------------------------------------------

    def advance(self, elapsed_ms: float) -> int:
        """Move the clock forward, firing every timer that comes due.

        Args:
            elapsed_ms: How much virtual time passes.  Non-positive
                and non-finite values fire nothing and leave the clock
                where it is.

        Returns:
            The number of timers fired (stale ones included).

        """
        if not math.isfinite(elapsed_ms) or elapsed_ms <= 0:
            return 0
        target = self._now + elapsed_ms
        fired = 0
        while self._timers and self._timers[0].due_ms <= target:
            timer = heapq.heappop(self._timers)
            self._now = max(self._now, timer.due_ms)
            self._fire(timer)
            fired += 1
        self._now = target
        return fired

    def run_until_idle(self) -> int:
        """Fire timers in order until none remain.

        Returns:
            The number of timers fired.

        """
        fired = 0
        while self._timers:
            if fired >= _MAX_TIMER_FIRES:
                self._log(LogLevel.WARNING, f"Stopped after {fired} timers; still not idle")
                break
            timer = heapq.heappop(self._timers)
            self._now = max(self._now, timer.due_ms)
            self._fire(timer)
            fired += 1
        return fired

    def schedule(self, event: object, delay_ms: float) -> None:
        """Dispatch *event* to the store after *delay_ms* of virtual time."""
        self._arm(TimerKind.DEFERRED, delay_ms, event=event)

    def deliver(self, packet_id: str) -> bool:
        """Apply a packet's arrival, unless it has already been applied.

        Returns:
            True if a ReceivePacket was dispatched, False for a duplicate
            or an id that is not in the history.

        """
        if packet_id in self._processed:
            self._log(LogLevel.DEBUG, f"Packet {packet_id[:8]} already delivered; skipped")
            return False
        packet = self._store.state.packet(packet_id)
        if packet is None:
            return False
        self._processed.add(packet_id)
        self._store.dispatch(ReceivePacket(packet))
        return True

    def close(self) -> None:
        """Detach from the store and drop every pending timer."""
        self._unsubscribe()
        self._timers.clear()
        self._frame_armed = False

    # -- Store notifications -------------------------------------------------

    def _on_change(self, previous: ConnectionState, current: ConnectionState, event: object) -> None:
        """React to one applied event."""
        if isinstance(event, Reset):
            self._processed.clear()
            self._watched.clear()
            self._frame_armed = False
            self._log(LogLevel.INFO, "Reset: pending timers invalidated")
        elif isinstance(event, ReceivePacket):
            self._processed.add(event.packet.id)
            self._arm_protocol_timers(previous, event.packet)
        self._observe(current)

    def _observe(self, state: ConnectionState) -> None:
        """Arm timers for new packets and deliver any that have arrived."""
        for packet in state.packets:
            if packet.delivered or packet.id in self._watched:
                continue
            self._watched.add(packet.id)
            self._arm(TimerKind.DELIVERY, packet.animation.duration, packet_id=packet.id)

        if state.in_flight and not self._frame_armed:
            self._frame_armed = True
            self._arm(TimerKind.FRAME, self._config.frame_interval_ms)

        for packet in state.packets:
            if packet.delivered and packet.id not in self._processed:
                self.deliver(packet.id)

    def _arm_protocol_timers(self, before: ConnectionState, packet: Packet) -> None:
        """Start the close-wait and TIME_WAIT timers a delivery calls for.

        Judged on the state just before the delivery was applied.
        """
        if packet.type == PacketType.ACK:
            if before.server_state is TcpState.CLOSE_WAIT:
                self._arm(
                    TimerKind.CLOSE_WAIT,
                    self._config.close_wait_delay_ms,
                    event=ContinueServerClose(),
                )
            if before.client_state is TcpState.CLOSE_WAIT:
                self._arm(
                    TimerKind.CLOSE_WAIT,
                    self._config.close_wait_delay_ms,
                    event=CloseConnection(Party.CLIENT),
                )
        for party in Party:
            if before.state_of(party) is TcpState.TIME_WAIT:
                self._arm(
                    TimerKind.TIME_WAIT,
                    self._config.time_wait_delay_ms,
                    event=Timeout(party),
                )

    # -- Timers --------------------------------------------------------------

    def _arm(
        self,
        kind: TimerKind,
        delay_ms: float,
        *,
        event: object = None,
        packet_id: str | None = None,
    ) -> None:
        timer = _Timer(
            due_ms=self._now + delay_ms,
            order=next(self._order),
            kind=kind,
            generation=self._store.generation,
            event=event,
            packet_id=packet_id,
        )
        heapq.heappush(self._timers, timer)
        if kind is not TimerKind.FRAME and kind is not TimerKind.DELIVERY:
            self._log(LogLevel.DEBUG, f"Armed {kind} timer: {describe(event)} in {delay_ms:g}ms")

    def _fire(self, timer: _Timer) -> None:
        """Run one due timer, unless it belongs to an earlier generation."""
        if timer.generation != self._store.generation:
            self._log(LogLevel.DEBUG, f"Discarded stale {timer.kind} timer from generation {timer.generation}")
            return

        match timer.kind:
            case TimerKind.FRAME:
                self._frame_armed = False
                if self._store.state.in_flight:
                    self._store.dispatch(Tick(self._config.frame_interval_ms))
            case TimerKind.DELIVERY:
                if timer.packet_id is not None:
                    self.deliver(timer.packet_id)
            case _:
                self._log(LogLevel.DEBUG, f"{timer.kind} timer fired: {describe(timer.event)}")
                self._store.dispatch(timer.event)

    def _log(self, level: LogLevel, message: str) -> None:
        self._logger.log(level, message, source="scheduler", generation=self._store.generation)
