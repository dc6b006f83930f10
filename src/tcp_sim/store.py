"""Connection state store — the one place where the connection changes.

The store owns the single current ``ConnectionState``.  Everything that
wants to change it (user commands, the delivery scheduler, delayed
protocol timers) calls ``dispatch(event)``.  Events are queued and
applied strictly one at a time, in arrival order, through
``engine.apply``.

Subscribers are told about every applied event as
``callback(previous, current, event)``.  A subscriber may dispatch more
events while being notified; those are queued behind the current one,
never applied in a nested call.  That keeps "one event, one transition"
true even when reactions cascade.

The store also keeps the **generation** counter.  A Reset bumps it, so
anything that captured the old generation (a pending timer, say) can
tell that the world it was armed in is gone.
"""

from __future__ import annotations

import random
from collections import deque
from collections.abc import Callable
from typing import TypeAlias

from tcp_sim import engine
from tcp_sim.connection import ConnectionState, initial_state
from tcp_sim.events import ReceivePacket, Reset, Tick, describe
from tcp_sim.logging import Logger, LogLevel
from tcp_sim.states import Party

Subscriber: TypeAlias = Callable[[ConnectionState, ConnectionState, object], None]


class ConnectionStore:
    """Hold the current connection state and serialize every change to it."""

    def __init__(
        self,
        *,
        initial: ConnectionState | None = None,
        rng: random.Random | None = None,
        logger: Logger | None = None,
    ) -> None:
        """Create a store.

        Args:
            initial: Starting state; defaults to both endpoints CLOSED.
            rng: Source of initial sequence numbers, passed to the engine.
            logger: Where to record applied events and transitions.

        """
        self._state = initial if initial is not None else initial_state()
        self._rng = rng
        self._logger = logger if logger is not None else Logger()
        self._queue: deque[object] = deque()
        self._draining = False
        self._subscribers: list[Subscriber] = []
        self._generation = 0
        self._applied = 0

    @property
    def state(self) -> ConnectionState:
        """Return the current (immutable) connection state."""
        return self._state

    @property
    def generation(self) -> int:
        """Return how many resets this store has applied."""
        return self._generation

    @property
    def applied_count(self) -> int:
        """Return the number of events applied so far."""
        return self._applied

    @property
    def logger(self) -> Logger:
        """Return the store's logger."""
        return self._logger

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register *callback* to run after every applied event.

        Returns:
            A function that removes the subscription again.

        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def dispatch(self, event: object) -> ConnectionState:
        """Queue *event* and apply everything queued, one event at a time.

        When called from inside a subscriber the event is only queued;
        the outer call applies it once the current event is finished.

        Returns:
            The state after the queue has drained (or, for a nested
            call, the state as it stands right now).

        """
        self._queue.append(event)
        if self._draining:
            return self._state

        self._draining = True
        try:
            while self._queue:
                self._apply_next(self._queue.popleft())
        finally:
            self._draining = False
        return self._state

    def _apply_next(self, event: object) -> None:
        """Apply one event, log it, and notify subscribers."""
        previous = self._state
        if isinstance(event, Reset):
            self._generation += 1
        current = engine.apply(previous, event, rng=self._rng)
        self._state = current
        self._applied += 1
        self._record(previous, current, event)
        for callback in list(self._subscribers):
            callback(previous, current, event)

    # -- Logging -------------------------------------------------------------

    def _record(self, previous: ConnectionState, current: ConnectionState, event: object) -> None:
        """Write what an event did (or why it did nothing) to the log."""
        label = describe(event)
        if isinstance(event, Tick):
            arrived = len(previous.in_flight) - len(current.in_flight)
            if arrived > 0:
                self._log(LogLevel.DEBUG, f"{label}: {arrived} packet(s) reached the far end", "store")
            return

        if current is previous:
            self._log(
                LogLevel.DEBUG,
                f"Ignored {label} (client={previous.client_state}, server={previous.server_state})",
                "store",
            )
            return

        self._log(LogLevel.INFO, f"Applied {label}", "store")
        for party in Party:
            before, after = previous.state_of(party), current.state_of(party)
            if before is not after:
                self._log(LogLevel.INFO, f"{party}: {before} -> {after}", "engine")
        for packet in current.packets[len(previous.packets) :]:
            self._log(LogLevel.INFO, f"Sent {packet}", "engine")

        if isinstance(event, ReceivePacket) and _unanswered(previous, current):
            self._log(
                LogLevel.DEBUG,
                f"No rule for {event.packet.type} at {event.packet.receiver} "
                f"in {previous.state_of(event.packet.receiver)}; packet absorbed",
                "engine",
            )

    def _log(self, level: LogLevel, message: str, source: str) -> None:
        self._logger.log(level, message, source=source, generation=self._generation)


def _unanswered(previous: ConnectionState, current: ConnectionState) -> bool:
    """Return True when a delivery changed nothing but the delivered flag."""
    return (
        previous.client_state is current.client_state
        and previous.server_state is current.server_state
        and len(previous.packets) == len(current.packets)
    )
