"""The simulation facade — the command/query API a front end talks to.

``TcpSimulation`` wires a ``ConnectionStore`` and a ``DeliveryScheduler``
together and exposes the handful of things a learner can actually do:

    - **Commands**: start the handshake, send data from either side,
      close, reset, change the animation speed.
    - **Time**: ``advance(ms)`` moves the virtual clock;
      ``run_until_idle()`` plays everything out.
    - **Queries**: the current state, which commands make sense right
      now, and a JSON-ready snapshot.

Commands never raise for being "too early" or "too late": a command
that is not allowed in the current state leaves the state unchanged.
"""

from __future__ import annotations

import random

from tcp_sim.config import SimulationConfig
from tcp_sim.connection import ConnectionState, initial_state
from tcp_sim.events import CloseConnection, Reset, SendData, SetAnimationSpeed, StartHandshake
from tcp_sim.logging import Logger, LogLevel
from tcp_sim.scheduler import DeliveryScheduler
from tcp_sim.states import Party, TcpState
from tcp_sim.store import ConnectionStore


class TcpSimulation:
    """One client, one server, and the wire between them."""

    def __init__(
        self,
        config: SimulationConfig | None = None,
        *,
        rng: random.Random | None = None,
        logger: Logger | None = None,
    ) -> None:
        """Create a simulation with both endpoints CLOSED.

        Args:
            config: Timing configuration; defaults to ``SimulationConfig()``.
            rng: Source of initial sequence numbers (seed it for
                reproducible runs).
            logger: Event log shared by every component.

        """
        self._config = config if config is not None else SimulationConfig()
        self._logger = logger if logger is not None else Logger()
        self._store = ConnectionStore(
            initial=initial_state(animation_speed=self._config.animation_speed_ms),
            rng=rng,
            logger=self._logger,
        )
        self._scheduler = DeliveryScheduler(self._store, self._config, logger=self._logger)

    # -- Properties ----------------------------------------------------------

    @property
    def config(self) -> SimulationConfig:
        """Return the timing configuration."""
        return self._config

    @property
    def logger(self) -> Logger:
        """Return the shared event log."""
        return self._logger

    @property
    def store(self) -> ConnectionStore:
        """Return the underlying state store."""
        return self._store

    @property
    def scheduler(self) -> DeliveryScheduler:
        """Return the delivery scheduler."""
        return self._scheduler

    @property
    def state(self) -> ConnectionState:
        """Return the current connection state."""
        return self._store.state

    @property
    def now_ms(self) -> float:
        """Return the virtual clock in milliseconds."""
        return self._scheduler.now_ms

    @property
    def can_start_handshake(self) -> bool:
        """Return True when a handshake can be started (or its listener armed)."""
        state = self.state
        return state.client_state is TcpState.CLOSED or state.server_state is TcpState.LISTEN

    @property
    def can_send_data(self) -> bool:
        """Return True when both endpoints are ESTABLISHED."""
        state = self.state
        return state.client_state is TcpState.ESTABLISHED and state.server_state is TcpState.ESTABLISHED

    @property
    def can_close_connection(self) -> bool:
        """Return True when the client can start an orderly close."""
        return self.can_send_data

    # -- Commands ------------------------------------------------------------

    def start_handshake(self) -> ConnectionState:
        """Start the three-way handshake.

        If the server is not listening yet, this arms its listener and
        schedules the client's connect ``listen_delay_ms`` later, so one
        call is enough to see the whole handshake.
        """
        before = self.state
        after = self._store.dispatch(StartHandshake())
        if before.server_state is not TcpState.LISTEN and after.server_state is TcpState.LISTEN:
            self._scheduler.schedule(StartHandshake(), self._config.listen_delay_ms)
            self._logger.log(
                LogLevel.INFO,
                f"Server listening; client connects in {self._config.listen_delay_ms:g}ms",
                source="simulation",
                generation=self._store.generation,
            )
        return after

    def send_data(self, party: Party = Party.CLIENT) -> ConnectionState:
        """Send one sample DATA segment from *party*."""
        return self._store.dispatch(SendData(party))

    def close_connection(self, party: Party = Party.CLIENT) -> ConnectionState:
        """Call ``close()`` on *party*'s socket (the client by default)."""
        return self._store.dispatch(CloseConnection(party))

    def reset(self) -> ConnectionState:
        """Discard the session; the server comes back already listening."""
        return self._store.dispatch(Reset())

    def set_animation_speed(self, speed_ms: float) -> ConnectionState:
        """Set the trip duration for packets sent from now on."""
        return self._store.dispatch(SetAnimationSpeed(speed_ms))

    # -- Time ----------------------------------------------------------------

    def advance(self, elapsed_ms: float) -> ConnectionState:
        """Let *elapsed_ms* of virtual time pass."""
        self._scheduler.advance(elapsed_ms)
        return self.state

    def run_until_idle(self) -> ConnectionState:
        """Let time pass until no packet is in flight and no timer is pending."""
        self._scheduler.run_until_idle()
        return self.state

    # -- Queries -------------------------------------------------------------

    def snapshot(self) -> dict[str, object]:
        """Return the state plus clock and command availability, JSON-ready."""
        return {
            **self.state.to_dict(),
            "nowMs": self.now_ms,
            "generation": self._store.generation,
            "canStartHandshake": self.can_start_handshake,
            "canSendData": self.can_send_data,
            "canCloseConnection": self.can_close_connection,
        }
