"""The dual-party connection state — one immutable snapshot of everything.

A ``ConnectionState`` records both endpoints at once: their TCP states,
their sequence and acknowledgement counters, and the full history of
packets exchanged since the last reset.  It is a frozen dataclass; the
engine never edits one in place, it returns a new one.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from tcp_sim.packets import Packet
from tcp_sim.states import Party, TcpState, TcpStep

DEFAULT_ANIMATION_SPEED = 1000.0  # ms per packet trip


@dataclass(frozen=True)
class ConnectionState:
    """Both ends of the simulated connection plus the packet history."""

    client_state: TcpState = TcpState.CLOSED
    server_state: TcpState = TcpState.CLOSED
    client_seq: int = 0
    server_seq: int = 0
    client_ack: int = 0
    server_ack: int = 0
    packets: tuple[Packet, ...] = ()
    data_exchanged: bool = False
    is_active: bool = False
    current_step: TcpStep = TcpStep.IDLE
    animation_speed: float = DEFAULT_ANIMATION_SPEED

    # -- Per-party accessors -------------------------------------------------

    def state_of(self, party: Party) -> TcpState:
        """Return the TCP state of *party*."""
        return self.client_state if party is Party.CLIENT else self.server_state

    def seq_of(self, party: Party) -> int:
        """Return the next sequence number *party* will send."""
        return self.client_seq if party is Party.CLIENT else self.server_seq

    def ack_of(self, party: Party) -> int:
        """Return the last peer sequence number *party* acknowledged."""
        return self.client_ack if party is Party.CLIENT else self.server_ack

    def with_party(
        self,
        party: Party,
        *,
        state: TcpState | None = None,
        seq: int | None = None,
        ack: int | None = None,
    ) -> ConnectionState:
        """Return a copy with *party*'s state and counters updated.

        Args:
            party: Which endpoint to update.
            state: New TCP state, or None to keep it.
            seq: New sequence number, or None to keep it.
            ack: New acknowledgement number, or None to keep it.

        """
        changes: dict[str, object] = {}
        if state is not None:
            changes[f"{party}_state"] = state
        if seq is not None:
            changes[f"{party}_seq"] = seq
        if ack is not None:
            changes[f"{party}_ack"] = ack
        return replace(self, **changes) if changes else self

    # -- Packet history ------------------------------------------------------

    def packet(self, packet_id: str) -> Packet | None:
        """Return the packet with *packet_id*, or None if not in history."""
        for pkt in self.packets:
            if pkt.id == packet_id:
                return pkt
        return None

    @property
    def in_flight(self) -> list[Packet]:
        """Return the packets that have not been delivered yet."""
        return [pkt for pkt in self.packets if not pkt.delivered]

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-friendly projection for the presentation layer."""
        return {
            "clientState": str(self.client_state),
            "serverState": str(self.server_state),
            "clientSequenceNumber": self.client_seq,
            "serverSequenceNumber": self.server_seq,
            "clientAcknowledgmentNumber": self.client_ack,
            "serverAcknowledgmentNumber": self.server_ack,
            "packets": [pkt.to_dict() for pkt in self.packets],
            "dataExchanged": self.data_exchanged,
            "isActive": self.is_active,
            "currentStep": str(self.current_step),
            "animationSpeed": self.animation_speed,
        }


def initial_state(*, animation_speed: float = DEFAULT_ANIMATION_SPEED) -> ConnectionState:
    """Return the session-start configuration: both endpoints CLOSED."""
    return ConnectionState(animation_speed=animation_speed)


def reset_state(*, animation_speed: float = DEFAULT_ANIMATION_SPEED) -> ConnectionState:
    """Return the post-reset configuration.

    Identical to ``initial_state`` except the server is already in
    LISTEN, so a new handshake can start without a separate listen step.
    """
    return replace(initial_state(animation_speed=animation_speed), server_state=TcpState.LISTEN)
