"""TCP state machine — the canonical table of legal transitions.

Every TCP endpoint walks through the same eleven states.  What moves it
from one state to the next is a **trigger**: either something the
application does (``listen()``, ``connect()``, ``close()``), something
that arrives from the peer (a SYN, an ACK, a FIN), or a timer running
out (TIME_WAIT's 2×MSL wait).

Think of the table below as a railway map.  Each row is one stretch of
track: "from this station, on this signal, go to that station, and
maybe send a packet on the way."  The engine never invents its own
tracks; it only looks rows up here.  That way the map a student reads
and the trains that actually run can never disagree.

The table has nineteen rows, and each ``(from_state, trigger)`` pair
appears at most once, so a lookup is never ambiguous.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

# -- Enums ------------------------------------------------------------------


class TcpState(StrEnum):
    """The 11 states of a TCP connection endpoint."""

    CLOSED = "CLOSED"
    LISTEN = "LISTEN"
    SYN_SENT = "SYN_SENT"
    SYN_RECEIVED = "SYN_RECEIVED"
    ESTABLISHED = "ESTABLISHED"
    FIN_WAIT_1 = "FIN_WAIT_1"
    FIN_WAIT_2 = "FIN_WAIT_2"
    CLOSE_WAIT = "CLOSE_WAIT"
    LAST_ACK = "LAST_ACK"
    CLOSING = "CLOSING"
    TIME_WAIT = "TIME_WAIT"


class Party(StrEnum):
    """The two ends of the simulated connection."""

    CLIENT = "client"
    SERVER = "server"

    @property
    def peer(self) -> Party:
        """Return the party at the other end of the connection."""
        return Party.SERVER if self is Party.CLIENT else Party.CLIENT


class PacketType(StrEnum):
    """The kinds of segment the simulation can put on the wire."""

    SYN = "SYN"
    SYN_ACK = "SYN-ACK"
    ACK = "ACK"
    FIN = "FIN"
    FIN_ACK = "FIN-ACK"
    RST = "RST"
    DATA = "DATA"


class Trigger(StrEnum):
    """What causes a transition: a user call, a received packet, or a timer."""

    LISTEN = "listen"
    CONNECT = "connect"
    CLOSE = "close"
    RECV_SYN = "recv_syn"
    RECV_SYN_ACK = "recv_syn_ack"
    RECV_ACK = "recv_ack"
    RECV_FIN = "recv_fin"
    RECV_FIN_ACK = "recv_fin_ack"
    RECV_RST = "recv_rst"
    TIMEOUT = "timeout"


class TcpStep(StrEnum):
    """Label of the last notable thing that happened, for display only."""

    IDLE = "idle"
    HANDSHAKE_SYN = "handshake_syn"
    HANDSHAKE_SYN_ACK = "handshake_syn_ack"
    HANDSHAKE_ACK = "handshake_ack"
    DATA_TRANSFER = "data_transfer"
    DATA_TRANSFER_CLIENT = "data_transfer_client"
    DATA_TRANSFER_SERVER = "data_transfer_server"
    DATA_ACK_SERVER = "data_ack_server"
    DATA_ACK_CLIENT = "data_ack_client"
    CLOSING_FIN_CLIENT = "closing_fin_client"
    CLOSING_ACK_SERVER = "closing_ack_server"
    CLOSING_FIN_SERVER = "closing_fin_server"
    CLOSING_ACK_CLIENT = "closing_ack_client"
    TIMED_WAIT = "timed_wait"
    CLOSED = "closed"
    RESET = "reset"


# Which trigger a delivered packet fires at its receiver.  DATA is absent:
# data is acknowledged in place and never moves an endpoint between states.
_PACKET_TRIGGERS: dict[PacketType, Trigger] = {
    PacketType.SYN: Trigger.RECV_SYN,
    PacketType.SYN_ACK: Trigger.RECV_SYN_ACK,
    PacketType.ACK: Trigger.RECV_ACK,
    PacketType.FIN: Trigger.RECV_FIN,
    PacketType.FIN_ACK: Trigger.RECV_FIN_ACK,
    PacketType.RST: Trigger.RECV_RST,
}

# Triggers fired by the endpoint's own application rather than by a packet.
_LOCAL_TRIGGERS = frozenset({Trigger.LISTEN, Trigger.CONNECT, Trigger.CLOSE})


# -- Transition table -------------------------------------------------------


@dataclass(frozen=True)
class Transition:
    """One row of the state machine.

    Attributes:
        from_state: The state the endpoint must be in.
        to_state: The state the endpoint moves to.
        trigger: What fires this row.
        event: Short textbook label (e.g. ``"SYN-ACK / ACK"``).
        description: One-line explanation for learners.
        initiator: The party whose action causes the row, if any.
        reply: The packet the endpoint sends while taking the row, if any.
        step: Display label recorded when ``mover`` takes the row, if any.

    """

    from_state: TcpState
    to_state: TcpState
    trigger: Trigger
    event: str
    description: str
    initiator: Party | None = None
    reply: PacketType | None = None
    step: TcpStep | None = None

    @property
    def mover(self) -> Party | None:
        """Return the party whose move the row's labels describe.

        A local call (``listen()``, ``connect()``, ``close()``) moves its
        initiator; a received packet moves the initiator's peer.  Rows
        with no initiator (RST, the TIME_WAIT timeout) describe either end.
        """
        if self.initiator is None:
            return None
        if self.trigger in _LOCAL_TRIGGERS:
            return self.initiator
        return self.initiator.peer

    def to_dict(self) -> dict[str, object]:
        """Return the row as a JSON-friendly dict."""
        return {
            "from": str(self.from_state),
            "to": str(self.to_state),
            "trigger": str(self.trigger),
            "event": self.event,
            "description": self.description,
            "initiator": str(self.initiator) if self.initiator else None,
            "reply": str(self.reply) if self.reply else None,
            "step": str(self.step) if self.step else None,
        }


TRANSITIONS: tuple[Transition, ...] = (
    Transition(
        TcpState.CLOSED,
        TcpState.LISTEN,
        Trigger.LISTEN,
        "listen()",
        "Server socket opened",
        initiator=Party.SERVER,
    ),
    Transition(
        TcpState.CLOSED,
        TcpState.SYN_SENT,
        Trigger.CONNECT,
        "connect()",
        "Client initiates connection",
        initiator=Party.CLIENT,
        reply=PacketType.SYN,
        step=TcpStep.HANDSHAKE_SYN,
    ),
    Transition(
        TcpState.LISTEN,
        TcpState.SYN_RECEIVED,
        Trigger.RECV_SYN,
        "SYN",
        "Server receives SYN, sends SYN-ACK",
        initiator=Party.CLIENT,
        reply=PacketType.SYN_ACK,
        step=TcpStep.HANDSHAKE_SYN_ACK,
    ),
    Transition(
        TcpState.LISTEN,
        TcpState.CLOSED,
        Trigger.CLOSE,
        "close()",
        "Server socket closed",
        initiator=Party.SERVER,
    ),
    Transition(
        TcpState.SYN_SENT,
        TcpState.ESTABLISHED,
        Trigger.RECV_SYN_ACK,
        "SYN-ACK / ACK",
        "Client receives SYN-ACK, sends ACK",
        initiator=Party.SERVER,
        reply=PacketType.ACK,
        step=TcpStep.HANDSHAKE_ACK,
    ),
    Transition(
        TcpState.SYN_SENT,
        TcpState.CLOSED,
        Trigger.RECV_RST,
        "Timeout/RST",
        "Connection failed or reset",
        step=TcpStep.RESET,
    ),
    Transition(
        TcpState.SYN_RECEIVED,
        TcpState.ESTABLISHED,
        Trigger.RECV_ACK,
        "ACK",
        "Server receives ACK",
        initiator=Party.CLIENT,
        step=TcpStep.DATA_TRANSFER,
    ),
    Transition(
        TcpState.SYN_RECEIVED,
        TcpState.FIN_WAIT_1,
        Trigger.CLOSE,
        "close()",
        "Server closes immediately after handshake",
        initiator=Party.SERVER,
        reply=PacketType.FIN,
    ),
    Transition(
        TcpState.SYN_RECEIVED,
        TcpState.CLOSED,
        Trigger.RECV_RST,
        "Timeout/RST",
        "Connection failed or reset",
        step=TcpStep.RESET,
    ),
    Transition(
        TcpState.ESTABLISHED,
        TcpState.FIN_WAIT_1,
        Trigger.CLOSE,
        "close()",
        "Client initiates connection termination",
        initiator=Party.CLIENT,
        reply=PacketType.FIN,
        step=TcpStep.CLOSING_FIN_CLIENT,
    ),
    Transition(
        TcpState.ESTABLISHED,
        TcpState.CLOSE_WAIT,
        Trigger.RECV_FIN,
        "FIN",
        "Server receives termination request",
        initiator=Party.CLIENT,
        reply=PacketType.ACK,
        step=TcpStep.CLOSING_ACK_SERVER,
    ),
    Transition(
        TcpState.FIN_WAIT_1,
        TcpState.FIN_WAIT_2,
        Trigger.RECV_ACK,
        "ACK",
        "Client receives ACK for FIN",
        initiator=Party.SERVER,
        step=TcpStep.CLOSING_FIN_SERVER,
    ),
    Transition(
        TcpState.FIN_WAIT_1,
        TcpState.CLOSING,
        Trigger.RECV_FIN,
        "FIN / ACK",
        "Client receives FIN, sends ACK",
        initiator=Party.SERVER,
        reply=PacketType.ACK,
        step=TcpStep.CLOSING_ACK_CLIENT,
    ),
    Transition(
        TcpState.FIN_WAIT_1,
        TcpState.TIME_WAIT,
        Trigger.RECV_FIN_ACK,
        "FIN-ACK",
        "Client receives FIN+ACK, sends ACK",
        initiator=Party.SERVER,
        reply=PacketType.ACK,
        step=TcpStep.CLOSING_ACK_CLIENT,
    ),
    Transition(
        TcpState.FIN_WAIT_2,
        TcpState.TIME_WAIT,
        Trigger.RECV_FIN,
        "FIN / ACK",
        "Client receives FIN, sends ACK",
        initiator=Party.SERVER,
        reply=PacketType.ACK,
        step=TcpStep.CLOSING_ACK_CLIENT,
    ),
    Transition(
        TcpState.CLOSE_WAIT,
        TcpState.LAST_ACK,
        Trigger.CLOSE,
        "close()",
        "Server sends FIN",
        initiator=Party.SERVER,
        reply=PacketType.FIN,
    ),
    Transition(
        TcpState.LAST_ACK,
        TcpState.CLOSED,
        Trigger.RECV_ACK,
        "ACK",
        "Server receives final ACK",
        initiator=Party.CLIENT,
        step=TcpStep.TIMED_WAIT,
    ),
    Transition(
        TcpState.CLOSING,
        TcpState.TIME_WAIT,
        Trigger.RECV_ACK,
        "ACK",
        "Client receives ACK for FIN",
        initiator=Party.SERVER,
        step=TcpStep.TIMED_WAIT,
    ),
    Transition(
        TcpState.TIME_WAIT,
        TcpState.CLOSED,
        Trigger.TIMEOUT,
        "Timeout (2MSL)",
        "Wait timeout completes",
        step=TcpStep.CLOSED,
    ),
)

_BY_KEY: dict[tuple[TcpState, Trigger], Transition] = {
    (row.from_state, row.trigger): row for row in TRANSITIONS
}


# -- Queries ----------------------------------------------------------------


def find_transition(state: TcpState, trigger: Trigger) -> Transition | None:
    """Return the row taken from *state* on *trigger*, or None if illegal."""
    return _BY_KEY.get((state, trigger))


def trigger_for(packet_type: PacketType) -> Trigger | None:
    """Return the trigger a delivered packet of this type fires.

    Returns:
        The receive trigger, or None for DATA (acknowledged in place).

    """
    return _PACKET_TRIGGERS.get(packet_type)


def next_transitions(state: TcpState) -> list[Transition]:
    """Return every row leaving *state*."""
    return [row for row in TRANSITIONS if row.from_state is state]


def incoming_transitions(state: TcpState) -> list[Transition]:
    """Return every row arriving at *state*."""
    return [row for row in TRANSITIONS if row.to_state is state]


def transitions_for(party: Party) -> list[Transition]:
    """Return the rows a given party's action initiates."""
    return [row for row in TRANSITIONS if row.initiator is party]
