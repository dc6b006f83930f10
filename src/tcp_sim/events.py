"""Events — the only inputs that can change a connection.

Each user command and each simulated packet arrival becomes one small
frozen dataclass.  The engine applies exactly one event at a time, so
the history of a session is fully described by the sequence of events
fed to it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypeAlias

from tcp_sim.packets import Packet
from tcp_sim.states import Party


@dataclass(frozen=True)
class StartHandshake:
    """Arm the server's listener, or (if already listening) send the client's SYN."""


@dataclass(frozen=True)
class ReceivePacket:
    """A packet reached its receiver."""

    packet: Packet


@dataclass(frozen=True)
class SendData:
    """Send one sample DATA segment from *party*."""

    party: Party = Party.CLIENT


@dataclass(frozen=True)
class CloseConnection:
    """Call ``close()`` on *party*'s socket."""

    party: Party = Party.CLIENT


@dataclass(frozen=True)
class ContinueServerClose:
    """The passive server finishes its side of the close by sending FIN."""


@dataclass(frozen=True)
class Timeout:
    """*party*'s TIME_WAIT (2×MSL) timer expired."""

    party: Party = Party.CLIENT


@dataclass(frozen=True)
class Tick:
    """Animation time passed; move in-flight packets along the wire."""

    elapsed_ms: float


@dataclass(frozen=True)
class SetAnimationSpeed:
    """Change the trip duration used for packets created from now on."""

    speed_ms: float


@dataclass(frozen=True)
class Reset:
    """Throw the session away and start over with the server listening."""


Event: TypeAlias = (
    StartHandshake
    | ReceivePacket
    | SendData
    | CloseConnection
    | ContinueServerClose
    | Timeout
    | Tick
    | SetAnimationSpeed
    | Reset
)


def describe(event: object) -> str:
    """Return a short human-readable label for an event, for the log."""
    match event:
        case ReceivePacket(packet=pkt):
            return f"ReceivePacket({pkt.type} {pkt.sender}->{pkt.receiver})"
        case SendData(party=party) | CloseConnection(party=party) | Timeout(party=party):
            return f"{type(event).__name__}({party})"
        case Tick(elapsed_ms=elapsed):
            return f"Tick({elapsed}ms)"
        case SetAnimationSpeed(speed_ms=speed):
            return f"SetAnimationSpeed({speed}ms)"
        case _:
            return type(event).__name__
