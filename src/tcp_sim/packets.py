"""Simulated TCP segments and their journey across the wire.

A **packet** here is a snapshot: when an endpoint sends a segment we
freeze its sequence and acknowledgement numbers at that moment, exactly
as a real header would carry them.  Only two things about a packet ever
change afterwards, and only in one direction:

    1. ``animation.progress`` creeps from 0.0 up to 1.0 as the packet
       travels, then stays at 1.0.
    2. ``delivered`` flips from False to True once, and never back.

Packets are frozen dataclasses, so "changing" one means building a new
copy with ``dataclasses.replace``.  Nothing holds a reference to a
packet and mutates it behind your back.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace

from tcp_sim.states import PacketType, Party

FULL_PROGRESS = 1.0

# Header flags carried by each packet type.  Purely informational: the
# engine dispatches on ``Packet.type`` alone.
_FLAG_TABLE: dict[PacketType, tuple[bool, bool, bool, bool]] = {
    #                     syn    ack    fin    rst
    PacketType.SYN: (True, False, False, False),
    PacketType.SYN_ACK: (True, True, False, False),
    PacketType.ACK: (False, True, False, False),
    PacketType.FIN: (False, False, True, False),
    PacketType.FIN_ACK: (False, True, True, False),
    PacketType.RST: (False, False, False, True),
    PacketType.DATA: (False, False, False, False),
}


@dataclass(frozen=True)
class PacketFlags:
    """The SYN/ACK/FIN/RST control bits of a segment header."""

    syn: bool = False
    ack: bool = False
    fin: bool = False
    rst: bool = False

    @classmethod
    def for_type(cls, packet_type: PacketType) -> PacketFlags:
        """Return the flag set a packet of *packet_type* carries."""
        syn, ack, fin, rst = _FLAG_TABLE[packet_type]
        return cls(syn=syn, ack=ack, fin=fin, rst=rst)

    def to_dict(self) -> dict[str, bool]:
        """Return the flags as a dict."""
        return {"syn": self.syn, "ack": self.ack, "fin": self.fin, "rst": self.rst}


@dataclass(frozen=True)
class PacketAnimation:
    """How far along the wire a packet is, and how long the trip takes."""

    duration: float
    progress: float = 0.0


@dataclass(frozen=True)
class Packet:
    """One simulated segment travelling between client and server.

    Attributes:
        id: Unique identity (used by the scheduler's exactly-once guard).
        type: The kind of segment.
        sender: The party that sent it.
        receiver: The party it is addressed to.
        sequence_number: Sender's sequence number when it was created.
        acknowledgment_number: Sender's acknowledgement number when created.
        flags: Header control bits, derived from ``type``.
        animation: Travel progress and fixed trip duration (ms).
        payload: Application bytes as text; only DATA packets carry one.
        delivered: Whether the packet has reached its receiver.
        timestamp: Wall-clock creation time (seconds since the epoch).

    """

    id: str
    type: PacketType
    sender: Party
    receiver: Party
    sequence_number: int
    acknowledgment_number: int
    flags: PacketFlags
    animation: PacketAnimation
    payload: str | None = None
    delivered: bool = False
    timestamp: float = field(default=0.0, compare=False)

    @property
    def progress(self) -> float:
        """Return the travel progress in ``[0.0, 1.0]``."""
        return self.animation.progress

    @property
    def in_flight(self) -> bool:
        """Return True while the packet has not been delivered."""
        return not self.delivered

    def mark_delivered(self) -> Packet:
        """Return a copy flagged as delivered and parked at full progress."""
        if self.delivered:
            return self
        return replace(
            self,
            animation=replace(self.animation, progress=FULL_PROGRESS),
            delivered=True,
        )

    def advance(self, elapsed_ms: float) -> Packet:
        """Return a copy moved *elapsed_ms* further along the wire.

        Progress is clamped at 1.0 and the packet counts as delivered the
        instant it gets there.  Delivered packets do not move.
        """
        if self.delivered:
            return self
        progress = min(self.progress + elapsed_ms / self.animation.duration, FULL_PROGRESS)
        return replace(
            self,
            animation=replace(self.animation, progress=progress),
            delivered=progress >= FULL_PROGRESS,
        )

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-friendly projection for the presentation layer."""
        return {
            "id": self.id,
            "type": str(self.type),
            "from": str(self.sender),
            "to": str(self.receiver),
            "sequenceNumber": self.sequence_number,
            "acknowledgmentNumber": self.acknowledgment_number,
            "flags": self.flags.to_dict(),
            "payload": self.payload,
            "timestamp": self.timestamp,
            "delivered": self.delivered,
            "animation": {
                "progress": self.animation.progress,
                "duration": self.animation.duration,
            },
        }

    def __str__(self) -> str:
        """Format as ``client -> server SYN seq=... ack=...``."""
        status = "delivered" if self.delivered else f"{self.progress:.0%}"
        return (
            f"{self.sender} -> {self.receiver} {self.type} "
            f"seq={self.sequence_number} ack={self.acknowledgment_number} [{status}]"
        )


def create_packet(
    packet_type: PacketType,
    *,
    sender: Party,
    sequence_number: int,
    acknowledgment_number: int,
    duration: float,
    payload: str | None = None,
) -> Packet:
    """Build a fresh, undelivered packet addressed to the sender's peer.

    Args:
        packet_type: The kind of segment.
        sender: The party sending it.
        sequence_number: Sender's current sequence number.
        acknowledgment_number: Sender's current acknowledgement number.
        duration: Trip duration in milliseconds (the then-current speed).
        payload: Optional data, for DATA packets.

    Returns:
        A new Packet at progress 0.0.

    """
    return Packet(
        id=uuid.uuid4().hex,
        type=packet_type,
        sender=sender,
        receiver=sender.peer,
        sequence_number=sequence_number,
        acknowledgment_number=acknowledgment_number,
        flags=PacketFlags.for_type(packet_type),
        animation=PacketAnimation(duration=duration),
        payload=payload,
        timestamp=time.time(),
    )
