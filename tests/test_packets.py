"""Tests for simulated segments and their travel across the wire."""

import pytest

from tcp_sim.packets import FULL_PROGRESS, Packet, PacketFlags, create_packet
from tcp_sim.states import PacketType, Party

TRIP_MS = 1000.0
HALF_TRIP_MS = 500.0
CLIENT_SEQ = 42
CLIENT_ACK = 7


def _syn() -> Packet:
    return create_packet(
        PacketType.SYN,
        sender=Party.CLIENT,
        sequence_number=CLIENT_SEQ,
        acknowledgment_number=CLIENT_ACK,
        duration=TRIP_MS,
    )


class TestCreatePacket:
    """Fresh packets start at the sender, addressed to the peer."""

    def test_addressed_to_peer(self) -> None:
        """The receiver is always the sender's peer."""
        pkt = _syn()
        assert pkt.sender is Party.CLIENT
        assert pkt.receiver is Party.SERVER

    def test_snapshots_counters(self) -> None:
        """Sequence and acknowledgement numbers are frozen at creation."""
        pkt = _syn()
        assert pkt.sequence_number == CLIENT_SEQ
        assert pkt.acknowledgment_number == CLIENT_ACK

    def test_starts_undelivered(self) -> None:
        """A new packet sits at progress 0.0 and is in flight."""
        pkt = _syn()
        assert pkt.progress == 0.0
        assert not pkt.delivered
        assert pkt.in_flight

    def test_ids_are_unique(self) -> None:
        """Two packets never share an id."""
        assert _syn().id != _syn().id

    def test_data_carries_payload(self) -> None:
        """DATA packets keep their payload text."""
        pkt = create_packet(
            PacketType.DATA,
            sender=Party.SERVER,
            sequence_number=1,
            acknowledgment_number=1,
            duration=TRIP_MS,
            payload="hello",
        )
        assert pkt.payload == "hello"
        assert pkt.receiver is Party.CLIENT


class TestFlags:
    """Header flags follow the packet type."""

    @pytest.mark.parametrize(
        ("packet_type", "expected"),
        [
            (PacketType.SYN, PacketFlags(syn=True)),
            (PacketType.SYN_ACK, PacketFlags(syn=True, ack=True)),
            (PacketType.ACK, PacketFlags(ack=True)),
            (PacketType.FIN, PacketFlags(fin=True)),
            (PacketType.FIN_ACK, PacketFlags(ack=True, fin=True)),
            (PacketType.RST, PacketFlags(rst=True)),
            (PacketType.DATA, PacketFlags()),
        ],
    )
    def test_for_type(self, packet_type: PacketType, expected: PacketFlags) -> None:
        """Each type maps to its textbook flag set."""
        assert PacketFlags.for_type(packet_type) == expected


class TestTravel:
    """Progress only ever moves forward, and delivery is one-way."""

    def test_advance_moves_progress(self) -> None:
        """Half the trip time moves the packet halfway."""
        pkt = _syn().advance(HALF_TRIP_MS)
        assert pkt.progress == pytest.approx(0.5)
        assert not pkt.delivered

    def test_advance_clamps_and_delivers(self) -> None:
        """Overshooting parks the packet at 1.0, delivered."""
        pkt = _syn().advance(TRIP_MS * 3)
        assert pkt.progress == FULL_PROGRESS
        assert pkt.delivered

    def test_delivered_packet_does_not_move(self) -> None:
        """Advancing a delivered packet returns it unchanged."""
        pkt = _syn().mark_delivered()
        assert pkt.advance(HALF_TRIP_MS) is pkt

    def test_mark_delivered(self) -> None:
        """Marking delivered sets progress to 1.0."""
        pkt = _syn().mark_delivered()
        assert pkt.delivered
        assert pkt.progress == FULL_PROGRESS

    def test_mark_delivered_is_idempotent(self) -> None:
        """Marking twice returns the same object."""
        pkt = _syn().mark_delivered()
        assert pkt.mark_delivered() is pkt

    def test_original_untouched(self) -> None:
        """Advancing returns a copy; the original keeps its progress."""
        pkt = _syn()
        pkt.advance(HALF_TRIP_MS)
        assert pkt.progress == 0.0


class TestPresentation:
    """Packets render for the log and for JSON."""

    def test_to_dict_keys(self) -> None:
        """The dict uses the front end's camelCase names."""
        data = _syn().to_dict()
        assert data["type"] == "SYN"
        assert data["from"] == "client"
        assert data["to"] == "server"
        assert data["sequenceNumber"] == CLIENT_SEQ
        assert data["acknowledgmentNumber"] == CLIENT_ACK
        assert data["animation"] == {"progress": 0.0, "duration": TRIP_MS}

    def test_str(self) -> None:
        """str() shows direction, type, and counters."""
        text = str(_syn())
        assert "client -> server SYN" in text
        assert f"seq={CLIENT_SEQ}" in text
        assert "[0%]" in text
