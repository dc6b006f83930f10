"""Transition engine — apply one event to a connection, get a new one back.

``apply(state, event)`` is a pure function.  It reads the current
``ConnectionState``, decides what the event means for whichever
endpoint it concerns, and returns a fresh state with at most one new
packet appended.  It never schedules anything, never sleeps, and never
raises: a command that makes no sense right now (sending data before
the handshake, closing a socket that is already closed) simply returns
the state it was given.

Every state change is looked up in ``tcp_sim.states.TRANSITIONS``.  If
the table has no row for ``(endpoint state, trigger)`` nothing moves.
The only behaviour not expressed as a row is acknowledging DATA, which
answers a segment without changing either endpoint's state.

Sequence-number rules (the same for both endpoints):

    - SYN and FIN each consume one sequence number.
    - DATA consumes one sequence number per payload character.
    - A pure ACK consumes nothing.
"""

from __future__ import annotations

import math
import random
from dataclasses import replace

from tcp_sim.connection import ConnectionState, reset_state
from tcp_sim.events import (
    CloseConnection,
    ContinueServerClose,
    ReceivePacket,
    Reset,
    SendData,
    SetAnimationSpeed,
    StartHandshake,
    Tick,
    Timeout,
)
from tcp_sim.packets import Packet, create_packet
from tcp_sim.states import (
    PacketType,
    Party,
    TcpState,
    TcpStep,
    Transition,
    Trigger,
    find_transition,
    trigger_for,
)

ISN_LIMIT = 1_000_000  # ISNs are drawn from [0, ISN_LIMIT)

SAMPLE_PAYLOADS: dict[Party, str] = {
    Party.CLIENT: "This is some sample data being sent over the TCP connection",
    Party.SERVER: "This is response data being sent from the server to the client",
}

_DATA_SEND_STEPS: dict[Party, TcpStep] = {
    Party.CLIENT: TcpStep.DATA_TRANSFER_CLIENT,
    Party.SERVER: TcpStep.DATA_TRANSFER_SERVER,
}

# Keyed by the party that sends the acknowledgement.
_DATA_ACK_STEPS: dict[Party, TcpStep] = {
    Party.SERVER: TcpStep.DATA_ACK_SERVER,
    Party.CLIENT: TcpStep.DATA_ACK_CLIENT,
}

_default_rng = random.Random()  # noqa: S311


def apply(
    state: ConnectionState,
    event: object,
    *,
    rng: random.Random | None = None,
) -> ConnectionState:
    """Apply one event and return the resulting connection state.

    Args:
        state: The current connection state (not modified).
        event: One of the event dataclasses in ``tcp_sim.events``.
            Anything else is ignored.
        rng: Source of initial sequence numbers.  Defaults to a
            module-level ``random.Random``.

    Returns:
        The new state, or *state* itself when the event is not allowed.

    """
    rng = rng if rng is not None else _default_rng
    match event:
        case StartHandshake():
            return _start_handshake(state, rng)
        case ReceivePacket(packet=packet):
            return _receive(state, packet, rng)
        case SendData(party=party):
            return _send_data(state, party)
        case CloseConnection(party=party):
            return _close(state, party)
        case ContinueServerClose():
            if state.server_state is not TcpState.CLOSE_WAIT:
                return state
            return _close(state, Party.SERVER)
        case Timeout(party=party):
            return _timeout(state, party)
        case Tick(elapsed_ms=elapsed):
            return _tick(state, elapsed)
        case SetAnimationSpeed(speed_ms=speed):
            return _set_animation_speed(state, speed)
        case Reset():
            return reset_state(animation_speed=state.animation_speed)
        case _:
            return state


# -- Commands ---------------------------------------------------------------


def _start_handshake(state: ConnectionState, rng: random.Random) -> ConnectionState:
    """Open the server's listener first; once it listens, the client connects."""
    if state.server_state is not TcpState.LISTEN:
        # Only CLOSED has a LISTEN row; a live or closing server is left alone.
        row = find_transition(state.server_state, Trigger.LISTEN)
        if row is None:
            return state
        return _enter(state, Party.SERVER, row)

    row = find_transition(state.client_state, Trigger.CONNECT)
    if row is None or row.reply is None:
        return state
    isn = rng.randrange(ISN_LIMIT)
    syn = _emit(state, row.reply, Party.CLIENT, seq=isn, ack=0)
    state = _enter(state, Party.CLIENT, row).with_party(Party.CLIENT, seq=isn + 1)
    return replace(state, packets=(*state.packets, syn), is_active=True)


def _send_data(state: ConnectionState, party: object) -> ConnectionState:
    """Send the party's sample payload; both ends must be ESTABLISHED."""
    sender = _as_party(party)
    if sender is None:
        return state
    if state.client_state is not TcpState.ESTABLISHED:
        return state
    if state.server_state is not TcpState.ESTABLISHED:
        return state

    payload = SAMPLE_PAYLOADS[sender]
    seq = state.seq_of(sender)
    data = _emit(state, PacketType.DATA, sender, seq=seq, ack=state.ack_of(sender), payload=payload)
    state = state.with_party(sender, seq=seq + len(payload))
    return replace(
        state,
        packets=(*state.packets, data),
        data_exchanged=True,
        current_step=_DATA_SEND_STEPS[sender],
    )


def _close(state: ConnectionState, party: object) -> ConnectionState:
    """Take the party's ``close()`` row, sending FIN when the row says so."""
    closer = _as_party(party)
    if closer is None:
        return state
    row = find_transition(state.state_of(closer), Trigger.CLOSE)
    if row is None:
        return state

    if row.reply is None:
        return _enter(state, closer, row)
    seq = state.seq_of(closer)
    fin = _emit(state, row.reply, closer, seq=seq, ack=state.ack_of(closer))
    state = _enter(state, closer, row).with_party(closer, seq=seq + 1)
    return replace(state, packets=(*state.packets, fin))


def _timeout(state: ConnectionState, party: object) -> ConnectionState:
    """Expire the party's TIME_WAIT; the connection is then fully closed."""
    waiter = _as_party(party)
    if waiter is None:
        return state
    row = find_transition(state.state_of(waiter), Trigger.TIMEOUT)
    if row is None:
        return state
    return replace(_enter(state, waiter, row), is_active=False)


def _tick(state: ConnectionState, elapsed_ms: object) -> ConnectionState:
    """Move every in-flight packet along; no protocol effects."""
    elapsed = _positive(elapsed_ms)
    if elapsed is None or not state.in_flight:
        return state
    return replace(state, packets=tuple(pkt.advance(elapsed) for pkt in state.packets))


def _set_animation_speed(state: ConnectionState, speed_ms: object) -> ConnectionState:
    """Change the trip duration for packets created from now on."""
    speed = _positive(speed_ms)
    if speed is None:
        return state
    return replace(state, animation_speed=speed)


# -- Packet delivery --------------------------------------------------------


def _receive(state: ConnectionState, packet: Packet, rng: random.Random) -> ConnectionState:
    """Mark *packet* delivered, then let its receiver react to it."""
    state = replace(
        state,
        packets=tuple(pkt.mark_delivered() if pkt.id == packet.id else pkt for pkt in state.packets),
    )
    receiver = _as_party(packet.receiver)
    if receiver is None:
        return state

    if packet.type == PacketType.DATA:
        return _acknowledge_data(state, receiver)

    trigger = trigger_for(packet.type)
    if trigger is None:
        return state
    row = find_transition(state.state_of(receiver), trigger)
    if row is None:
        return state

    state = _enter(state, receiver, row)
    if trigger is Trigger.RECV_RST:
        return replace(state, is_active=False)
    if row.reply is None:
        return state

    # Every reply to a SYN or FIN acknowledges the one slot it consumed.
    ack = packet.sequence_number + 1
    if row.reply == PacketType.SYN_ACK:
        isn = rng.randrange(ISN_LIMIT)
        reply = _emit(state, row.reply, receiver, seq=isn, ack=ack)
        state = state.with_party(receiver, seq=isn + 1, ack=ack)
    else:
        reply = _emit(state, row.reply, receiver, seq=state.seq_of(receiver), ack=ack)
        state = state.with_party(receiver, ack=ack)
    return replace(state, packets=(*state.packets, reply))


def _acknowledge_data(state: ConnectionState, receiver: Party) -> ConnectionState:
    """Answer a DATA segment with an ACK covering everything the peer sent."""
    if state.state_of(receiver) is not TcpState.ESTABLISHED:
        return state
    ack = state.seq_of(receiver.peer)
    reply = _emit(state, PacketType.ACK, receiver, seq=state.seq_of(receiver), ack=ack)
    state = state.with_party(receiver, ack=ack)
    return replace(
        state,
        packets=(*state.packets, reply),
        current_step=_DATA_ACK_STEPS[receiver],
    )


# -- Helpers ----------------------------------------------------------------


def _enter(state: ConnectionState, party: Party, row: Transition) -> ConnectionState:
    """Move *party* along *row*.

    The row's step label is recorded only when *party* is the end the
    label was written for, so a server-initiated close never shows a
    client step.
    """
    state = state.with_party(party, state=row.to_state)
    if row.step is not None and row.mover in (None, party):
        state = replace(state, current_step=row.step)
    return state


def _emit(
    state: ConnectionState,
    packet_type: PacketType,
    sender: Party,
    *,
    seq: int,
    ack: int,
    payload: str | None = None,
) -> Packet:
    """Create a packet that travels at the connection's current speed."""
    return create_packet(
        packet_type,
        sender=sender,
        sequence_number=seq,
        acknowledgment_number=ack,
        duration=state.animation_speed,
        payload=payload,
    )


def _as_party(value: object) -> Party | None:
    """Coerce *value* to a Party, or None if it names neither end."""
    try:
        return Party(value)
    except ValueError:
        return None


def _positive(value: object) -> float | None:
    """Return *value* as a float if it is a finite number above zero, else None."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return float(value)
