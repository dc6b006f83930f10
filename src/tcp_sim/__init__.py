"""tcp-sim — the TCP connection lifecycle as a runnable model.

Re-exports public symbols so callers can write::

    from tcp_sim import TcpSimulation, Party

The Flask HTTP API lives in ``tcp_sim.web`` and is not imported here.
"""

from tcp_sim.config import ConfigError, SimulationConfig, SpeedPreset, parse_speed
from tcp_sim.connection import ConnectionState, initial_state, reset_state
from tcp_sim.engine import ISN_LIMIT, SAMPLE_PAYLOADS, apply
from tcp_sim.events import (
    CloseConnection,
    ContinueServerClose,
    Event,
    ReceivePacket,
    Reset,
    SendData,
    SetAnimationSpeed,
    StartHandshake,
    Tick,
    Timeout,
)
from tcp_sim.logging import LogEntry, Logger, LogLevel
from tcp_sim.packets import Packet, PacketAnimation, PacketFlags, create_packet
from tcp_sim.scheduler import DeliveryScheduler, TimerKind
from tcp_sim.simulation import TcpSimulation
from tcp_sim.states import (
    TRANSITIONS,
    PacketType,
    Party,
    TcpState,
    TcpStep,
    Transition,
    Trigger,
    find_transition,
    incoming_transitions,
    next_transitions,
    transitions_for,
    trigger_for,
)
from tcp_sim.store import ConnectionStore

__all__ = [
    "ISN_LIMIT",
    "SAMPLE_PAYLOADS",
    "TRANSITIONS",
    "CloseConnection",
    "ConfigError",
    "ConnectionState",
    "ConnectionStore",
    "ContinueServerClose",
    "DeliveryScheduler",
    "Event",
    "LogEntry",
    "LogLevel",
    "Logger",
    "Packet",
    "PacketAnimation",
    "PacketFlags",
    "PacketType",
    "Party",
    "ReceivePacket",
    "Reset",
    "SendData",
    "SetAnimationSpeed",
    "SimulationConfig",
    "SpeedPreset",
    "StartHandshake",
    "TcpSimulation",
    "TcpState",
    "TcpStep",
    "Tick",
    "TimerKind",
    "Timeout",
    "Transition",
    "Trigger",
    "apply",
    "create_packet",
    "find_transition",
    "incoming_transitions",
    "initial_state",
    "next_transitions",
    "parse_speed",
    "reset_state",
    "transitions_for",
    "trigger_for",
]
