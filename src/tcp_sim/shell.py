"""The shell — a text command interpreter for the simulation.

The shell reads a command string, splits it into a name and arguments,
dispatches to a handler, and returns the text to show.  It never prints
and never raises for bad input: a mistyped command comes back as an
error string.

Commands:

    start               three-way handshake (arms the listener if needed)
    send [client|server]
    close [client|server]
    speed [ms|preset]   show or set the packet trip duration
    run <ms>            let virtual time pass
    wait                let time pass until nothing is pending
    state               both endpoints and their counters
    packets             the packet history
    table [STATE]       the transition table (optionally one state's rows)
    log [LEVEL]         the event log
    reset               start over (server listening)
    exit
"""

import math
from collections.abc import Callable
from typing import TypeAlias

from tcp_sim.config import ConfigError, SpeedPreset, parse_speed
from tcp_sim.logging import LogLevel
from tcp_sim.simulation import TcpSimulation
from tcp_sim.states import TRANSITIONS, Party, TcpState, next_transitions

# Type alias for a command handler: takes a list of args, returns output.
_Handler: TypeAlias = Callable[[list[str]], str]

_DEFAULT_LOG_LINES = 20


class Shell:
    """Command interpreter bound to one simulation."""

    EXIT_SENTINEL = "__EXIT__"

    def __init__(self, *, simulation: TcpSimulation | None = None) -> None:
        """Create a shell.

        Args:
            simulation: The simulation to drive; a fresh one by default.

        """
        self._sim = simulation if simulation is not None else TcpSimulation()
        self._commands: dict[str, _Handler] = {
            "help": self._cmd_help,
            "start": self._cmd_start,
            "send": self._cmd_send,
            "close": self._cmd_close,
            "speed": self._cmd_speed,
            "run": self._cmd_run,
            "wait": self._cmd_wait,
            "state": self._cmd_state,
            "packets": self._cmd_packets,
            "table": self._cmd_table,
            "log": self._cmd_log,
            "reset": self._cmd_reset,
            "exit": self._cmd_exit,
        }

    @property
    def simulation(self) -> TcpSimulation:
        """Return the simulation this shell drives."""
        return self._sim

    @property
    def command_names(self) -> list[str]:
        """Return the available command names, sorted."""
        return sorted(self._commands)

    def execute(self, line: str) -> str:
        """Execute one command line and return its output."""
        parts = line.split()
        if not parts:
            return ""
        name, args = parts[0].lower(), parts[1:]
        handler = self._commands.get(name)
        if handler is None:
            return f"Unknown command: {name}. Type 'help' for a list."
        return handler(args)

    # -- Commands ------------------------------------------------------------

    def _cmd_help(self, _args: list[str]) -> str:
        return "Commands: " + ", ".join(self.command_names)

    def _cmd_start(self, _args: list[str]) -> str:
        if not self._sim.can_start_handshake:
            return f"Cannot start a handshake now ({self._status_line()})"
        self._sim.start_handshake()
        return self._status_line()

    def _cmd_send(self, args: list[str]) -> str:
        party = _parse_party(args)
        if party is None:
            return "Usage: send [client|server]"
        if not self._sim.can_send_data:
            return f"Both ends must be ESTABLISHED to send data ({self._status_line()})"
        state = self._sim.send_data(party)
        return f"{party} sent DATA; {party} seq is now {state.seq_of(party)}"

    def _cmd_close(self, args: list[str]) -> str:
        party = _parse_party(args)
        if party is None:
            return "Usage: close [client|server]"
        before = self._sim.state.state_of(party)
        after = self._sim.close_connection(party).state_of(party)
        if before is after:
            return f"close() is not allowed for {party} in {before}"
        return f"{party}: {before} -> {after}"

    def _cmd_speed(self, args: list[str]) -> str:
        if not args:
            presets = ", ".join(f"{p}={p.milliseconds:g}" for p in SpeedPreset)
            return f"Speed: {self._sim.state.animation_speed:g}ms per packet ({presets})"
        try:
            speed = parse_speed(args[0])
        except ConfigError as e:
            return f"Error: {e}"
        self._sim.set_animation_speed(speed)
        return f"Speed set to {speed:g}ms per packet (applies to new packets)"

    def _cmd_run(self, args: list[str]) -> str:
        if len(args) != 1:
            return "Usage: run <ms>"
        try:
            elapsed = float(args[0])
        except ValueError:
            return f"Error: not a number: {args[0]}"
        if not math.isfinite(elapsed):
            return f"Error: not a finite number: {args[0]}"
        if elapsed <= 0:
            return "Error: time must move forward"
        self._sim.advance(elapsed)
        return f"t={self._sim.now_ms:g}ms  {self._status_line()}"

    def _cmd_wait(self, _args: list[str]) -> str:
        self._sim.run_until_idle()
        return f"t={self._sim.now_ms:g}ms  {self._status_line()}"

    def _cmd_state(self, _args: list[str]) -> str:
        state = self._sim.state
        lines = [
            f"client  {state.client_state:<13} seq={state.client_seq:<8} ack={state.client_ack}",
            f"server  {state.server_state:<13} seq={state.server_seq:<8} ack={state.server_ack}",
            f"step={state.current_step} active={state.is_active} "
            f"data_exchanged={state.data_exchanged} packets={len(state.packets)}",
        ]
        return "\n".join(lines)

    def _cmd_packets(self, _args: list[str]) -> str:
        packets = self._sim.state.packets
        if not packets:
            return "No packets."
        return "\n".join(f"{i:>3}. {pkt}" for i, pkt in enumerate(packets, start=1))

    def _cmd_table(self, args: list[str]) -> str:
        rows = TRANSITIONS
        if args:
            try:
                rows = tuple(next_transitions(TcpState(args[0].upper())))
            except ValueError:
                return f"Unknown state: {args[0]}"
        return "\n".join(
            f"{row.from_state:<13} -> {row.to_state:<13} {row.event:<15} {row.description}"
            for row in rows
        )

    def _cmd_log(self, args: list[str]) -> str:
        level = LogLevel.INFO
        if args:
            try:
                level = LogLevel[args[0].upper()]
            except KeyError:
                return f"Unknown level: {args[0]} (choose from {', '.join(lv.name for lv in LogLevel)})"
        entries = self._sim.logger.filter(min_level=level)[-_DEFAULT_LOG_LINES:]
        if not entries:
            return "Log is empty."
        return "\n".join(str(e) for e in entries)

    def _cmd_reset(self, _args: list[str]) -> str:
        self._sim.reset()
        return f"Reset. {self._status_line()}"

    def _cmd_exit(self, _args: list[str]) -> str:
        return self.EXIT_SENTINEL

    # -- Helpers -------------------------------------------------------------

    def _status_line(self) -> str:
        state = self._sim.state
        return f"client={state.client_state} server={state.server_state}"


def _parse_party(args: list[str]) -> Party | None:
    """Return the party named in *args* (client when omitted), or None."""
    if not args:
        return Party.CLIENT
    try:
        return Party(args[0].lower())
    except ValueError:
        return None
