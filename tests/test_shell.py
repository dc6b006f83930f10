"""Tests for the shell module.

The shell is the command interpreter: it parses user input, dispatches
to built-in commands, and returns string output.  It never prints and
never raises for bad input.
"""

import pytest

from tcp_sim.config import SimulationConfig
from tcp_sim.shell import Shell
from tcp_sim.simulation import TcpSimulation
from tcp_sim.states import TRANSITIONS

FIN_WAIT_1_ROWS = 3

_NO_FRAMES = SimulationConfig(frame_interval_ms=1_000_000.0)


def _established_shell() -> Shell:
    """Create a shell whose connection has finished its handshake."""
    shell = Shell(simulation=TcpSimulation(_NO_FRAMES))
    shell.execute("start")
    shell.execute("run 3500")
    return shell


class TestShellExecute:
    """Verify command parsing and dispatch."""

    def test_empty_line(self) -> None:
        """Blank input produces no output."""
        assert Shell().execute("   ") == ""

    def test_unknown_command(self) -> None:
        """Unknown commands are reported, not raised."""
        assert Shell().execute("ping") == "Unknown command: ping. Type 'help' for a list."

    def test_commands_are_case_insensitive(self) -> None:
        """HELP works as well as help."""
        assert Shell().execute("HELP").startswith("Commands:")

    def test_help_lists_every_command(self) -> None:
        """Help names each command."""
        shell = Shell()
        result = shell.execute("help")
        for name in shell.command_names:
            assert name in result

    def test_exit_returns_sentinel(self) -> None:
        """The exit command returns the EXIT sentinel."""
        assert Shell().execute("exit") == Shell.EXIT_SENTINEL


class TestConnectionCommands:
    """start, send, close, reset."""

    def test_start_from_cold(self) -> None:
        """The first start arms the listener."""
        assert Shell().execute("start") == "client=CLOSED server=LISTEN"

    def test_start_then_wait(self) -> None:
        """Waiting plays the handshake out."""
        shell = Shell()
        shell.execute("start")
        assert shell.execute("wait").endswith("client=ESTABLISHED server=ESTABLISHED")

    def test_start_refused_when_established(self) -> None:
        """No second handshake on a live connection."""
        assert _established_shell().execute("start").startswith("Cannot start a handshake now")

    def test_send_requires_connection(self) -> None:
        """Data before the handshake is refused with a reason."""
        assert Shell().execute("send").startswith("Both ends must be ESTABLISHED")

    def test_send_from_server(self) -> None:
        """send server reports the server's new sequence number."""
        shell = _established_shell()
        result = shell.execute("send server")
        seq = shell.simulation.state.server_seq
        assert result == f"server sent DATA; server seq is now {seq}"

    def test_send_bad_party(self) -> None:
        """An unknown party gives usage."""
        assert Shell().execute("send router") == "Usage: send [client|server]"

    def test_close(self) -> None:
        """close reports the transition it caused."""
        assert _established_shell().execute("close") == "client: ESTABLISHED -> FIN_WAIT_1"

    def test_close_not_allowed(self) -> None:
        """Closing a closed socket is explained."""
        assert Shell().execute("close") == "close() is not allowed for client in CLOSED"

    def test_close_bad_party(self) -> None:
        """An unknown party gives usage."""
        assert Shell().execute("close both") == "Usage: close [client|server]"

    def test_reset(self) -> None:
        """reset leaves the server listening."""
        shell = _established_shell()
        assert shell.execute("reset") == "Reset. client=CLOSED server=LISTEN"


class TestTimeCommands:
    """run, wait, speed."""

    def test_run_moves_clock(self) -> None:
        """run advances virtual time and shows the status."""
        shell = Shell(simulation=TcpSimulation(_NO_FRAMES))
        shell.execute("start")
        assert shell.execute("run 500") == "t=500ms  client=SYN_SENT server=LISTEN"

    @pytest.mark.parametrize(
        ("line", "expected"),
        [
            ("run", "Usage: run <ms>"),
            ("run 1 2", "Usage: run <ms>"),
            ("run soon", "Error: not a number: soon"),
            ("run -5", "Error: time must move forward"),
            ("run nan", "Error: not a finite number: nan"),
            ("run inf", "Error: not a finite number: inf"),
        ],
    )
    def test_run_errors(self, line: str, expected: str) -> None:
        """Bad durations are reported."""
        assert Shell().execute(line) == expected

    def test_bad_run_leaves_clock_usable(self) -> None:
        """After a refused run, time still moves the handshake along."""
        shell = Shell(simulation=TcpSimulation(_NO_FRAMES))
        shell.execute("run nan")
        shell.execute("start")
        assert shell.execute("run 500") == "t=500ms  client=SYN_SENT server=LISTEN"

    def test_speed_shows_presets(self) -> None:
        """speed with no argument shows the current speed and presets."""
        result = Shell().execute("speed")
        assert result.startswith("Speed: 1000ms per packet")
        assert "very-fast=250" in result

    def test_speed_preset(self) -> None:
        """A preset name sets the speed."""
        shell = Shell()
        assert shell.execute("speed fast") == "Speed set to 500ms per packet (applies to new packets)"
        assert shell.simulation.state.animation_speed == 500.0  # noqa: PLR2004

    def test_speed_error(self) -> None:
        """A bad speed is reported."""
        assert Shell().execute("speed warp").startswith("Error:")


class TestInspectionCommands:
    """state, packets, table."""

    def test_state(self) -> None:
        """state shows both endpoints."""
        result = Shell().execute("state")
        assert "client  CLOSED" in result
        assert "server  CLOSED" in result
        assert "step=idle" in result

    def test_packets_empty(self) -> None:
        """No packets before the handshake."""
        assert Shell().execute("packets") == "No packets."

    def test_packets_listed(self) -> None:
        """Packets are numbered in send order."""
        result = _established_shell().execute("packets")
        lines = result.splitlines()
        assert lines[0].startswith("  1. client -> server SYN")
        assert "server -> client SYN-ACK" in lines[1]

    def test_table(self) -> None:
        """table prints every row."""
        assert len(Shell().execute("table").splitlines()) == len(TRANSITIONS)

    def test_table_for_state(self) -> None:
        """table STATE prints only that state's rows."""
        assert len(Shell().execute("table fin_wait_1").splitlines()) == FIN_WAIT_1_ROWS

    def test_table_unknown_state(self) -> None:
        """An unknown state is reported."""
        assert Shell().execute("table LIMBO") == "Unknown state: LIMBO"
