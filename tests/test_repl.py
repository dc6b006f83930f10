"""Tests for the REPL helpers.

The REPL is the interactive terminal interface.  Since it involves I/O,
we test the pure helpers it is built from rather than the loop itself.
"""

from tcp_sim.config import SimulationConfig
from tcp_sim.repl import build_prompt, format_banner, make_completer
from tcp_sim.shell import Shell
from tcp_sim.simulation import TcpSimulation


class TestREPLHelpers:
    """Verify REPL helper functions."""

    def test_banner_names_program(self) -> None:
        """The banner names the program."""
        assert "tcp-sim" in format_banner(SimulationConfig())

    def test_banner_shows_timings(self) -> None:
        """The banner lists the active timings."""
        banner = format_banner(SimulationConfig(time_wait_delay_ms=500.0))
        assert "time_wait_delay_ms = 500" in banner
        assert "animation_speed_ms = 1000" in banner

    def test_prompt_shows_both_states(self) -> None:
        """The prompt shows client and server states."""
        assert build_prompt(TcpSimulation()) == "[CLOSED|CLOSED] $ "

    def test_prompt_follows_state(self) -> None:
        """The prompt changes as the connection does."""
        sim = TcpSimulation()
        sim.reset()
        assert build_prompt(sim) == "[CLOSED|LISTEN] $ "


class TestCompleter:
    """Verify tab completion of command names."""

    def test_completes_prefix(self) -> None:
        """Matches come back one per state, in sorted order."""
        complete = make_completer(Shell())
        matches = []
        state = 0
        while (match := complete("s", state)) is not None:
            matches.append(match)
            state += 1
        assert matches == ["send", "speed", "start", "state"]

    def test_no_match(self) -> None:
        """An unknown prefix completes to nothing."""
        assert make_completer(Shell())("zz", 0) is None
