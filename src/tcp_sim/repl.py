"""Interactive REPL (Read-Eval-Print Loop) for the TCP simulation.

This module keeps the I/O loop separate from the shell logic.  The
shell is fully testable (returns strings, no I/O); the REPL is the thin
wrapper that connects it to ``stdin``/``stdout``.

The helpers (``format_banner``, ``build_prompt``) are pure and
testable.  ``run()`` is the I/O entrypoint behind the ``tcp-sim``
console script.
"""

import readline
from collections.abc import Callable

from tcp_sim.config import ConfigError, SimulationConfig
from tcp_sim.shell import Shell
from tcp_sim.simulation import TcpSimulation

_BANNER_WIDTH = 44


def format_banner(config: SimulationConfig) -> str:
    """Return the start-up banner, including the active timings."""
    border = "=" * _BANNER_WIDTH
    header = f"\n  {border}\n              tcp-sim v0.1.0\n     TCP connection lifecycle, step by step\n  {border}\n\n"
    body = "\n".join(f"  {name} = {value:g}" for name, value in config.to_dict().items())
    footer = "\n\nType 'start' to begin, 'help' for commands, 'exit' to quit.\n"
    return header + body + footer


def build_prompt(simulation: TcpSimulation) -> str:
    """Return a prompt showing both endpoints, e.g. ``[CLOSED|LISTEN] $ ``."""
    state = simulation.state
    return f"[{state.client_state}|{state.server_state}] $ "


def make_completer(shell: Shell) -> Callable[[str, int], str | None]:
    """Return a readline completer that completes command names.

    readline calls it with ``state`` = 0, 1, 2, ... until it returns None.
    """

    def complete(text: str, state: int) -> str | None:
        matches = [name for name in shell.command_names if name.startswith(text)]
        return matches[state] if state < len(matches) else None

    return complete


def run() -> None:
    """Run the interactive REPL until ``exit``, Ctrl+D, or Ctrl+C."""
    try:
        config = SimulationConfig.from_env()
    except ConfigError as e:
        print(f"Configuration error: {e}")  # noqa: T201
        return

    shell = Shell(simulation=TcpSimulation(config))
    readline.set_completer(make_completer(shell))
    readline.set_completer_delims(" \t")
    readline.parse_and_bind("tab: complete")
    print(format_banner(config))  # noqa: T201

    try:
        while True:
            try:
                command = input(build_prompt(shell.simulation))
            except EOFError:
                # Ctrl+D: graceful exit
                print()  # noqa: T201
                break

            result = shell.execute(command)
            if result == Shell.EXIT_SENTINEL:
                break
            if result:
                print(result)  # noqa: T201

    except KeyboardInterrupt:
        print("\nInterrupted.")  # noqa: T201

    finally:
        print("Bye.")  # noqa: T201
