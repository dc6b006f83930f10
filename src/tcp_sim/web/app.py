"""Flask application factory for the tcp-sim HTTP API.

The simulation runs on a virtual clock.  Before answering any request
the app advances that clock by the wall-clock time that passed since
the previous request, so a front end that polls ``/api/state`` sees
packets move in real time.  Requests are served one at a time under a
lock: the simulation has a single writer.

- ``GET /api/state`` — the connection snapshot.
- ``GET /api/transitions`` — the transition table.
- ``POST /api/command`` — run one named command.
- ``POST /api/execute`` — run one shell command line.
- ``GET /api/log`` — recent log entries.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from flask import Flask, Response, jsonify, request

from tcp_sim.config import ConfigError, SimulationConfig, parse_speed
from tcp_sim.logging import LogLevel
from tcp_sim.shell import Shell
from tcp_sim.simulation import TcpSimulation
from tcp_sim.states import TRANSITIONS, Party, TcpState, next_transitions

_HTTP_BAD_REQUEST = 400
_DEFAULT_LOG_LIMIT = 50
_MS_PER_SECOND = 1000.0

COMMANDS = ("start-handshake", "send-data", "close-connection", "reset", "set-animation-speed")


def create_app(
    config: SimulationConfig | None = None,
    *,
    clock: Callable[[], float] = time.monotonic,
) -> Flask:
    """Create and configure the Flask application.

    Args:
        config: Simulation timings; read from the environment if omitted.
        clock: Wall clock in seconds, used to advance the simulation.

    Returns:
        A configured Flask application ready to serve.

    """
    simulation = TcpSimulation(config if config is not None else SimulationConfig.from_env())
    lock = threading.Lock()
    last_seen = clock()

    app = Flask(__name__)
    app.config["SIMULATION"] = simulation
    shell = Shell(simulation=simulation)

    def sync() -> None:
        """Advance the simulation by the wall-clock time since the last request."""
        nonlocal last_seen
        now = clock()
        simulation.advance((now - last_seen) * _MS_PER_SECOND)
        last_seen = now

    @app.route("/api/state")
    def state() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return the current connection snapshot."""
        with lock:
            sync()
            return jsonify(simulation.snapshot())

    @app.route("/api/transitions")
    def transitions() -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Return the transition table, optionally only rows leaving ``?state=``."""
        name = request.args.get("state")
        rows = TRANSITIONS
        if name is not None:
            try:
                rows = tuple(next_transitions(TcpState(name.upper())))
            except ValueError:
                return jsonify({"error": f"Unknown state: {name}"}), _HTTP_BAD_REQUEST
        return jsonify([row.to_dict() for row in rows])

    @app.route("/api/command", methods=["POST"])
    def command() -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Run one command and return the resulting snapshot.

        Expects JSON body: ``{"command": "...", "party": "...", "speed": ...}``
        (``party`` and ``speed`` only where the command takes them).
        """
        data = request.get_json(silent=True)
        if not isinstance(data, dict) or "command" not in data:
            return jsonify({"error": "Missing 'command' field"}), _HTTP_BAD_REQUEST

        name = data["command"]
        if name not in COMMANDS:
            return jsonify({"error": f"Unknown command: {name}"}), _HTTP_BAD_REQUEST

        party = Party.CLIENT
        if "party" in data:
            try:
                party = Party(data["party"])
            except ValueError:
                return jsonify({"error": f"Unknown party: {data['party']}"}), _HTTP_BAD_REQUEST

        with lock:
            sync()
            match name:
                case "start-handshake":
                    simulation.start_handshake()
                case "send-data":
                    simulation.send_data(party)
                case "close-connection":
                    simulation.close_connection(party)
                case "reset":
                    simulation.reset()
                case "set-animation-speed":
                    try:
                        speed = parse_speed(str(data.get("speed", "")))
                    except ConfigError as e:
                        return jsonify({"error": str(e)}), _HTTP_BAD_REQUEST
                    simulation.set_animation_speed(speed)
            return jsonify(simulation.snapshot())

    @app.route("/api/execute", methods=["POST"])
    def execute() -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Run one shell command line and return its output.

        Expects JSON body: ``{"command": "..."}``

        Returns:
            JSON with ``output`` and the resulting ``state`` snapshot.

        """
        data = request.get_json(silent=True)
        if not isinstance(data, dict) or "command" not in data:
            return jsonify({"error": "Missing 'command' field"}), _HTTP_BAD_REQUEST

        with lock:
            sync()
            result = shell.execute(str(data["command"]))
            if result == Shell.EXIT_SENTINEL:
                result = "The web console cannot exit; use 'reset' to start over."
            return jsonify({"output": result, "state": simulation.snapshot()})

    @app.route("/api/log")
    def log() -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Return recent log entries at or above ``?level=`` (default INFO)."""
        level_name = request.args.get("level", "INFO").upper()
        if level_name not in LogLevel.__members__:
            return jsonify({"error": f"Unknown level: {level_name}"}), _HTTP_BAD_REQUEST
        limit = request.args.get("limit", _DEFAULT_LOG_LIMIT, type=int)
        with lock:
            entries = simulation.logger.filter(min_level=LogLevel[level_name])
        return jsonify(
            [
                {
                    "level": e.level.name,
                    "source": e.source,
                    "message": e.message,
                    "generation": e.generation,
                }
                for e in (entries[-limit:] if limit > 0 else [])
            ]
        )

    return app


def main() -> None:
    """Run the API development server.

    This is the ``tcp-sim-web`` console entry point.
    """
    app = create_app()
    app.run(debug=True, port=8080)
