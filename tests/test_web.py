"""Tests for the HTTP API.

The API exposes the simulation over Flask.  Tests use
``pytest.importorskip`` so they are skipped gracefully when Flask is not
installed, and a fake clock so virtual time only moves when a test says.
"""

from __future__ import annotations

from typing import Any

import pytest

flask = pytest.importorskip("flask")

from tcp_sim.config import SimulationConfig  # noqa: E402
from tcp_sim.simulation import TcpSimulation  # noqa: E402
from tcp_sim.states import TRANSITIONS  # noqa: E402
from tcp_sim.web.app import create_app  # noqa: E402

HTTP_OK = 200
HTTP_BAD_REQUEST = 400
LISTEN_ROWS = 2
FAST_MS = 500.0


class _FakeClock:
    """A wall clock that only moves when told to."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _create_client(clock: _FakeClock | None = None) -> Any:
    """Create a test client from a fresh app."""
    app = create_app(SimulationConfig(), clock=clock or _FakeClock())
    app.config["TESTING"] = True
    return app.test_client()


def _command(client: Any, **body: object) -> Any:
    return client.post("/api/command", json=body)


# -- App creation ------------------------------------------------------------


class TestAppCreation:
    """Verify the app factory."""

    def test_create_app_returns_flask(self) -> None:
        """create_app returns a Flask application."""
        app = create_app(SimulationConfig(), clock=_FakeClock())
        assert isinstance(app, flask.Flask)
        assert isinstance(app.config["SIMULATION"], TcpSimulation)

    def test_config_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Without a config, TCP_SIM_* variables are read."""
        monkeypatch.setenv("TCP_SIM_ANIMATION_SPEED_MS", "250")
        app = create_app(clock=_FakeClock())
        response = app.test_client().get("/api/state")
        assert response.get_json()["animationSpeed"] == 250.0  # noqa: PLR2004


# -- State and time ----------------------------------------------------------


class TestStateEndpoint:
    """GET /api/state follows the wall clock."""

    def test_initial_state(self) -> None:
        """A fresh app reports both ends CLOSED."""
        response = _create_client().get("/api/state")
        assert response.status_code == HTTP_OK
        data = response.get_json()
        assert data["clientState"] == "CLOSED"
        assert data["serverState"] == "CLOSED"
        assert data["canStartHandshake"] is True

    def test_state_advances_with_clock(self) -> None:
        """Packets move as wall-clock time passes between requests."""
        clock = _FakeClock()
        client = _create_client(clock)
        _command(client, command="start-handshake")

        clock.now += 0.5
        assert client.get("/api/state").get_json()["clientState"] == "SYN_SENT"

        clock.now += 1.0
        data = client.get("/api/state").get_json()
        assert data["serverState"] == "SYN_RECEIVED"
        assert data["nowMs"] == 1500.0  # noqa: PLR2004

    def test_state_frozen_without_clock(self) -> None:
        """Without wall-clock time nothing travels."""
        client = _create_client()
        client.post("/api/command", json={"command": "reset"})
        _command(client, command="start-handshake")
        data = client.get("/api/state").get_json()
        assert data["packets"][0]["animation"]["progress"] == 0.0


# -- Commands ----------------------------------------------------------------


class TestCommandEndpoint:
    """POST /api/command."""

    def test_start_handshake(self) -> None:
        """start-handshake arms the listener on a cold start."""
        response = _command(_create_client(), command="start-handshake")
        assert response.status_code == HTTP_OK
        assert response.get_json()["serverState"] == "LISTEN"

    def test_reset(self) -> None:
        """reset bumps the generation."""
        data = _command(_create_client(), command="reset").get_json()
        assert data["serverState"] == "LISTEN"
        assert data["generation"] == 1

    def test_set_speed_preset(self) -> None:
        """A preset name is accepted as a speed."""
        data = _command(_create_client(), command="set-animation-speed", speed="fast").get_json()
        assert data["animationSpeed"] == FAST_MS

    def test_disallowed_command_is_not_an_error(self) -> None:
        """A command that makes no sense now leaves the state alone."""
        response = _command(_create_client(), command="send-data", party="server")
        assert response.status_code == HTTP_OK
        assert response.get_json()["packets"] == []

    def test_missing_command(self) -> None:
        """A body without a command is rejected."""
        response = _create_client().post("/api/command", json={})
        assert response.status_code == HTTP_BAD_REQUEST
        assert "Missing" in response.get_json()["error"]

    def test_non_json_body(self) -> None:
        """A body that is not JSON is rejected."""
        response = _create_client().post("/api/command", data="start")
        assert response.status_code == HTTP_BAD_REQUEST

    def test_unknown_command(self) -> None:
        """Unknown command names are rejected."""
        response = _command(_create_client(), command="teleport")
        assert response.status_code == HTTP_BAD_REQUEST

    def test_unknown_party(self) -> None:
        """Unknown parties are rejected."""
        response = _command(_create_client(), command="close-connection", party="router")
        assert response.status_code == HTTP_BAD_REQUEST

    def test_bad_speed(self) -> None:
        """A speed that is not positive is rejected."""
        response = _command(_create_client(), command="set-animation-speed", speed=0)
        assert response.status_code == HTTP_BAD_REQUEST


class TestExecuteEndpoint:
    """POST /api/execute runs shell command lines."""

    def test_state_command(self) -> None:
        """Shell output comes back with the snapshot."""
        data = _create_client().post("/api/execute", json={"command": "state"}).get_json()
        assert "client  CLOSED" in data["output"]
        assert data["state"]["clientState"] == "CLOSED"

    def test_non_finite_run_keeps_clock(self) -> None:
        """A refused run leaves the clock at a finite value."""
        client = _create_client()
        data = client.post("/api/execute", json={"command": "run nan"}).get_json()
        assert data["output"].startswith("Error: not a finite number")
        assert data["state"]["nowMs"] == 0
        assert b"NaN" not in client.get("/api/state").data

    def test_exit_is_refused(self) -> None:
        """The web console stays up."""
        data = _create_client().post("/api/execute", json={"command": "exit"}).get_json()
        assert "cannot exit" in data["output"]

    def test_missing_command(self) -> None:
        """A body without a command is rejected."""
        response = _create_client().post("/api/execute", json={"cmd": "state"})
        assert response.status_code == HTTP_BAD_REQUEST


# -- Reference data ----------------------------------------------------------


class TestTransitionsEndpoint:
    """GET /api/transitions."""

    def test_full_table(self) -> None:
        """Every row is returned."""
        rows = _create_client().get("/api/transitions").get_json()
        assert len(rows) == len(TRANSITIONS)

    def test_rows_for_state(self) -> None:
        """?state= narrows to the rows leaving that state."""
        rows = _create_client().get("/api/transitions?state=listen").get_json()
        assert len(rows) == LISTEN_ROWS
        assert {row["from"] for row in rows} == {"LISTEN"}

    def test_unknown_state(self) -> None:
        """Unknown states are rejected."""
        response = _create_client().get("/api/transitions?state=LIMBO")
        assert response.status_code == HTTP_BAD_REQUEST


class TestLogEndpoint:
    """GET /api/log."""

    def test_log_entries(self) -> None:
        """Commands leave INFO entries behind."""
        client = _create_client()
        _command(client, command="start-handshake")
        entries = client.get("/api/log").get_json()
        assert entries
        assert all(e["level"] != "DEBUG" for e in entries)

    def test_log_limit(self) -> None:
        """?limit= caps the number of entries."""
        client = _create_client()
        _command(client, command="start-handshake")
        assert len(client.get("/api/log?limit=1").get_json()) == 1
        assert client.get("/api/log?limit=0").get_json() == []

    def test_unknown_level(self) -> None:
        """Unknown levels are rejected."""
        response = _create_client().get("/api/log?level=loud")
        assert response.status_code == HTTP_BAD_REQUEST
