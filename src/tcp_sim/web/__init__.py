"""HTTP API for a browser front end.

This package provides a Flask application that exposes the simulation's
command/query API as JSON, for a presentation layer that draws the
packets and the two state-machine graphs.

The ``create_app`` factory in ``app.py`` creates a simulation and
serves five endpoints:

- ``GET /api/state`` — the current connection snapshot.
- ``GET /api/transitions`` — the canonical transition table.
- ``POST /api/command`` — run one command and return the new snapshot.
- ``POST /api/execute`` — run one shell command line.
- ``GET /api/log`` — recent event-log entries.
"""
