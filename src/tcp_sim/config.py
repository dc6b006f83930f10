"""Simulation configuration — timings and speeds.

All durations are milliseconds of *simulation* time.  The defaults
reproduce the classic classroom pacing: a packet takes one second to
cross the wire, the passive closer waits one second before sending its
own FIN, and TIME_WAIT lasts two seconds (standing in for 2×MSL, which
on a real host is minutes).

Values can be overridden from the process environment, one variable per
field, named ``TCP_SIM_<FIELD>`` (e.g. ``TCP_SIM_TIME_WAIT_DELAY_MS=500``).
"""

from __future__ import annotations

import math
import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from enum import StrEnum

ENV_PREFIX = "TCP_SIM_"

DEFAULT_ANIMATION_SPEED_MS = 1000.0
DEFAULT_FRAME_INTERVAL_MS = 16.0  # ~60 frames per second
DEFAULT_CLOSE_WAIT_DELAY_MS = 1000.0
DEFAULT_TIME_WAIT_DELAY_MS = 2000.0
DEFAULT_LISTEN_DELAY_MS = 500.0


class ConfigError(ValueError):
    """Raise when a configuration value is missing, malformed, or out of range."""


class SpeedPreset(StrEnum):
    """Named animation speeds offered to the user."""

    SLOW = "slow"
    NORMAL = "normal"
    FAST = "fast"
    VERY_FAST = "very-fast"

    @property
    def milliseconds(self) -> float:
        """Return the per-packet trip duration for this preset."""
        return _PRESET_SPEEDS[self]


_PRESET_SPEEDS: dict[SpeedPreset, float] = {
    SpeedPreset.SLOW: 2000.0,
    SpeedPreset.NORMAL: 1000.0,
    SpeedPreset.FAST: 500.0,
    SpeedPreset.VERY_FAST: 250.0,
}


def parse_speed(text: str) -> float:
    """Parse a speed given as a preset name or a number of milliseconds.

    Args:
        text: ``"slow"``, ``"fast"``, ... or a positive number like ``"750"``.

    Returns:
        The trip duration in milliseconds.

    Raises:
        ConfigError: If *text* is neither a preset nor a positive number.

    """
    cleaned = text.strip().lower()
    try:
        return SpeedPreset(cleaned).milliseconds
    except ValueError:
        pass
    return _positive_ms("speed", cleaned)


@dataclass(frozen=True)
class SimulationConfig:
    """Timing knobs for one simulation session.

    Attributes:
        animation_speed_ms: Trip duration for packets (initial value).
        frame_interval_ms: Animation time advanced per frame tick.
        close_wait_delay_ms: Pause before the passive closer sends FIN.
        time_wait_delay_ms: How long an endpoint lingers in TIME_WAIT.
        listen_delay_ms: Pause between arming the listener and the
            client's connect when a handshake starts from CLOSED.

    """

    animation_speed_ms: float = DEFAULT_ANIMATION_SPEED_MS
    frame_interval_ms: float = DEFAULT_FRAME_INTERVAL_MS
    close_wait_delay_ms: float = DEFAULT_CLOSE_WAIT_DELAY_MS
    time_wait_delay_ms: float = DEFAULT_TIME_WAIT_DELAY_MS
    listen_delay_ms: float = DEFAULT_LISTEN_DELAY_MS

    def __post_init__(self) -> None:
        """Validate that every timing is a finite positive number.

        Raises:
            ConfigError: If any field is not a finite number above zero.

        """
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, int | float):
                msg = f"{f.name} must be a number, got {value!r}"
                raise ConfigError(msg)
            if not math.isfinite(value) or value <= 0:
                msg = f"{f.name} must be positive, got {value}"
                raise ConfigError(msg)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SimulationConfig:
        """Build a config from defaults plus ``TCP_SIM_*`` overrides.

        Args:
            environ: Variables to read; defaults to ``os.environ``.

        Returns:
            The resulting configuration.

        Raises:
            ConfigError: If an override is not a positive number.

        """
        environ = os.environ if environ is None else environ
        overrides: dict[str, float] = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is not None:
                overrides[f.name] = _positive_ms(f.name, raw)
        return replace(cls(), **overrides)

    def to_dict(self) -> dict[str, float]:
        """Return the config as a dict."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _positive_ms(name: str, raw: str) -> float:
    """Parse *raw* as a finite positive number of milliseconds.

    Raises:
        ConfigError: If it is not one.

    """
    try:
        value = float(raw)
    except ValueError:
        msg = f"{name} must be a number of milliseconds, got {raw!r}"
        raise ConfigError(msg) from None
    if not math.isfinite(value) or value <= 0:
        msg = f"{name} must be positive, got {raw!r}"
        raise ConfigError(msg)
    return value
