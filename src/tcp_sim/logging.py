"""Connection audit log.

The store, the engine, the scheduler and the simulation facade write
here rather than to stdlib ``logging``: the log is part of the model a
learner inspects, so it stays in memory and is queryable from the shell
(``log [level]``) and the web API (``GET /api/log``).

- **LogLevel**: severity levels ordered for filtering (DEBUG < ERROR).
- **LogEntry**: one record (level, message, source, generation).
- **Logger**: an append-only buffer filtered by level, source or
  generation.

The generation is the store's reset counter.  Entries written before a
reset keep their old generation, so one session's story can be read on
its own even though the buffer is never cleared by a reset.
"""

from dataclasses import dataclass
from enum import IntEnum


class LogLevel(IntEnum):
    """Severity levels for log entries."""

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3


@dataclass(frozen=True)
class LogEntry:
    """A single structured log record.

    Attributes:
        level: The severity of this event.
        message: A human-readable description of what happened.
        source: The component that generated it (e.g. "store").
        generation: The connection generation the entry belongs to.

    """

    level: LogLevel
    message: str
    source: str
    generation: int = 0

    def __str__(self) -> str:
        """Format as ``[LEVEL] source: message``."""
        return f"[{self.level.name}] {self.source}: {self.message}"


class Logger:
    """Append-only log buffer with filtering."""

    def __init__(self) -> None:
        """Create an empty logger."""
        self._entries: list[LogEntry] = []

    @property
    def entries(self) -> list[LogEntry]:
        """Return all log entries in chronological order."""
        return list(self._entries)

    def log(
        self,
        level: LogLevel,
        message: str,
        *,
        source: str,
        generation: int = 0,
    ) -> None:
        """Append a new entry to the log.

        Args:
            level: Severity of the event.
            message: Human-readable event description.
            source: Component that generated the event.
            generation: Connection generation at the time of the event.

        """
        self._entries.append(
            LogEntry(level=level, message=message, source=source, generation=generation)
        )

    def filter(
        self,
        *,
        min_level: LogLevel | None = None,
        source: str | None = None,
        generation: int | None = None,
    ) -> list[LogEntry]:
        """Return entries matching the given criteria.

        Args:
            min_level: If set, only return entries at or above this level.
            source: If set, only return entries from this source.
            generation: If set, only return entries from this connection
                generation.

        Returns:
            A filtered list of log entries.

        """
        result = self._entries
        if min_level is not None:
            result = [e for e in result if e.level >= min_level]
        if source is not None:
            result = [e for e in result if e.source == source]
        if generation is not None:
            result = [e for e in result if e.generation == generation]
        return result if result is not self._entries else list(result)

    def tail(self, count: int) -> list[LogEntry]:
        """Return the last *count* entries (all of them if fewer exist)."""
        if count <= 0:
            return []
        return self._entries[-count:]

    def clear(self) -> None:
        """Remove all log entries."""
        self._entries.clear()
