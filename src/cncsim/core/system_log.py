"""SystemLog — the simulated controller's ``system.log`` ring buffer.

Entries are what the dashboard shows as device log lines (startup reasons,
watchdog probes, SD faults).  Each entry is mirrored to the stdlib logger
and, when a bus is attached, published as ``sim.log.added``.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterable

from cncsim.core import events
from cncsim.core.event_bus import EventBus
from cncsim.core.models.state import LogEntry, LogLevel

_log = logging.getLogger(__name__)

_STDLIB_LEVELS: dict[LogLevel, int] = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}

MAX_LOG_ENTRIES = 200


class SystemLog:
    """Bounded, append-only log of :class:`LogEntry` records.

    Args:
        event_bus: Optional bus to publish new entries on.
        max_entries: Oldest entries are discarded beyond this count.
    """

    def __init__(self, event_bus: EventBus | None = None, max_entries: int = MAX_LOG_ENTRIES) -> None:
        self._bus = event_bus
        self._entries: deque[LogEntry] = deque(maxlen=max_entries)

    @property
    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def add(self, level: LogLevel, message: str) -> LogEntry:
        entry = LogEntry(level=level, message=message)
        self._entries.append(entry)
        _log.log(_STDLIB_LEVELS[level], message)
        if self._bus is not None:
            self._bus.publish_nowait(
                events.LOG_ADDED, {"level": level.value, "message": message}
            )
        return entry

    def debug(self, message: str) -> LogEntry:
        return self.add(LogLevel.DEBUG, message)

    def info(self, message: str) -> LogEntry:
        return self.add(LogLevel.INFO, message)

    def warn(self, message: str) -> LogEntry:
        return self.add(LogLevel.WARN, message)

    def error(self, message: str) -> LogEntry:
        return self.add(LogLevel.ERROR, message)

    def clear(self) -> None:
        self._entries.clear()

    def clear_levels(self, levels: Iterable[LogLevel]) -> None:
        """Drop every entry whose level is in *levels*."""
        drop = set(levels)
        kept = [e for e in self._entries if e.level not in drop]
        self._entries.clear()
        self._entries.extend(kept)
