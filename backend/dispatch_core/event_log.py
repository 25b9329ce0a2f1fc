from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from .models import EventLogEntry
from .time_utils import utc_now

LOGGER = logging.getLogger(__name__)


class EventLog:
    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self._entries: list[EventLogEntry] = []

    def append(self, message: str) -> EventLogEntry | None:
        # Overlapping tick callbacks can report the same event twice in a row.
        if self._entries and self._entries[-1].message == message:
            LOGGER.debug("Suppressed duplicate log entry: %s", message)
            return None
        entry = EventLogEntry(timestamp=self._clock(), message=message)
        self._entries.append(entry)
        return entry

    def messages(self) -> list[str]:
        return [entry.message for entry in self._entries]

    def tail(self, limit: int) -> tuple[EventLogEntry, ...]:
        if limit <= 0:
            return ()
        return tuple(self._entries[-limit:])

    def __len__(self) -> int:
        return len(self._entries)
