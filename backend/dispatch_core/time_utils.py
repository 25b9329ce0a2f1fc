from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SchedulerClock:
    """Wall-clock timestamps that advance with a scheduler's monotonic time.

    Under a virtual-time scheduler the timestamps move only when the scheduler
    is advanced, so durations derived from them are deterministic.
    """

    def __init__(self, monotonic: Callable[[], float], anchor: datetime | None = None) -> None:
        self._monotonic = monotonic
        self._anchor = anchor or utc_now()
        self._anchor_mono = monotonic()

    def now(self) -> datetime:
        return self._anchor + timedelta(seconds=self._monotonic() - self._anchor_mono)
