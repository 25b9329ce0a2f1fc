from __future__ import annotations

import logging

from .port import SessionPort

LOGGER = logging.getLogger(__name__)

_TAG = "countdown"


class CountdownTimer:
    def __init__(self, port: SessionPort, *, ticks: int, interval_seconds: float) -> None:
        self._port = port
        self._ticks = ticks
        self._interval = interval_seconds
        self._remaining = ticks

    def start(self) -> None:
        # Clear before start: a countdown never has two tick sources.
        self._port.cancel_timers(_TAG)
        self._remaining = self._ticks
        self._port.set_countdown(self._remaining)
        self._port.every(self._interval, self._tick, tag=_TAG)

    def cancel(self) -> None:
        self._port.cancel_timers(_TAG)
        self._port.log("Emergency cancelled by user")
        LOGGER.info("Countdown cancelled with %s ticks remaining", self._remaining)

    def _tick(self) -> None:
        self._remaining = max(0, self._remaining - 1)
        self._port.set_countdown(self._remaining)
        if self._remaining <= 0:
            self._port.cancel_timers(_TAG)
            self._port.countdown_expired()
