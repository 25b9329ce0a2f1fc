from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING, Any, Callable

from .config import SimulationConfig
from .models import DispatchUnit, Hospital, SimulationSession

if TYPE_CHECKING:
    from .controller import SimulationController

LOGGER = logging.getLogger(__name__)


class SessionPort:
    """Session-scoped access to the controller for subordinate components.

    Components read copies of the session and report back through these
    setters. Once the session is reset the token no longer matches and every
    call becomes a no-op.
    """

    def __init__(self, controller: "SimulationController", token: str) -> None:
        self._controller = controller
        self._token = token

    @property
    def valid(self) -> bool:
        return self._controller._is_current(self._token)

    @property
    def config(self) -> SimulationConfig:
        return self._controller.config

    def view(self) -> SimulationSession:
        session = self._controller._require_session(self._token)
        return dataclasses.replace(session)

    def _forward(self, name: str, *args: Any) -> Any:
        if not self.valid:
            LOGGER.debug("Ignoring %s from stale session %s", name, self._token)
            return None
        return getattr(self._controller, name)(*args)

    def log(self, message: str) -> None:
        self._forward("_append_log", message)

    def after(self, delay: float, callback: Callable[[], None], *, tag: str) -> None:
        self._forward("_schedule", delay, callback, tag, False)

    def every(self, interval: float, callback: Callable[[], None], *, tag: str) -> None:
        self._forward("_schedule", interval, callback, tag, True)

    def cancel_timers(self, tag: str) -> None:
        self._forward("_cancel_timers", tag)

    def timer_active(self, tag: str) -> bool:
        return bool(self._forward("_timer_active", tag))

    def set_countdown(self, remaining: int) -> None:
        self._forward("_set_countdown", remaining)

    def countdown_expired(self) -> None:
        self._forward("_begin_negotiation")

    def select_hospital(self, hospital: Hospital, candidates: tuple[Hospital, ...]) -> None:
        self._forward("_select_hospital", hospital, candidates)

    def decide_dispatch(self, hospital: Hospital, outcome: str) -> None:
        self._forward("_dispatch", hospital, outcome)

    def begin_tracking(self) -> None:
        self._forward("_begin_tracking")

    def set_progress(self, percent: float) -> None:
        self._forward("_set_progress", percent)

    def mark_arrived(self) -> None:
        self._forward("_mark_arrived")

    def complete(self) -> None:
        self._forward("_complete")

    def apply_traffic(self, level: str, delay_minutes: int) -> None:
        self._forward("_apply_traffic", level, delay_minutes)

    def record_reroute_attempt(self) -> None:
        self._forward("_record_reroute_attempt")

    def promote_backup(self, unit: DispatchUnit) -> None:
        self._forward("_promote_backup", unit)
