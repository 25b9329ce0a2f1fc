from __future__ import annotations

import dataclasses
import logging
import uuid
from datetime import datetime
from typing import Callable

from .config import SimulationConfig
from .countdown import CountdownTimer
from .event_log import EventLog
from .interfaces import GeolocationProvider, HospitalDirectory, RoutingProvider
from .models import (
    CANCELLABLE_PHASES,
    TRAFFIC_LEVELS,
    URGENCY_LEVELS,
    DispatchUnit,
    Hospital,
    SimulationSession,
    SimulationSnapshot,
    SimulationStatistics,
)
from .negotiator import DispatchNegotiator, NoHospitalsAvailableError
from .outcomes import OutcomeSampler
from .port import SessionPort
from .rerouting import ReroutingEngine
from .scheduler import Scheduler, TimerGroup
from .statistics import StatisticsRecorder
from .time_utils import SchedulerClock
from .tracker import AmbulanceTracker, route_progress

LOGGER = logging.getLogger(__name__)

Listener = Callable[[SimulationSnapshot], None]

PRIMARY_UNIT_ID = "AMB-001"


class PhaseTransitionError(Exception):
    pass


class StaleSessionError(Exception):
    pass


class SimulationController:
    """Owns the dispatch session and its phase machine.

    Presentation code may only call ``trigger``, ``cancel`` and ``acknowledge``
    and observe state through ``subscribe`` / ``snapshot``. Subordinate
    components reach the session through a token-bound ``SessionPort``.
    """

    _TRANSITIONS = {
        "idle": {"countdown"},
        "countdown": {"calling"},
        "calling": {"dispatch"},
        "dispatch": {"tracking"},
        "tracking": {"complete"},
        "complete": set(),
    }

    def __init__(
        self,
        *,
        directory: HospitalDirectory,
        scheduler: Scheduler,
        config: SimulationConfig | None = None,
        sampler: OutcomeSampler | None = None,
        routing: RoutingProvider | None = None,
        geolocation: GeolocationProvider | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config or SimulationConfig()
        self._scheduler = scheduler
        self._directory = directory
        self._routing = routing
        self._geolocation = geolocation
        self._sampler = sampler or OutcomeSampler.seeded(self.config.seed)
        self._clock = clock or SchedulerClock(scheduler.now).now
        self._listeners: list[Listener] = []

        self._session: SimulationSession | None = None
        self._log = EventLog(self._clock)
        self._stats: StatisticsRecorder | None = None
        self._timers: TimerGroup | None = None
        self._countdown: CountdownTimer | None = None
        self._negotiator: DispatchNegotiator | None = None
        self._tracker: AmbulanceTracker | None = None
        self._rerouter: ReroutingEngine | None = None

    @property
    def phase(self) -> str:
        return self._session.phase if self._session else "idle"

    @property
    def event_log(self) -> EventLog:
        return self._log

    @property
    def statistics(self) -> SimulationStatistics | None:
        return self._stats.result if self._stats else None

    def pending_timers(self) -> int:
        return self._timers.active_count() if self._timers else 0

    # Commands -----------------------------------------------------------

    def trigger(self, urgency: str) -> bool:
        if urgency not in URGENCY_LEVELS:
            raise ValueError(f"Unknown urgency level: {urgency}")
        if self._session is not None:
            LOGGER.info("Emergency already in progress (phase=%s); ignoring trigger", self._session.phase)
            return False

        token = uuid.uuid4().hex
        started_at = self._clock()
        session = SimulationSession(
            id=uuid.uuid4().hex,
            token=token,
            urgency=urgency,
            speed_multiplier=self.config.speed_multiplier,
            started_at=started_at,
        )
        self._session = session
        self._log = EventLog(self._clock)
        self._stats = StatisticsRecorder(self.config.baseline_response_minutes)
        self._timers = TimerGroup(self._scheduler, guard=lambda: self._is_current(token))

        port = SessionPort(self, token)
        self._rerouter = ReroutingEngine(port, sampler=self._sampler)
        self._countdown = CountdownTimer(
            port,
            ticks=self.config.countdown_ticks,
            interval_seconds=self.config.countdown_interval_seconds,
        )
        self._negotiator = DispatchNegotiator(
            port,
            directory=self._directory,
            sampler=self._sampler,
            geolocation=self._geolocation,
        )
        self._tracker = AmbulanceTracker(
            port,
            sampler=self._sampler,
            routing=self._routing,
            geolocation=self._geolocation,
            on_traffic=self._rerouter.handle_traffic,
        )

        self._transition("countdown")
        self._stats.start(started_at)
        window = self.config.countdown_ticks * self.config.countdown_interval_seconds
        self._append_log(f"Emergency button pressed - {window:g} seconds to cancel")
        LOGGER.info("Emergency session %s started (urgency=%s)", session.id, urgency)
        self._countdown.start()
        self._notify()
        return True

    def cancel(self) -> bool:
        session = self._session
        if session is None or session.phase not in CANCELLABLE_PHASES:
            # Calling and dispatch are not interruptible.
            LOGGER.warning("Cancel rejected in phase %s", self.phase)
            return False
        if session.phase == "countdown" and self._countdown is not None:
            self._countdown.cancel()
        else:
            self._cancel_all_timers()
            self._append_log("Emergency cancelled by user")
        LOGGER.info("Emergency session %s cancelled during %s", session.id, session.phase)
        self._notify()
        self.reset()
        return True

    def acknowledge(self) -> bool:
        if self.phase != "complete":
            LOGGER.info("Acknowledge ignored in phase %s", self.phase)
            return False
        self.reset()
        return True

    def reset(self) -> None:
        self._cancel_all_timers()
        if self._session is not None:
            LOGGER.info("Resetting emergency session %s", self._session.id)
        self._session = None
        self._log = EventLog(self._clock)
        self._stats = None
        self._timers = None
        self._countdown = None
        self._negotiator = None
        self._tracker = None
        self._rerouter = None
        self._notify()

    def inject_traffic(self, level: str) -> bool:
        if level not in TRAFFIC_LEVELS:
            raise ValueError(f"Unknown traffic level: {level}")
        if self.phase != "tracking" or self._rerouter is None:
            LOGGER.warning("Traffic injection rejected in phase %s", self.phase)
            return False
        self._rerouter.handle_traffic(level)
        self._notify()
        return True

    # Observation --------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def snapshot(self) -> SimulationSnapshot:
        session = self._session
        if session is None:
            return SimulationSnapshot(phase="idle", speed_multiplier=self.config.speed_multiplier)
        return SimulationSnapshot(
            phase=session.phase,
            session_id=session.id,
            urgency=session.urgency,
            countdown=session.countdown_remaining,
            eta_minutes=session.active_eta_minutes,
            progress_percent=session.progress_percent,
            traffic_level=session.traffic_level,
            delay_minutes=session.delay_minutes,
            reroute_count=session.reroute_count,
            speed_multiplier=session.speed_multiplier,
            selected_hospital=session.selected_hospital,
            primary_unit=session.primary_unit,
            backup_unit=session.backup_unit,
            replaced_units=session.replaced_units,
            route_progress=route_progress(session),
            using_fallback_eta=session.using_fallback_eta,
            event_log=self._log.tail(self.config.log_tail),
            statistics=self.statistics,
        )

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                LOGGER.exception("Simulation listener failed")

    # Port targets -------------------------------------------------------

    def _is_current(self, token: str) -> bool:
        return self._session is not None and self._session.token == token

    def _active(self) -> SimulationSession:
        if self._session is None:
            raise StaleSessionError("No active emergency session.")
        return self._session

    def _require_session(self, token: str) -> SimulationSession:
        if not self._is_current(token) or self._session is None:
            raise StaleSessionError("Session is no longer active.")
        return self._session

    def _transition(self, next_phase: str) -> None:
        session = self._session
        if session is None:
            raise PhaseTransitionError(f"No active session for transition to {next_phase}")
        if next_phase not in self._TRANSITIONS.get(session.phase, set()):
            raise PhaseTransitionError(f"Invalid transition: {session.phase} -> {next_phase}")
        LOGGER.info("Session %s: %s -> %s", session.id, session.phase, next_phase)
        session.phase = next_phase

    def _append_log(self, message: str) -> None:
        self._log.append(message)

    def _schedule(self, delay: float, callback: Callable[[], None], tag: str, repeat: bool) -> None:
        if self._timers is None or self._session is None:
            return
        token = self._session.token

        def _run() -> None:
            callback()
            if self._is_current(token):
                self._notify()

        if repeat:
            self._timers.every(delay, _run, tag=tag)
        else:
            self._timers.after(delay, _run, tag=tag)

    def _cancel_timers(self, tag: str) -> None:
        if self._timers is not None:
            self._timers.cancel(tag)

    def _cancel_all_timers(self) -> None:
        if self._timers is not None:
            cancelled = self._timers.cancel_all()
            if cancelled:
                LOGGER.debug("Cleared %s pending timers", cancelled)

    def _timer_active(self, tag: str) -> bool:
        return self._timers is not None and self._timers.active(tag)

    def _set_countdown(self, remaining: int) -> None:
        self._active().countdown_remaining = remaining

    def _begin_negotiation(self) -> None:
        session = self._active()
        self._transition("calling")
        try:
            self._negotiator.start(session.urgency)
        except NoHospitalsAvailableError as exc:
            LOGGER.error("Dispatch failed for session %s: %s", session.id, exc)
            self._append_log(str(exc))
            self._notify()
            self.reset()

    def _select_hospital(self, hospital: Hospital, candidates: tuple[Hospital, ...]) -> None:
        session = self._active()
        session.selected_hospital = hospital
        session.hospitals = candidates

    def _dispatch(self, hospital: Hospital, outcome: str) -> None:
        session = self._active()
        self._transition("dispatch")
        plan = self._tracker.plan_trip(hospital, session.traffic_level)
        unit = DispatchUnit(id=PRIMARY_UNIT_ID, origin_facility_name=hospital.name, eta_minutes=plan.eta_minutes)
        session.primary_unit = unit
        session.route = plan.route
        session.using_fallback_eta = plan.used_fallback
        self._stats.record_dispatch(original_eta=unit.eta_minutes, hospital_name=hospital.name, unit_id=unit.id)
        LOGGER.info("Dispatching %s from %s (outcome=%s, eta=%s)", unit.id, hospital.name, outcome, unit.eta_minutes)

        self._append_log(f"Ambulance {unit.id} dispatched")
        self._append_log(f"Estimated arrival: {unit.eta_minutes} minutes")
        self._append_log("Ambulance en route - starting tracking...")
        tracker = self._tracker
        self._schedule(self.config.scaled(2.0), tracker.start, "dispatch", False)

    def _begin_tracking(self) -> None:
        session = self._active()
        self._transition("tracking")
        session.progress_percent = 0.0
        self._append_log("Starting real-time ambulance tracking...")

    def _set_progress(self, percent: float) -> None:
        session = self._active()
        clamped = max(0.0, min(100.0, percent))
        session.progress_percent = max(session.progress_percent, clamped)

    def _mark_arrived(self) -> None:
        session = self._active()
        session.progress_percent = 100.0
        if session.backup_unit is not None:
            session.backup_unit = dataclasses.replace(session.backup_unit, status="arrived")
        elif session.primary_unit is not None:
            session.primary_unit = dataclasses.replace(session.primary_unit, status="arrived")

    def _complete(self) -> None:
        session = self._active()
        self._transition("complete")
        session.ended_at = self._clock()
        unit = session.active_unit
        final_eta = session.active_eta_minutes or 0
        stats = self._stats.complete(
            end_time=session.ended_at,
            final_eta=final_eta,
            reroute_count=session.reroute_count,
        )
        LOGGER.info(
            "Session %s complete: original_eta=%s final_eta=%s reroutes=%s",
            session.id,
            stats.original_eta,
            stats.final_eta,
            stats.reroute_count,
        )
        self._append_log("Simulation complete!")
        if unit is not None:
            self._append_log(f"{unit.id} arrived successfully")

    def _apply_traffic(self, level: str, delay_minutes: int) -> None:
        session = self._active()
        session.traffic_level = level
        if delay_minutes <= 0:
            return
        session.delay_minutes += delay_minutes
        self._stats.record_traffic_delay(delay_minutes, session.active_eta_minutes or 0)

    def _record_reroute_attempt(self) -> None:
        self._active().reroute_count += 1

    def _promote_backup(self, unit: DispatchUnit) -> None:
        session = self._active()
        if session.backup_unit is not None:
            outgoing = dataclasses.replace(session.backup_unit, status="cancelled")
            session.replaced_units = (*session.replaced_units, outgoing)
        elif session.primary_unit is not None:
            session.primary_unit = dataclasses.replace(session.primary_unit, status="cancelled")
        session.backup_unit = unit
        session.delay_minutes = 0
        self._stats.record_reroute(unit_id=unit.id, active_eta=unit.eta_minutes)
