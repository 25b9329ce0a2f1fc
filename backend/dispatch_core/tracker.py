from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Sequence

from .interfaces import GeolocationProvider, RoutingProvider
from .models import Coordinates, Hospital, RouteProgress, SimulationSession
from .outcomes import OutcomeSampler
from .port import SessionPort
from .rerouting import REROUTE_TAG

LOGGER = logging.getLogger(__name__)

TRACKING_TAG = "tracking"
TRAFFIC_TAG = "traffic"
COMPLETION_TAG = "completion"

MILESTONES = (25, 50, 75)
TRAFFIC_MULTIPLIERS = {"light": 1.0, "moderate": 1.3, "heavy": 1.8}
CITY_KM_PER_MINUTE = 0.5


@dataclass(frozen=True)
class TripPlan:
    eta_minutes: int
    route: tuple[Coordinates, ...] = ()
    used_fallback: bool = True


def fallback_eta_minutes(distance_km: float, traffic_level: str = "light") -> int:
    base = math.ceil(distance_km / CITY_KM_PER_MINUTE)
    return max(1, math.ceil(base * TRAFFIC_MULTIPLIERS[traffic_level]))


def progress_increment(eta_minutes: int, speed_multiplier: float) -> float:
    return (100.0 / (eta_minutes * 60)) * speed_multiplier


def interpolate_position(path: Sequence[Coordinates], percent: float) -> Coordinates | None:
    if not path:
        return None
    clamped = max(0.0, min(100.0, percent))
    index = math.floor((clamped / 100.0) * (len(path) - 1))
    return path[index]


def route_progress(session: SimulationSession) -> RouteProgress | None:
    eta = session.active_eta_minutes
    if eta is None:
        return None
    total_seconds = eta * 60
    return RouteProgress(
        total_eta_seconds=total_seconds,
        elapsed_seconds=total_seconds * session.progress_percent / 100.0,
        percent_complete=session.progress_percent,
        position=interpolate_position(session.route, session.progress_percent),
    )


class AmbulanceTracker:
    TICK_SECONDS = 1.0
    COMPLETION_DELAY_SECONDS = 2.0

    def __init__(
        self,
        port: SessionPort,
        *,
        sampler: OutcomeSampler,
        routing: RoutingProvider | None = None,
        geolocation: GeolocationProvider | None = None,
        on_traffic: Callable[[str], object] | None = None,
    ) -> None:
        self._port = port
        self._sampler = sampler
        self._routing = routing
        self._geolocation = geolocation
        self._on_traffic = on_traffic
        self._emitted: set[int] = set()

    def plan_trip(self, hospital: Hospital, traffic_level: str = "light") -> TripPlan:
        location = self._geolocation.current_location() if self._geolocation else None
        if location is None:
            LOGGER.info("No requester location; using distance-based ETA")
        elif self._routing is None:
            LOGGER.info("No routing provider configured; using distance-based ETA")
        else:
            try:
                estimate = self._routing.route(hospital.coordinates, location)
                return TripPlan(
                    eta_minutes=max(1, int(estimate.eta_minutes)),
                    route=tuple(estimate.path),
                    used_fallback=False,
                )
            except Exception as exc:
                LOGGER.warning("Routing provider failed, using distance-based ETA: %s", exc)
        return TripPlan(eta_minutes=fallback_eta_minutes(hospital.distance_km, traffic_level))

    def start(self) -> bool:
        if self._port.timer_active(TRACKING_TAG):
            LOGGER.info("Ambulance tracking already running; ignoring duplicate start")
            return False
        self._emitted.clear()
        self._port.begin_tracking()
        self._port.every(self.TICK_SECONDS, self._tick, tag=TRACKING_TAG)
        traffic_delay = self._port.config.scaled(self._sampler.traffic_check_delay_ms() / 1000.0)
        self._port.after(traffic_delay, self._detect_traffic, tag=TRAFFIC_TAG)
        return True

    def _tick(self) -> None:
        view = self._port.view()
        eta = view.active_eta_minutes
        if view.phase != "tracking" or eta is None:
            return
        progress = min(100.0, view.progress_percent + progress_increment(eta, view.speed_multiplier))
        # A single tick may cross several milestones when the trip is short.
        for milestone in MILESTONES:
            if milestone not in self._emitted and progress >= milestone:
                self._emitted.add(milestone)
                self._port.log(f"Ambulance {milestone}% of the way to you")
        self._port.set_progress(progress)
        if progress >= 100.0:
            self._arrive()

    def _arrive(self) -> None:
        for tag in (TRACKING_TAG, TRAFFIC_TAG, REROUTE_TAG):
            self._port.cancel_timers(tag)
        self._port.mark_arrived()
        self._port.log("Ambulance has arrived at your location!")
        self._port.after(
            self._port.config.scaled(self.COMPLETION_DELAY_SECONDS),
            self._port.complete,
            tag=COMPLETION_TAG,
        )

    def _detect_traffic(self) -> None:
        level = self._sampler.traffic_level()
        LOGGER.info("Traffic condition resolved: %s", level)
        if self._on_traffic is not None:
            self._on_traffic(level)
