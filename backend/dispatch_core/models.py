from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .time_utils import to_iso


PHASES = ("idle", "countdown", "calling", "dispatch", "tracking", "complete")
CANCELLABLE_PHASES = {"countdown", "tracking"}
URGENCY_LEVELS = ("high", "medium", "low")
TRAFFIC_LEVELS = ("light", "moderate", "heavy")


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float

    def as_dict(self) -> dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


@dataclass(frozen=True)
class Hospital:
    name: str
    address: str
    coordinates: Coordinates
    distance_km: float
    category: str = "General"
    phone: str = ""

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "address": self.address,
            "coordinates": self.coordinates.as_dict(),
            "distance_km": self.distance_km,
            "category": self.category,
            "phone": self.phone,
        }


@dataclass(frozen=True)
class DispatchUnit:
    id: str
    origin_facility_name: str
    eta_minutes: int
    status: str = "dispatched"

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "origin_facility_name": self.origin_facility_name,
            "eta_minutes": self.eta_minutes,
            "status": self.status,
        }


@dataclass(frozen=True)
class RouteEstimate:
    eta_minutes: int
    path: tuple[Coordinates, ...] = ()
    source: str = "routing_provider"


@dataclass(frozen=True)
class RouteProgress:
    total_eta_seconds: int
    elapsed_seconds: float
    percent_complete: float
    position: Coordinates | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "total_eta_seconds": self.total_eta_seconds,
            "elapsed_seconds": round(self.elapsed_seconds, 1),
            "percent_complete": round(self.percent_complete, 2),
            "position": self.position.as_dict() if self.position else None,
        }


@dataclass(frozen=True)
class EventLogEntry:
    timestamp: datetime
    message: str

    def as_dict(self) -> dict[str, str]:
        return {"timestamp": to_iso(self.timestamp), "message": self.message}


@dataclass(frozen=True)
class SimulationStatistics:
    start_time: datetime
    end_time: datetime
    total_duration_seconds: int
    original_eta: int
    final_eta: int
    traffic_delay_minutes: int
    reroute_count: int
    hospital_name: str
    unit_id: str
    time_saved_minutes: int
    eta_history: tuple[int, ...] = ()

    def as_dict(self) -> dict[str, Any]:
        return {
            "start_time": to_iso(self.start_time),
            "end_time": to_iso(self.end_time),
            "total_duration_seconds": self.total_duration_seconds,
            "original_eta": self.original_eta,
            "final_eta": self.final_eta,
            "traffic_delay_minutes": self.traffic_delay_minutes,
            "reroute_count": self.reroute_count,
            "hospital_name": self.hospital_name,
            "unit_id": self.unit_id,
            "time_saved_minutes": self.time_saved_minutes,
            "eta_history": list(self.eta_history),
        }


@dataclass
class SimulationSession:
    id: str
    token: str
    urgency: str
    speed_multiplier: float
    started_at: datetime
    phase: str = "idle"
    ended_at: datetime | None = None
    countdown_remaining: int | None = None
    selected_hospital: Hospital | None = None
    hospitals: tuple[Hospital, ...] = ()
    primary_unit: DispatchUnit | None = None
    backup_unit: DispatchUnit | None = None
    replaced_units: tuple[DispatchUnit, ...] = ()
    traffic_level: str = "light"
    delay_minutes: int = 0
    progress_percent: float = 0.0
    reroute_count: int = 0
    route: tuple[Coordinates, ...] = ()
    using_fallback_eta: bool = False

    @property
    def active_unit(self) -> DispatchUnit | None:
        return self.backup_unit or self.primary_unit

    @property
    def active_eta_minutes(self) -> int | None:
        unit = self.active_unit
        if unit is None:
            return None
        return unit.eta_minutes + self.delay_minutes


@dataclass(frozen=True)
class SimulationSnapshot:
    phase: str
    session_id: str | None = None
    urgency: str | None = None
    countdown: int | None = None
    eta_minutes: int | None = None
    progress_percent: float = 0.0
    traffic_level: str = "light"
    delay_minutes: int = 0
    reroute_count: int = 0
    speed_multiplier: float = 1.0
    selected_hospital: Hospital | None = None
    primary_unit: DispatchUnit | None = None
    backup_unit: DispatchUnit | None = None
    replaced_units: tuple[DispatchUnit, ...] = ()
    route_progress: RouteProgress | None = None
    using_fallback_eta: bool = False
    event_log: tuple[EventLogEntry, ...] = field(default_factory=tuple)
    statistics: SimulationStatistics | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase,
            "session_id": self.session_id,
            "urgency": self.urgency,
            "countdown": self.countdown,
            "eta_minutes": self.eta_minutes,
            "progress_percent": round(self.progress_percent, 2),
            "traffic_level": self.traffic_level,
            "delay_minutes": self.delay_minutes,
            "reroute_count": self.reroute_count,
            "speed_multiplier": self.speed_multiplier,
            "selected_hospital": self.selected_hospital.as_dict() if self.selected_hospital else None,
            "primary_unit": self.primary_unit.as_dict() if self.primary_unit else None,
            "backup_unit": self.backup_unit.as_dict() if self.backup_unit else None,
            "replaced_units": [unit.as_dict() for unit in self.replaced_units],
            "route_progress": self.route_progress.as_dict() if self.route_progress else None,
            "using_fallback_eta": self.using_fallback_eta,
            "event_log": [entry.as_dict() for entry in self.event_log],
            "statistics": self.statistics.as_dict() if self.statistics else None,
        }
