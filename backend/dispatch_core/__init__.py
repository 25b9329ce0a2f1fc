from .config import SimulationConfig
from .controller import PhaseTransitionError, SimulationController, StaleSessionError
from .event_log import EventLog
from .interfaces import GeolocationProvider, HospitalDirectory, RoutingProvider, RoutingUnavailableError
from .models import (
    PHASES,
    TRAFFIC_LEVELS,
    URGENCY_LEVELS,
    Coordinates,
    DispatchUnit,
    EventLogEntry,
    Hospital,
    RouteEstimate,
    RouteProgress,
    SimulationSnapshot,
    SimulationStatistics,
)
from .negotiator import NoHospitalsAvailableError
from .outcomes import OutcomeSampler
from .scheduler import AsyncioScheduler, ManualScheduler, TimerGroup, TimerHandle
from .statistics import StatisticsError, StatisticsRecorder

__all__ = [
    "PHASES",
    "TRAFFIC_LEVELS",
    "URGENCY_LEVELS",
    "AsyncioScheduler",
    "Coordinates",
    "DispatchUnit",
    "EventLog",
    "EventLogEntry",
    "GeolocationProvider",
    "Hospital",
    "HospitalDirectory",
    "ManualScheduler",
    "NoHospitalsAvailableError",
    "OutcomeSampler",
    "PhaseTransitionError",
    "RouteEstimate",
    "RouteProgress",
    "RoutingProvider",
    "RoutingUnavailableError",
    "SimulationConfig",
    "SimulationController",
    "SimulationSnapshot",
    "SimulationStatistics",
    "StaleSessionError",
    "StatisticsError",
    "StatisticsRecorder",
    "TimerGroup",
    "TimerHandle",
]
