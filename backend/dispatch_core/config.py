from __future__ import annotations

import os
from dataclasses import dataclass

from .models import Coordinates


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str) -> int | None:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


@dataclass(frozen=True)
class SimulationConfig:
    speed_multiplier: float = 5.0
    baseline_response_minutes: int = 18
    countdown_ticks: int = 10
    scale_countdown: bool = False
    seed: int | None = None
    scheduler: str = "asyncio"
    location: Coordinates | None = None
    disable_external: bool = False
    http_timeout_seconds: float = 5.0
    osrm_base_url: str = "https://router.project-osrm.org"
    overpass_url: str = "https://overpass-api.de/api/interpreter"
    log_tail: int = 50

    def __post_init__(self) -> None:
        if self.speed_multiplier <= 0:
            raise ValueError("speed_multiplier must be positive")
        if self.countdown_ticks <= 0:
            raise ValueError("countdown_ticks must be positive")

    def scaled(self, seconds: float) -> float:
        return seconds / self.speed_multiplier

    @property
    def countdown_interval_seconds(self) -> float:
        return self.scaled(1.0) if self.scale_countdown else 1.0

    @classmethod
    def from_env(cls) -> "SimulationConfig":
        lat = (os.getenv("EMERGENCY_SIM_LAT") or "").strip()
        lng = (os.getenv("EMERGENCY_SIM_LNG") or "").strip()
        location = None
        if lat and lng:
            try:
                location = Coordinates(lat=float(lat), lng=float(lng))
            except ValueError:
                location = None
        return cls(
            speed_multiplier=_env_float("EMERGENCY_SIM_SPEED_MULTIPLIER", 5.0),
            baseline_response_minutes=int(_env_float("EMERGENCY_SIM_BASELINE_MINUTES", 18)),
            scale_countdown=_env_flag("EMERGENCY_SIM_SCALE_COUNTDOWN"),
            seed=_env_int("EMERGENCY_SIM_SEED"),
            scheduler=(os.getenv("EMERGENCY_SIM_SCHEDULER") or "asyncio").strip().lower(),
            location=location,
            disable_external=_env_flag("EMERGENCY_SIM_DISABLE_EXTERNAL"),
            http_timeout_seconds=_env_float("EMERGENCY_SIM_HTTP_TIMEOUT_SECONDS", 5.0),
            osrm_base_url=(os.getenv("OSRM_BASE_URL") or "https://router.project-osrm.org").rstrip("/"),
            overpass_url=(os.getenv("OVERPASS_URL") or "https://overpass-api.de/api/interpreter").strip(),
        )
