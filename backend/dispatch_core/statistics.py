from __future__ import annotations

from datetime import datetime

from .models import SimulationStatistics


class StatisticsError(Exception):
    pass


class StatisticsRecorder:
    """Collects per-session figures and freezes them once at completion."""

    def __init__(self, baseline_response_minutes: int = 18) -> None:
        self.baseline_response_minutes = baseline_response_minutes
        self._start_time: datetime | None = None
        self._original_eta: int | None = None
        self._hospital_name = ""
        self._unit_id = ""
        self._traffic_delay_minutes = 0
        self._eta_history: list[int] = []
        self._final: SimulationStatistics | None = None

    @property
    def traffic_delay_minutes(self) -> int:
        return self._traffic_delay_minutes

    @property
    def eta_history(self) -> tuple[int, ...]:
        return tuple(self._eta_history)

    @property
    def result(self) -> SimulationStatistics | None:
        return self._final

    def start(self, at: datetime) -> None:
        if self._start_time is not None:
            raise StatisticsError("Start time already recorded for this session.")
        self._start_time = at

    def record_dispatch(self, *, original_eta: int, hospital_name: str, unit_id: str) -> None:
        self._ensure_open()
        self._original_eta = original_eta
        self._hospital_name = hospital_name
        self._unit_id = unit_id
        self._eta_history.append(original_eta)

    def record_traffic_delay(self, minutes: int, active_eta: int) -> None:
        self._ensure_open()
        self._traffic_delay_minutes += minutes
        self._record_eta(active_eta)

    def record_reroute(self, *, unit_id: str, active_eta: int) -> None:
        self._ensure_open()
        self._unit_id = unit_id
        self._record_eta(active_eta)

    def complete(self, *, end_time: datetime, final_eta: int, reroute_count: int) -> SimulationStatistics:
        self._ensure_open()
        if self._start_time is None or self._original_eta is None:
            raise StatisticsError("Cannot complete statistics before start and dispatch are recorded.")
        self._record_eta(final_eta)
        self._final = SimulationStatistics(
            start_time=self._start_time,
            end_time=end_time,
            total_duration_seconds=int((end_time - self._start_time).total_seconds()),
            original_eta=self._original_eta,
            final_eta=final_eta,
            traffic_delay_minutes=self._traffic_delay_minutes,
            reroute_count=reroute_count,
            hospital_name=self._hospital_name,
            unit_id=self._unit_id,
            time_saved_minutes=max(0, self.baseline_response_minutes - final_eta),
            eta_history=tuple(self._eta_history),
        )
        return self._final

    def _record_eta(self, eta: int) -> None:
        if not self._eta_history or self._eta_history[-1] != eta:
            self._eta_history.append(eta)

    def _ensure_open(self) -> None:
        if self._final is not None:
            raise StatisticsError("Statistics are already finalized.")
