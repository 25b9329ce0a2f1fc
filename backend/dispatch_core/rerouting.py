from __future__ import annotations

import logging

from .models import DispatchUnit, TRAFFIC_LEVELS
from .outcomes import OutcomeSampler
from .port import SessionPort

LOGGER = logging.getLogger(__name__)

REROUTE_TAG = "reroute"


class ReroutingEngine:
    HEAVY_LEAD_IN_SECONDS = 2.0
    MODERATE_LEAD_IN_SECONDS = 3.0
    ANALYSIS_SECONDS = 3.0

    def __init__(self, port: SessionPort, *, sampler: OutcomeSampler) -> None:
        self._port = port
        self._sampler = sampler

    def handle_traffic(self, level: str) -> bool:
        """Apply one traffic resolution; returns True when an evaluation is scheduled."""
        if level not in TRAFFIC_LEVELS:
            raise ValueError(f"Unknown traffic level: {level}")
        config = self._port.config

        if level == "light":
            self._port.apply_traffic(level, 0)
            self._port.log("Clear roads - ambulance on schedule")
            return False

        delay = self._sampler.traffic_delay(level)
        self._port.apply_traffic(level, delay)
        if level == "heavy":
            self._port.log("Heavy traffic detected!")
            self._port.log(f"Ambulance delayed by {delay} minutes")
            self._port.after(config.scaled(self.HEAVY_LEAD_IN_SECONDS), self.evaluate, tag=REROUTE_TAG)
            return True

        self._port.log("Moderate traffic detected")
        self._port.log(f"Slight delay: +{delay} minutes")
        if self._sampler.reroute_on_moderate():
            self._port.after(config.scaled(self.MODERATE_LEAD_IN_SECONDS), self.evaluate, tag=REROUTE_TAG)
            return True
        return False

    def evaluate(self) -> None:
        self._port.record_reroute_attempt()
        self._port.log("Analyzing alternative options...")
        self._port.log("Checking nearby hospitals for faster ambulances")
        self._port.after(self.ANALYSIS_SECONDS, self._execute, tag=REROUTE_TAG)

    def _execute(self) -> None:
        view = self._port.view()
        current_unit = view.active_unit
        if view.phase != "tracking" or current_unit is None or view.selected_hospital is None:
            return

        alternatives = [h for h in view.hospitals if h.name != view.selected_hospital.name]
        if not alternatives:
            LOGGER.info("Reroute rejected: no hospital other than %s", view.selected_hospital.name)
            self._reject()
            return

        origin = self._sampler.alternate_origin(alternatives)
        candidate_eta = self._sampler.alternate_eta()
        current_eta = current_unit.eta_minutes + view.delay_minutes

        if candidate_eta >= current_eta:
            LOGGER.info("Reroute rejected: candidate %s min vs current %s min", candidate_eta, current_eta)
            self._reject()
            return

        unit = DispatchUnit(
            id=f"AMB-{self._sampler.unit_number()}",
            origin_facility_name=origin.name,
            eta_minutes=candidate_eta,
        )
        LOGGER.info("Rerouting to %s from %s (%s min)", unit.id, origin.name, candidate_eta)
        self._port.promote_backup(unit)
        self._port.log("Found faster option!")
        self._port.log(f"{unit.id} from {origin.name}")
        self._port.log(f"New ETA: {candidate_eta} minutes ({current_eta - candidate_eta} min faster)")
        self._port.log(f"Cancelling {current_unit.id}")
        self._port.log("Resources optimized successfully!")

    def _reject(self) -> None:
        self._port.log("No faster alternatives found")
        self._port.log("Continuing with original ambulance")
