from __future__ import annotations

import logging

from .interfaces import GeolocationProvider, HospitalDirectory
from .models import Hospital
from .outcomes import OutcomeSampler
from .port import SessionPort

LOGGER = logging.getLogger(__name__)

_TAG = "negotiation"


class NoHospitalsAvailableError(Exception):
    pass


class DispatchNegotiator:
    """Simulated call to the nearest hospital.

    Every branch ends in a dispatch decision: a declined or unanswered call
    falls through to auto-dispatch, so negotiation never blocks the session.
    """

    EXPLAIN_DELAY_SECONDS = 2.0
    DECISION_DELAY_SECONDS = 3.0
    APPROVED_HANDOFF_SECONDS = 1.0
    NO_ANSWER_HANDOFF_SECONDS = 2.0

    def __init__(
        self,
        port: SessionPort,
        *,
        directory: HospitalDirectory,
        sampler: OutcomeSampler,
        geolocation: GeolocationProvider | None = None,
    ) -> None:
        self._port = port
        self._directory = directory
        self._sampler = sampler
        self._geolocation = geolocation

    def start(self, urgency: str) -> Hospital:
        location = self._geolocation.current_location() if self._geolocation else None
        hospitals = tuple(self._directory.nearby(location))
        if not hospitals:
            raise NoHospitalsAvailableError("No hospitals available")

        hospital = hospitals[0]
        self._port.select_hospital(hospital, hospitals)
        self._port.log(f"Calling {hospital.name}...")
        latency_seconds = self._sampler.call_latency_ms() / 1000.0
        LOGGER.info("Calling %s (latency %.2fs)", hospital.name, latency_seconds)
        self._port.after(latency_seconds, lambda: self._resolve_call(hospital, urgency), tag=_TAG)
        return hospital

    def _resolve_call(self, hospital: Hospital, urgency: str) -> None:
        config = self._port.config
        if self._sampler.call_answered():
            self._port.log("Hospital answered - explaining emergency...")
            self._port.after(
                config.scaled(self.EXPLAIN_DELAY_SECONDS),
                lambda: self._explain(hospital, urgency),
                tag=_TAG,
            )
            return

        self._port.log("No response from hospital - auto-dispatching ambulance")
        self._port.after(
            config.scaled(self.NO_ANSWER_HANDOFF_SECONDS),
            lambda: self._port.decide_dispatch(hospital, "no_answer"),
            tag=_TAG,
        )

    def _explain(self, hospital: Hospital, urgency: str) -> None:
        self._port.log("Explaining emergency situation...")
        self._port.after(
            self._port.config.scaled(self.DECISION_DELAY_SECONDS),
            lambda: self._decide(hospital, urgency),
            tag=_TAG,
        )

    def _decide(self, hospital: Hospital, urgency: str) -> None:
        if self._sampler.approved(urgency):
            outcome = "approved"
            self._port.log("Hospital confirmed - dispatching ambulance")
        else:
            outcome = "declined"
            self._port.log("Hospital busy - auto-dispatching nearest ambulance")
        self._port.after(
            self._port.config.scaled(self.APPROVED_HANDOFF_SECONDS),
            lambda: self._port.decide_dispatch(hospital, outcome),
            tag=_TAG,
        )
