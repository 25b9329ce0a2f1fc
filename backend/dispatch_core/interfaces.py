from __future__ import annotations

from typing import Protocol, Sequence

from .models import Coordinates, Hospital, RouteEstimate


class RoutingUnavailableError(Exception):
    pass


class HospitalDirectory(Protocol):
    def nearby(self, location: Coordinates | None) -> Sequence[Hospital]: ...


class RoutingProvider(Protocol):
    def route(self, origin: Coordinates, destination: Coordinates) -> RouteEstimate: ...


class GeolocationProvider(Protocol):
    def current_location(self) -> Coordinates | None: ...
