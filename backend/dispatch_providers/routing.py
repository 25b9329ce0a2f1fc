from __future__ import annotations

import math
import time

import httpx

from dispatch_core.interfaces import RoutingUnavailableError
from dispatch_core.models import Coordinates, RouteEstimate


class OsrmRoutingProvider:
    def __init__(
        self,
        *,
        base_url: str = "https://router.project-osrm.org",
        timeout: float = 5.0,
        cache_ttl_seconds: float = 300.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.cache_ttl_seconds = cache_ttl_seconds
        self._cache: dict[tuple[Coordinates, Coordinates], tuple[float, RouteEstimate]] = {}

    def route(self, origin: Coordinates, destination: Coordinates) -> RouteEstimate:
        cached = self._cache.get((origin, destination))
        if cached is not None and time.monotonic() - cached[0] < self.cache_ttl_seconds:
            return cached[1]
        estimate = self._fetch(origin, destination)
        self._cache[(origin, destination)] = (time.monotonic(), estimate)
        return estimate

    def _fetch(self, origin: Coordinates, destination: Coordinates) -> RouteEstimate:
        url = (
            f"{self.base_url}/route/v1/driving/"
            f"{origin.lng:.6f},{origin.lat:.6f};{destination.lng:.6f},{destination.lat:.6f}"
        )
        try:
            response = httpx.get(
                url,
                params={"overview": "full", "geometries": "geojson"},
                headers={"User-Agent": "emergency-dispatch-sim/1.0"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise RoutingUnavailableError(f"OSRM request failed: {exc}") from exc

        if not isinstance(payload, dict) or payload.get("code") != "Ok":
            code = payload.get("code") if isinstance(payload, dict) else None
            raise RoutingUnavailableError(f"OSRM returned no route (code={code})")
        routes = payload.get("routes") or []
        if not routes or not isinstance(routes[0], dict):
            raise RoutingUnavailableError("OSRM returned an empty route list")

        best = routes[0]
        duration = best.get("duration")
        if not isinstance(duration, (int, float)) or duration < 0:
            raise RoutingUnavailableError("OSRM route has no duration")

        geometry = best.get("geometry") if isinstance(best.get("geometry"), dict) else {}
        path = tuple(
            Coordinates(lat=float(point[1]), lng=float(point[0]))
            for point in geometry.get("coordinates") or []
            if isinstance(point, (list, tuple)) and len(point) >= 2
        )
        return RouteEstimate(eta_minutes=max(1, math.ceil(duration / 60)), path=path, source="osrm")
