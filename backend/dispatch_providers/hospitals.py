from __future__ import annotations

import logging
import math
import time
from typing import Any, Sequence

import httpx

from dispatch_core.models import Coordinates, Hospital

LOGGER = logging.getLogger(__name__)

LONDON_HOSPITALS: tuple[Hospital, ...] = (
    Hospital(
        name="St Thomas' Hospital",
        address="Westminster Bridge Rd, Lambeth, London SE1 7EH",
        coordinates=Coordinates(lat=51.4989, lng=-0.1195),
        distance_km=2.1,
        category="Trauma",
        phone="+44 20 7188 7188",
    ),
    Hospital(
        name="Guy's Hospital",
        address="Great Maze Pond, London SE1 9RT",
        coordinates=Coordinates(lat=51.5043, lng=-0.0871),
        distance_km=2.8,
        category="General",
        phone="+44 20 7188 7188",
    ),
    Hospital(
        name="King's College Hospital",
        address="Denmark Hill, London SE5 9RS",
        coordinates=Coordinates(lat=51.4681, lng=-0.0926),
        distance_km=4.2,
        category="Trauma",
        phone="+44 20 3299 9000",
    ),
    Hospital(
        name="London Bridge Hospital",
        address="27 Tooley St, London SE1 2PR",
        coordinates=Coordinates(lat=51.5045, lng=-0.0865),
        distance_km=3.1,
        category="General",
        phone="+44 20 7407 3100",
    ),
    Hospital(
        name="Royal London Hospital",
        address="Whitechapel Rd, Whitechapel, London E1 1FR",
        coordinates=Coordinates(lat=51.5174, lng=-0.0590),
        distance_km=5.8,
        category="Trauma",
        phone="+44 20 7377 7000",
    ),
)


def _haversine_km(a: Coordinates, b: Coordinates) -> float:
    radius_km = 6371.0
    dlat = math.radians(b.lat - a.lat)
    dlon = math.radians(b.lng - a.lng)
    h = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat)) * math.sin(dlon / 2) ** 2
    )
    return radius_km * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def _safe_float(value: Any) -> float | None:
    try:
        if value is None:
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


class StaticHospitalDirectory:
    def __init__(self, hospitals: Sequence[Hospital] = LONDON_HOSPITALS) -> None:
        self._hospitals = tuple(hospitals)

    def nearby(self, location: Coordinates | None) -> list[Hospital]:
        return sorted(self._hospitals, key=lambda hospital: hospital.distance_km)


class OverpassHospitalDirectory:
    """Live nearby-hospital search against OpenStreetMap Overpass.

    Any transport error, malformed payload or empty result falls back to the
    static directory so dispatch always has a candidate list.
    """

    def __init__(
        self,
        *,
        fallback: StaticHospitalDirectory | None = None,
        url: str = "https://overpass-api.de/api/interpreter",
        timeout: float = 5.0,
        radius_m: int = 10000,
        limit: int = 10,
        disable_external: bool = False,
        cache_ttl_seconds: float = 300.0,
    ) -> None:
        self.fallback = fallback or StaticHospitalDirectory()
        self.url = url
        self.timeout = timeout
        self.radius_m = radius_m
        self.limit = limit
        self.disable_external = disable_external
        self.cache_ttl_seconds = cache_ttl_seconds
        self._cache: dict[tuple[float, float], tuple[float, list[Hospital]]] = {}

    def nearby(self, location: Coordinates | None) -> list[Hospital]:
        if self.disable_external or location is None:
            return self.fallback.nearby(location)
        key = (round(location.lat, 4), round(location.lng, 4))
        cached = self._cache.get(key)
        if cached is not None and time.monotonic() - cached[0] < self.cache_ttl_seconds:
            return list(cached[1])
        try:
            hospitals = self._search(location)
        except (httpx.HTTPError, ValueError) as exc:
            LOGGER.warning("Overpass hospital search failed, using static list: %s", exc)
            return self.fallback.nearby(location)
        if not hospitals:
            LOGGER.info("Overpass returned no hospitals near %s, using static list", location)
            return self.fallback.nearby(location)
        self._cache[key] = (time.monotonic(), hospitals)
        return list(hospitals)

    def _search(self, location: Coordinates) -> list[Hospital]:
        query = (
            "[out:json][timeout:25];"
            f'(node["amenity"="hospital"](around:{self.radius_m},{location.lat},{location.lng});'
            f'way["amenity"="hospital"](around:{self.radius_m},{location.lat},{location.lng}););'
            f"out center {self.limit * 2};"
        )
        response = httpx.post(
            self.url,
            data={"data": query},
            headers={"User-Agent": "emergency-dispatch-sim/1.0"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        payload = response.json() if response.content else {}

        seen: set[str] = set()
        hospitals: list[Hospital] = []
        for element in payload.get("elements", []) if isinstance(payload, dict) else []:
            if not isinstance(element, dict):
                continue
            tags = element.get("tags") if isinstance(element.get("tags"), dict) else {}
            name = str(tags.get("name") or "").strip()
            center = element.get("center") if isinstance(element.get("center"), dict) else {}
            lat = _safe_float(element.get("lat", center.get("lat")))
            lng = _safe_float(element.get("lon", center.get("lon")))
            if not name or lat is None or lng is None:
                continue
            key = f"{name.lower()}:{round(lat, 4)}:{round(lng, 4)}"
            if key in seen:
                continue
            seen.add(key)
            coordinates = Coordinates(lat=lat, lng=lng)
            hospitals.append(
                Hospital(
                    name=name,
                    address=self._address(tags),
                    coordinates=coordinates,
                    distance_km=round(_haversine_km(location, coordinates), 1),
                    category=self._category(tags),
                    phone=str(tags.get("phone") or tags.get("contact:phone") or ""),
                )
            )
        hospitals.sort(key=lambda hospital: hospital.distance_km)
        return hospitals[: self.limit]

    @staticmethod
    def _address(tags: dict[str, Any]) -> str:
        parts = [
            " ".join(str(tags.get(key) or "").strip() for key in ("addr:housenumber", "addr:street")).strip(),
            str(tags.get("addr:city") or "").strip(),
            str(tags.get("addr:postcode") or "").strip(),
        ]
        return ", ".join(part for part in parts if part)

    @staticmethod
    def _category(tags: dict[str, Any]) -> str:
        if tags.get("healthcare:speciality"):
            return "Specialty"
        if str(tags.get("emergency") or "").lower() == "yes":
            return "Trauma"
        return "General"
