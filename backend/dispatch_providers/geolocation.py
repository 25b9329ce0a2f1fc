from __future__ import annotations

from dispatch_core.models import Coordinates


class FixedGeolocationProvider:
    """Requester location supplied by configuration; ``None`` means unknown."""

    def __init__(self, location: Coordinates | None = None) -> None:
        self._location = location

    def current_location(self) -> Coordinates | None:
        return self._location

    def update(self, location: Coordinates | None) -> None:
        self._location = location
