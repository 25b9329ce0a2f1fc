from __future__ import annotations

import random
from typing import Sequence, TypeVar

from .models import TRAFFIC_LEVELS

T = TypeVar("T")


class OutcomeSampler:
    """Every stochastic decision the simulation makes, drawn from one seedable source.

    Tests subclass this and override individual decisions to pin a path.
    """

    ANSWER_PROBABILITY = 0.7
    APPROVAL_PROBABILITY = {"high": 0.9, "medium": 0.8, "low": 0.7}
    MODERATE_REROUTE_PROBABILITY = 0.5
    CALL_LATENCY_MS = (3000.0, 5000.0)
    TRAFFIC_CHECK_DELAY_MS = (5000.0, 8000.0)
    TRAFFIC_DELAY_MINUTES = {"heavy": (5, 12), "moderate": (2, 5)}
    ALTERNATE_ETA_MINUTES = (4, 8)

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    @classmethod
    def seeded(cls, seed: int | None) -> "OutcomeSampler":
        return cls(random.Random(seed))

    def _half_open(self, bounds: tuple[float, float]) -> float:
        low, high = bounds
        return low + self._rng.random() * (high - low)

    def call_latency_ms(self) -> float:
        return self._half_open(self.CALL_LATENCY_MS)

    def call_answered(self) -> bool:
        return self._rng.random() < self.ANSWER_PROBABILITY

    def approved(self, urgency: str) -> bool:
        return self._rng.random() < self.APPROVAL_PROBABILITY[urgency]

    def traffic_check_delay_ms(self) -> float:
        return self._half_open(self.TRAFFIC_CHECK_DELAY_MS)

    def traffic_level(self) -> str:
        return self._rng.choice(TRAFFIC_LEVELS)

    def traffic_delay(self, level: str) -> int:
        bounds = self.TRAFFIC_DELAY_MINUTES.get(level)
        if bounds is None:
            return 0
        return self._rng.randint(*bounds)

    def reroute_on_moderate(self) -> bool:
        return self._rng.random() < self.MODERATE_REROUTE_PROBABILITY

    def alternate_eta(self) -> int:
        return self._rng.randint(*self.ALTERNATE_ETA_MINUTES)

    def alternate_origin(self, candidates: Sequence[T]) -> T:
        return self._rng.choice(list(candidates))

    def unit_number(self) -> int:
        return self._rng.randint(100, 999)
