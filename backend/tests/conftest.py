from __future__ import annotations

import importlib
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))


@pytest.fixture
def backend_module(monkeypatch):
    monkeypatch.setenv("EMERGENCY_SIM_SCHEDULER", "manual")
    monkeypatch.setenv("EMERGENCY_SIM_SEED", "7")
    monkeypatch.setenv("EMERGENCY_SIM_SPEED_MULTIPLIER", "5")
    # Keep CI deterministic; dedicated provider tests can override this.
    monkeypatch.setenv("EMERGENCY_SIM_DISABLE_EXTERNAL", "true")
    monkeypatch.delenv("EMERGENCY_SIM_LAT", raising=False)
    monkeypatch.delenv("EMERGENCY_SIM_LNG", raising=False)

    if "main" in sys.modules:
        module = importlib.reload(sys.modules["main"])
    else:
        module = importlib.import_module("main")
    return module


@pytest.fixture
def client(backend_module):
    with TestClient(backend_module.app) as test_client:
        yield test_client


@pytest.fixture
def run_until():
    def _run(scheduler, predicate, *, step: float = 1.0, limit: float = 3600.0) -> float:
        elapsed = 0.0
        while not predicate():
            if elapsed >= limit:
                raise AssertionError(f"Condition not reached within {limit} simulated seconds")
            scheduler.advance(step)
            elapsed += step
        return elapsed

    return _run
