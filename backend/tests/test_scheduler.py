from __future__ import annotations

import asyncio

import pytest

from dispatch_core import AsyncioScheduler, ManualScheduler, OutcomeSampler, SimulationConfig, TimerGroup


def test_manual_scheduler_fires_in_time_then_insertion_order():
    scheduler = ManualScheduler()
    fired: list[str] = []
    scheduler.call_later(2.0, lambda: fired.append("b"))
    scheduler.call_later(1.0, lambda: fired.append("a"))
    scheduler.call_later(2.0, lambda: fired.append("c"))

    assert scheduler.advance(1.5) == 1
    assert fired == ["a"]
    scheduler.advance(1.0)
    assert fired == ["a", "b", "c"]
    assert scheduler.now() == pytest.approx(2.5)
    assert scheduler.pending_count() == 0


def test_manual_scheduler_repeats_until_cancelled():
    scheduler = ManualScheduler()
    ticks: list[float] = []
    handle = scheduler.call_every(1.0, lambda: ticks.append(scheduler.now()))

    scheduler.advance(3.0)
    assert ticks == [1.0, 2.0, 3.0]
    assert scheduler.pending_count() == 1

    handle.cancel()
    scheduler.advance(5.0)
    assert ticks == [1.0, 2.0, 3.0]
    assert handle.cancelled
    assert scheduler.pending_count() == 0


def test_manual_scheduler_runs_callbacks_scheduled_while_advancing():
    scheduler = ManualScheduler()
    fired: list[str] = []
    scheduler.call_later(1.0, lambda: scheduler.call_later(0.5, lambda: fired.append("chained")))
    scheduler.advance(2.0)
    assert fired == ["chained"]


def test_manual_scheduler_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        ManualScheduler().call_every(0, lambda: None)


def test_timer_group_cancels_by_tag_and_drops_guarded_callbacks():
    scheduler = ManualScheduler()
    current = {"valid": True}
    group = TimerGroup(scheduler, guard=lambda: current["valid"])
    fired: list[str] = []

    group.after(1.0, lambda: fired.append("negotiation"), tag="negotiation")
    group.every(1.0, lambda: fired.append("tick"), tag="tracking")
    assert group.active("tracking")
    assert group.active_count() == 2

    assert group.cancel("tracking") == 1
    assert not group.active("tracking")

    current["valid"] = False
    scheduler.advance(2.0)
    assert fired == []
    assert group.active_count() == 0


def test_timer_group_cancel_all_leaves_nothing_pending():
    scheduler = ManualScheduler()
    group = TimerGroup(scheduler, guard=lambda: True)
    group.after(1.0, lambda: None, tag="a")
    group.after(2.0, lambda: None, tag="b")
    group.every(0.5, lambda: None, tag="c")

    assert group.cancel_all() == 3
    assert scheduler.pending_count() == 0


def test_asyncio_scheduler_runs_and_cancels_on_loop():
    async def scenario() -> tuple[list[str], int]:
        scheduler = AsyncioScheduler()
        fired: list[str] = []
        scheduler.call_later(0.01, lambda: fired.append("once"))
        cancelled = scheduler.call_later(0.01, lambda: fired.append("never"))
        repeating = scheduler.call_every(0.01, lambda: fired.append("tick"))
        cancelled.cancel()
        await asyncio.sleep(0.055)
        repeating.cancel()
        return fired, scheduler.pending_count()

    fired, pending = asyncio.run(scenario())
    assert "once" in fired
    assert "never" not in fired
    assert fired.count("tick") >= 2
    assert pending == 0


def test_config_scaling_and_env(monkeypatch):
    config = SimulationConfig(speed_multiplier=4.0)
    assert config.scaled(2.0) == pytest.approx(0.5)
    assert config.countdown_interval_seconds == 1.0
    assert SimulationConfig(speed_multiplier=4.0, scale_countdown=True).countdown_interval_seconds == pytest.approx(0.25)
    with pytest.raises(ValueError):
        SimulationConfig(speed_multiplier=0)

    monkeypatch.setenv("EMERGENCY_SIM_SPEED_MULTIPLIER", "10")
    monkeypatch.setenv("EMERGENCY_SIM_SEED", "42")
    monkeypatch.setenv("EMERGENCY_SIM_LAT", "51.5")
    monkeypatch.setenv("EMERGENCY_SIM_LNG", "-0.12")
    monkeypatch.setenv("EMERGENCY_SIM_SCHEDULER", "Manual")
    loaded = SimulationConfig.from_env()
    assert loaded.speed_multiplier == 10.0
    assert loaded.seed == 42
    assert loaded.scheduler == "manual"
    assert loaded.location is not None and loaded.location.lat == 51.5


def test_seeded_sampler_is_reproducible_and_in_range():
    first = OutcomeSampler.seeded(11)
    second = OutcomeSampler.seeded(11)
    draws_a = [first.call_latency_ms() for _ in range(20)]
    draws_b = [second.call_latency_ms() for _ in range(20)]
    assert draws_a == draws_b
    assert all(3000 <= value < 5000 for value in draws_a)

    sampler = OutcomeSampler.seeded(3)
    for _ in range(50):
        assert 5 <= sampler.traffic_delay("heavy") <= 12
        assert 2 <= sampler.traffic_delay("moderate") <= 5
        assert 4 <= sampler.alternate_eta() <= 8
        assert 5000 <= sampler.traffic_check_delay_ms() < 8000
    assert sampler.traffic_delay("light") == 0
