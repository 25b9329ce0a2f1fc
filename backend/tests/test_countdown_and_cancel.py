from __future__ import annotations

import pytest

from sim_utils import ScriptedSampler, advance_to_phase, build_controller


def test_countdown_ticks_down_once_per_second():
    controller, scheduler = build_controller()
    assert controller.trigger("high") is True
    assert controller.phase == "countdown"
    assert controller.snapshot().countdown == 10
    assert controller.event_log.messages() == ["Emergency button pressed - 10 seconds to cancel"]

    scheduler.advance(3.0)
    assert controller.snapshot().countdown == 7
    scheduler.advance(6.9)
    assert controller.phase == "countdown"
    assert controller.snapshot().countdown == 1

    scheduler.advance(0.2)
    assert controller.phase == "calling"
    assert controller.snapshot().countdown == 0


def test_scaled_countdown_uses_speed_multiplier():
    controller, scheduler = build_controller(scale_countdown=True)
    controller.trigger("medium")
    assert controller.event_log.messages()[0] == "Emergency button pressed - 2 seconds to cancel"
    scheduler.advance(2.05)
    assert controller.phase == "calling"


@pytest.mark.parametrize("urgency", ["high", "medium", "low"])
def test_cancel_during_countdown_resets_and_clears_timers(urgency):
    controller, scheduler = build_controller()
    seen: list = []
    controller.subscribe(seen.append)

    controller.trigger(urgency)
    scheduler.advance(4.0)
    assert controller.cancel() is True

    assert controller.phase == "idle"
    assert controller.pending_timers() == 0
    assert scheduler.pending_count() == 0
    assert controller.snapshot().session_id is None

    cancelled = [snap for snap in seen if snap.event_log and snap.event_log[-1].message == "Emergency cancelled by user"]
    assert cancelled and cancelled[-1].phase == "countdown"
    assert seen[-1].phase == "idle"

    # Late ticks from the cancelled countdown never reach the next session.
    scheduler.advance(30.0)
    assert controller.phase == "idle"


def test_cancel_during_tracking_stops_every_timer():
    controller, scheduler = build_controller(ScriptedSampler(traffic_levels=("heavy",)))
    controller.trigger("high")
    advance_to_phase(controller, scheduler, "tracking")
    scheduler.advance(1.5)
    assert controller.pending_timers() > 0

    assert controller.cancel() is True
    assert controller.phase == "idle"
    assert scheduler.pending_count() == 0

    scheduler.advance(600.0)
    assert controller.phase == "idle"
    assert controller.statistics is None


def test_retrigger_after_cancel_starts_fresh_session():
    controller, scheduler = build_controller()
    controller.trigger("high")
    first_session = controller.snapshot().session_id
    scheduler.advance(5.0)
    controller.cancel()

    assert controller.trigger("low") is True
    snapshot = controller.snapshot()
    assert snapshot.session_id != first_session
    assert snapshot.urgency == "low"
    assert snapshot.countdown == 10
    assert [entry.message for entry in snapshot.event_log] == ["Emergency button pressed - 10 seconds to cancel"]

    scheduler.advance(4.0)
    assert controller.snapshot().countdown == 6


def test_cancel_when_idle_is_rejected():
    controller, _ = build_controller()
    assert controller.cancel() is False
    assert controller.phase == "idle"
