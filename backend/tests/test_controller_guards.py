from __future__ import annotations

import pytest

from dispatch_core.port import SessionPort
from sim_utils import advance_to_phase, build_controller


def test_duplicate_trigger_leaves_active_session_untouched():
    controller, scheduler = build_controller()
    controller.trigger("high")
    scheduler.advance(3.0)
    session_id = controller.snapshot().session_id
    log_length = len(controller.event_log)

    assert controller.trigger("low") is False
    assert len(controller.event_log) == log_length
    snapshot = controller.snapshot()
    assert snapshot.session_id == session_id
    assert snapshot.urgency == "high"
    assert snapshot.phase == "countdown"
    assert snapshot.countdown == 7


def test_duplicate_trigger_during_tracking_is_ignored():
    controller, scheduler = build_controller()
    controller.trigger("high")
    advance_to_phase(controller, scheduler, "tracking")
    log_length = len(controller.event_log)
    assert controller.trigger("high") is False
    assert controller.phase == "tracking"
    assert len(controller.event_log) == log_length


def test_unknown_urgency_rejected():
    controller, _ = build_controller()
    with pytest.raises(ValueError):
        controller.trigger("critical")
    assert controller.phase == "idle"


def test_cancel_rejected_during_calling():
    controller, scheduler = build_controller()
    controller.trigger("high")
    scheduler.advance(10.5)
    assert controller.phase == "calling"
    assert controller.cancel() is False
    assert controller.phase == "calling"


def test_acknowledge_only_after_completion():
    controller, scheduler = build_controller()
    assert controller.acknowledge() is False
    controller.trigger("high")
    assert controller.acknowledge() is False
    assert controller.phase == "countdown"

    advance_to_phase(controller, scheduler, "complete")
    assert controller.statistics is not None
    assert controller.cancel() is False
    assert controller.acknowledge() is True
    assert controller.phase == "idle"
    assert controller.statistics is None
    assert controller.snapshot().event_log == ()


def test_subscribers_see_every_phase_and_can_unsubscribe():
    controller, scheduler = build_controller()
    phases: list[str] = []
    unsubscribe = controller.subscribe(lambda snap: phases.append(snap.phase))

    controller.trigger("high")
    advance_to_phase(controller, scheduler, "complete")
    seen = list(dict.fromkeys(phases))
    assert seen == ["countdown", "calling", "dispatch", "tracking", "complete"]

    unsubscribe()
    unsubscribe()
    count = len(phases)
    controller.acknowledge()
    assert len(phases) == count


def test_failing_listener_does_not_break_others():
    controller, scheduler = build_controller()
    received: list[str] = []

    def broken(_snapshot):
        raise RuntimeError("listener exploded")

    controller.subscribe(broken)
    controller.subscribe(lambda snap: received.append(snap.phase))
    assert controller.trigger("high") is True
    scheduler.advance(1.0)
    assert received[:2] == ["countdown", "countdown"]


def test_stale_port_is_a_no_op():
    controller, scheduler = build_controller()
    controller.trigger("high")
    port = SessionPort(controller, "not-the-session-token")
    assert port.valid is False

    port.log("Ambulance 25% of the way to you")
    port.set_progress(80.0)
    port.after(0.1, lambda: pytest.fail("stale callback scheduled"), tag="stale")
    scheduler.advance(0.5)

    assert "Ambulance 25% of the way to you" not in controller.event_log.messages()
    assert controller.snapshot().progress_percent == 0.0
    assert port.timer_active("stale") is False


def test_port_from_previous_session_cannot_touch_new_one():
    controller, scheduler = build_controller()
    controller.trigger("high")
    old_port = controller._countdown._port
    scheduler.advance(2.0)
    controller.cancel()
    controller.trigger("medium")

    old_port.set_countdown(1)
    old_port.countdown_expired()
    assert controller.phase == "countdown"
    assert controller.snapshot().countdown == 10
