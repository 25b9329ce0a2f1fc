from __future__ import annotations

import pytest

from sim_utils import NEAR_HOSPITAL, ScriptedSampler, advance_to_phase, build_controller


def _start_tracking(sampler: ScriptedSampler):
    controller, scheduler = build_controller(sampler)
    controller.trigger("high")
    advance_to_phase(controller, scheduler, "tracking")
    return controller, scheduler


def test_heavy_traffic_reroutes_to_faster_unit():
    sampler = ScriptedSampler(traffic_levels=("heavy",), delays=(8,), alternate_etas=(5,), unit_numbers=(214,))
    controller, scheduler = _start_tracking(sampler)

    scheduler.advance(1.3)
    snapshot = controller.snapshot()
    assert snapshot.traffic_level == "heavy"
    assert snapshot.delay_minutes == 8
    assert snapshot.eta_minutes == 12
    assert controller.event_log.messages()[-2:] == ["Heavy traffic detected!", "Ambulance delayed by 8 minutes"]

    scheduler.advance(0.4)
    assert controller.snapshot().reroute_count == 1
    assert controller.event_log.messages()[-2:] == [
        "Analyzing alternative options...",
        "Checking nearby hospitals for faster ambulances",
    ]

    scheduler.advance(3.0)
    snapshot = controller.snapshot()
    assert snapshot.backup_unit.id == "AMB-214"
    assert snapshot.backup_unit.origin_facility_name == "Hillside Trauma Centre"
    assert snapshot.primary_unit.status == "cancelled"
    assert snapshot.delay_minutes == 0
    assert snapshot.eta_minutes == 5
    assert controller.event_log.messages()[-5:] == [
        "Found faster option!",
        "AMB-214 from Hillside Trauma Centre",
        "New ETA: 5 minutes (7 min faster)",
        "Cancelling AMB-001",
        "Resources optimized successfully!",
    ]

    advance_to_phase(controller, scheduler, "complete")
    stats = controller.statistics
    assert stats.original_eta == 4
    assert stats.final_eta == 5
    assert stats.traffic_delay_minutes == 8
    assert stats.reroute_count == 1
    assert stats.unit_id == "AMB-214"
    assert stats.eta_history == (4, 12, 5)
    assert controller.event_log.messages().count("Analyzing alternative options...") == 1
    assert controller.event_log.messages()[-1] == "AMB-214 arrived successfully"
    assert controller.snapshot().backup_unit.status == "arrived"


def test_heavy_traffic_without_faster_option_keeps_primary():
    sampler = ScriptedSampler(traffic_levels=("heavy",), delays=(6,), alternate_etas=(20,))
    controller, scheduler = _start_tracking(sampler)
    scheduler.advance(5.0)

    snapshot = controller.snapshot()
    assert snapshot.reroute_count == 1
    assert snapshot.backup_unit is None
    assert snapshot.primary_unit.status == "dispatched"
    assert snapshot.eta_minutes == 10
    assert controller.event_log.messages()[-2:] == ["No faster alternatives found", "Continuing with original ambulance"]

    advance_to_phase(controller, scheduler, "complete")
    stats = controller.statistics
    assert stats.final_eta == 10
    assert stats.reroute_count == 1
    assert stats.unit_id == "AMB-001"


def test_heavy_traffic_with_single_hospital_keeps_primary():
    sampler = ScriptedSampler(traffic_levels=("heavy",), delays=(8,), alternate_etas=(5,))
    controller, scheduler = build_controller(sampler, hospitals=(NEAR_HOSPITAL,))
    controller.trigger("high")
    advance_to_phase(controller, scheduler, "tracking")
    scheduler.advance(5.0)

    snapshot = controller.snapshot()
    assert snapshot.selected_hospital.name == "Riverside General"
    assert snapshot.backup_unit is None
    assert snapshot.primary_unit.status == "dispatched"
    assert snapshot.eta_minutes == 12
    assert snapshot.reroute_count == 1
    messages = controller.event_log.messages()
    assert "Found faster option!" not in messages
    assert messages[-2:] == ["No faster alternatives found", "Continuing with original ambulance"]

    advance_to_phase(controller, scheduler, "complete")
    assert controller.statistics.reroute_count == 1
    assert controller.statistics.unit_id == "AMB-001"


def test_second_reroute_cancels_previous_backup():
    sampler = ScriptedSampler(traffic_check_ms=600000.0, delays=(9,), alternate_etas=(5, 3), unit_numbers=(214, 215))
    controller, scheduler = _start_tracking(sampler)

    controller.inject_traffic("heavy")
    scheduler.advance(3.5)
    assert controller.snapshot().backup_unit.id == "AMB-214"

    controller.inject_traffic("heavy")
    scheduler.advance(3.5)
    snapshot = controller.snapshot()
    assert snapshot.reroute_count == 2
    assert snapshot.primary_unit.status == "cancelled"
    assert snapshot.backup_unit.id == "AMB-215"
    assert snapshot.backup_unit.status == "dispatched"
    assert [(unit.id, unit.status) for unit in snapshot.replaced_units] == [("AMB-214", "cancelled")]
    assert snapshot.eta_minutes == 3
    assert "Cancelling AMB-214" in controller.event_log.messages()
    assert snapshot.as_dict()["replaced_units"][0]["id"] == "AMB-214"


def test_moderate_traffic_adds_delay_without_evaluation():
    sampler = ScriptedSampler(traffic_levels=("moderate",), delays=(3,), reroute_on_moderate=False)
    controller, scheduler = _start_tracking(sampler)
    scheduler.advance(10.0)

    snapshot = controller.snapshot()
    assert snapshot.traffic_level == "moderate"
    assert snapshot.eta_minutes == 7
    assert snapshot.reroute_count == 0
    messages = controller.event_log.messages()
    assert "Moderate traffic detected" in messages
    assert "Slight delay: +3 minutes" in messages
    assert "Analyzing alternative options..." not in messages


def test_moderate_traffic_may_trigger_evaluation():
    sampler = ScriptedSampler(traffic_levels=("moderate",), delays=(4,), reroute_on_moderate=True, alternate_etas=(6,))
    controller, scheduler = _start_tracking(sampler)
    scheduler.advance(1.3)
    assert controller.snapshot().reroute_count == 0
    scheduler.advance(0.6)
    assert controller.snapshot().reroute_count == 1
    scheduler.advance(3.0)
    snapshot = controller.snapshot()
    assert snapshot.backup_unit is not None
    assert snapshot.eta_minutes == 6
    assert "New ETA: 6 minutes (2 min faster)" in controller.event_log.messages()


def test_light_traffic_keeps_schedule():
    controller, scheduler = _start_tracking(ScriptedSampler(traffic_levels=("light",)))
    scheduler.advance(2.0)
    snapshot = controller.snapshot()
    assert snapshot.traffic_level == "light"
    assert snapshot.delay_minutes == 0
    assert snapshot.eta_minutes == 4
    assert "Clear roads - ambulance on schedule" in controller.event_log.messages()


def test_injected_heavy_traffic_runs_one_evaluation():
    sampler = ScriptedSampler(traffic_check_ms=600000.0, delays=(9,), alternate_etas=(20,))
    controller, scheduler = _start_tracking(sampler)

    assert controller.inject_traffic("heavy") is True
    assert controller.snapshot().eta_minutes == 13
    scheduler.advance(3.5)

    assert controller.snapshot().reroute_count == 1
    assert controller.event_log.messages().count("Analyzing alternative options...") == 1
    assert controller.event_log.messages()[-1] == "Continuing with original ambulance"


def test_inject_traffic_guards():
    controller, _ = build_controller()
    assert controller.inject_traffic("heavy") is False
    with pytest.raises(ValueError):
        controller.inject_traffic("gridlock")
