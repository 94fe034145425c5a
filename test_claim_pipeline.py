"""
Claim pipeline tests: state machine, end-to-end claims, failures.
"""

from datetime import timedelta

import pytest

from territory_engine.config import EngineConfig, ValidationConfig
from territory_engine.pipeline import (
    ClaimPipelineBuilder,
    ClaimState,
    ClaimStateError,
)
from territory_engine.analytics.recorder import RecordOutcome
from territory_engine.validation.validator import FailureReason

from conftest import T0


@pytest.fixture
def pipeline():
    return ClaimPipelineBuilder().build()


def run(pipeline, fixes):
    return [pipeline.on_fix(f) for f in fixes]


def test_square_claim_end_to_end(pipeline, make_fixes, square_offsets):
    pipeline.start("u-1", started_at=T0)
    steps = run(pipeline, make_fixes(square_offsets[:11]))

    assert [s.state for s in steps[:-1]] == [ClaimState.RECORDING] * 10
    assert steps[-1].state is ClaimState.ACCEPTED
    assert steps[-1].validation.is_valid
    assert pipeline.validation_result.area_m2 == pytest.approx(1600.0, rel=0.02)

    payload = pipeline.build_payload()
    data = payload.to_dict()
    assert data["user_id"] == "u-1"
    assert data["point_count"] == 11
    assert data["started_at"] == "2025-06-01T08:00:00+00:00"
    assert data["polygon"].startswith("SRID=4326;POLYGON((121.47")

    pipeline.finish()
    assert pipeline.state is ClaimState.IDLE
    assert pipeline.session is None


def test_fixes_ignored_outside_recording(pipeline, make_fixes, square_offsets):
    fixes = make_fixes(square_offsets)
    step = pipeline.on_fix(fixes[0])
    assert step.state is ClaimState.IDLE
    assert step.outcome is None

    pipeline.start("u-1")
    run(pipeline, fixes[:11])
    assert pipeline.state is ClaimState.ACCEPTED
    step = pipeline.on_fix(fixes[11])
    assert step.state is ClaimState.ACCEPTED
    assert step.outcome is None
    assert pipeline.session.point_count == 11


def test_illegal_transitions(pipeline):
    with pytest.raises(ClaimStateError):
        pipeline.finish()
    with pytest.raises(ValueError):
        pipeline.start("")

    pipeline.start("u-1")
    with pytest.raises(ClaimStateError):
        pipeline.start("u-1")
    with pytest.raises(ClaimStateError):
        pipeline.finish()
    with pytest.raises(ClaimStateError):
        pipeline.build_payload()


def test_session_snapshot(pipeline, make_fixes, square_offsets):
    pipeline.start("u-1", started_at=T0)
    run(pipeline, make_fixes(square_offsets[:4]))
    session = pipeline.session
    assert session.owner_id == "u-1"
    assert session.point_count == 4
    assert not session.is_closed
    assert session.cumulative_distance_m == pytest.approx(40.0, rel=1e-3)
    assert pipeline.distance_to_start() == pytest.approx(40.0, rel=1e-3)


def test_sustained_overspeed_fails_claim(pipeline, make_fixes):
    offsets = [(0.0, 0.0), (10.0, 0.0), (20.0, 0.0), (30.0, 0.0), (42.0, 0.0), (54.0, 0.0)]
    fixes = make_fixes(offsets, interval_s=[10.0, 10.0, 10.0, 0.2, 0.2])
    pipeline.start("u-1")
    steps = run(pipeline, fixes)

    assert steps[4].state is ClaimState.RECORDING
    assert steps[4].is_warning
    assert steps[5].state is ClaimState.FAILED
    assert steps[5].failure_reason is FailureReason.OVERSPEED
    assert pipeline.failure_reason is FailureReason.OVERSPEED


def test_vehicle_speed_with_long_steps_fails_claim(pipeline, make_fixes):
    # 111 m every 2 s after a short walk; steps exceed the drift-jump limit
    offsets = [(0.0, 0.0), (10.0, 0.0), (20.0, 0.0), (30.0, 0.0)]
    offsets += [(30.0 + 111.0 * k, 0.0) for k in range(1, 6)]
    fixes = make_fixes(offsets, interval_s=[10.0, 10.0, 10.0] + [2.0] * 5)
    pipeline.start("u-1")
    steps = run(pipeline, fixes)

    assert pipeline.state is ClaimState.FAILED
    assert pipeline.failure_reason is FailureReason.OVERSPEED
    assert steps[4].outcome is RecordOutcome.SKIPPED_JUMP
    assert steps[4].is_warning


def test_speed_decision_absent_for_fixes_before_the_gate(pipeline, make_fixes):
    offsets = [(0.0, 0.0), (10.0, 0.0), (20.0, 0.0), (30.0, 0.0), (45.0, 0.0)]
    fixes = make_fixes(offsets, interval_s=[10.0, 10.0, 10.0, 0.9])
    pipeline.start("u-1")
    warned = run(pipeline, fixes)[-1]
    assert warned.is_warning

    noisy = make_fixes([(55.0, 0.0)], accuracy=80.0, start=fixes[-1].timestamp)[0]
    step = pipeline.on_fix(noisy)
    assert step.outcome is RecordOutcome.SKIPPED_LOW_ACCURACY
    assert step.speed_decision is None
    assert not step.is_warning


def test_start_inside_foreign_territory_fails(make_territory, make_fixes):
    territory = make_territory("u-2", -20.0, -20.0, 40.0)
    pipeline = ClaimPipelineBuilder().with_territories([territory]).build()
    pipeline.start("u-1")
    step = pipeline.on_fix(make_fixes([(0.0, 0.0)])[0])
    assert step.state is ClaimState.FAILED
    assert step.failure_reason is FailureReason.POINT_IN_TERRITORY
    assert step.collision.has_collision


def test_start_inside_own_territory(make_territory, make_fixes):
    territory = make_territory("U-1", -20.0, -20.0, 40.0)
    pipeline = ClaimPipelineBuilder().with_territories([territory]).build()
    pipeline.start("u-1")
    step = pipeline.on_fix(make_fixes([(0.0, 0.0)])[0])
    assert step.state is ClaimState.RECORDING
    assert step.appended


def test_edge_crossing_territory_fails(make_territory, make_fixes, square_offsets):
    # Small territory straddling the first side of the square
    territory = make_territory("u-2", 3.0, -3.0, 6.0)
    pipeline = ClaimPipelineBuilder().with_territories([territory]).build()
    pipeline.start("u-1")
    fixes = make_fixes(square_offsets)

    first = pipeline.on_fix(fixes[0])
    assert first.state is ClaimState.RECORDING
    assert first.collision.warning_level.value == "danger"

    second = pipeline.on_fix(fixes[1])
    assert second.state is ClaimState.FAILED
    assert second.failure_reason is FailureReason.PATH_CROSSES_TERRITORY
    assert pipeline.on_fix(fixes[2]).outcome is None


def test_territory_refresh_and_timer_check(pipeline, make_territory, make_fixes, square_offsets):
    pipeline.start("u-1")
    run(pipeline, make_fixes(square_offsets[:5]))
    assert pipeline.on_timer_tick().has_collision is False

    # New territory lands across an already-walked edge
    pipeline.update_territories([make_territory("u-2", 15.0, -5.0, 10.0)])
    assert len(pipeline.territories) == 1
    result = pipeline.on_timer_tick()
    assert result.has_collision
    assert pipeline.state is ClaimState.FAILED
    assert pipeline.failure_reason is FailureReason.PATH_CROSSES_TERRITORY

    # Outside RECORDING the last result is returned unchanged
    assert pipeline.on_timer_tick() is result


def test_tick_if_due_respects_interval(pipeline):
    pipeline.start("u-1")
    assert pipeline.tick_if_due(T0) is not None
    assert pipeline.tick_if_due(T0 + timedelta(seconds=5)) is None
    assert pipeline.tick_if_due(T0 + timedelta(seconds=10)) is not None


def test_rejected_claim(make_fixes, square_offsets):
    config = EngineConfig(validation=ValidationConfig(min_area_m2=5000.0))
    pipeline = ClaimPipelineBuilder().with_config(config).build()
    pipeline.start("u-1")
    steps = run(pipeline, make_fixes(square_offsets[:11]))

    assert steps[-1].state is ClaimState.REJECTED
    assert steps[-1].validation.reason is FailureReason.AREA_TOO_SMALL
    with pytest.raises(ClaimStateError):
        pipeline.build_payload()
    pipeline.finish()
    assert pipeline.state is ClaimState.IDLE


def test_cancel_from_any_state(pipeline, make_fixes, square_offsets):
    pipeline.cancel()
    assert pipeline.state is ClaimState.IDLE

    pipeline.start("u-1")
    steps = run(pipeline, make_fixes(square_offsets[:3]))
    assert all(s.outcome is RecordOutcome.APPENDED for s in steps)

    pipeline.cancel()
    assert pipeline.state is ClaimState.IDLE
    assert len(pipeline.recorder.path) == 0

    # A fresh attempt starts from an empty path
    pipeline.start("u-1")
    assert pipeline.session.point_count == 0
