"""
Collision engine tests: containment, crossings, proximity tiers, ownership.
"""

import math

import pytest

from territory_engine.collision.engine import (
    CollisionEngine,
    CollisionKind,
    Territory,
    WarningLevel,
)


@pytest.fixture
def engine():
    return CollisionEngine()


@pytest.fixture
def foreign(make_territory):
    # 40 m square with its south-west corner at the origin
    return make_territory("u-2", 0.0, 0.0, 40.0)


def test_territory_drops_closing_vertex(make_path):
    ring = make_path([(0, 0), (0, 40), (40, 40), (40, 0), (0, 0)])
    territory = Territory(owner_id="u-2", polygon=tuple(ring))
    assert territory.vertices.shape == (4, 2)
    assert not territory.vertices.flags.writeable
    assert territory.is_usable


def test_territory_requires_owner(make_path):
    with pytest.raises(ValueError):
        Territory(owner_id="", polygon=tuple(make_path([(0, 0), (0, 1), (1, 1)])))


def test_ownership_is_case_insensitive(make_territory):
    territory = make_territory("User-A", 0.0, 0.0, 40.0)
    assert territory.is_owned_by("user-a")
    assert not territory.is_owned_by("user-b")


def test_start_inside_foreign_territory(engine, foreign, at):
    result = engine.check_start(at(20, 20), "u-1", [foreign])
    assert result.has_collision
    assert result.kind is CollisionKind.POINT_IN_TERRITORY
    assert result.warning_level is WarningLevel.VIOLATION


def test_start_inside_own_territory_is_allowed(engine, make_territory, at):
    own = make_territory("U-1", 0.0, 0.0, 40.0)
    result = engine.check_start(at(20, 20), "u-1", [own])
    assert not result.has_collision
    assert math.isinf(result.nearest_distance_m)
    assert result.warning_level is WarningLevel.SAFE


@pytest.mark.parametrize("distance, level", [
    (150.0, WarningLevel.SAFE),
    (75.0, WarningLevel.CAUTION),
    (30.0, WarningLevel.WARNING),
    (10.0, WarningLevel.DANGER),
])
def test_proximity_tiers(engine, foreign, at, distance, level):
    result = engine.check_proximity(at(-distance, 0.0), "u-1", [foreign])
    assert not result.has_collision
    assert result.warning_level is level
    assert result.nearest_distance_m == pytest.approx(distance, rel=1e-3)
    if level is WarningLevel.SAFE:
        assert result.message is None
    else:
        assert result.message.startswith(level.value.capitalize())


def test_nearest_distance_without_territories(engine, at):
    assert math.isinf(engine.nearest_distance(at(0, 0), []))


def test_degenerate_territory_is_ignored(engine, make_path, at):
    sliver = Territory(owner_id="u-2", polygon=tuple(make_path([(0, 0), (10, 10)])))
    assert not sliver.is_usable
    assert engine.foreign_territories("u-1", [sliver]) == ()
    assert not engine.check_start(at(5, 5), "u-1", [sliver]).has_collision


def test_path_crossing_territory(engine, foreign, make_path):
    # Both endpoints outside, the edge cuts through the square
    path = make_path([(-20.0, 20.0), (60.0, 20.0)])
    result = engine.check_path_against_territories(path, "u-1", [foreign])
    assert result.has_collision
    assert result.kind is CollisionKind.PATH_CROSSES_TERRITORY


def test_path_clear_of_territory(engine, foreign, make_path):
    path = make_path([(-20.0, -20.0), (-20.0, 60.0), (-40.0, 60.0)])
    assert not engine.check_path_against_territories(path, "u-1", [foreign]).has_collision


def test_own_territory_never_collides(engine, make_territory, make_path):
    own = make_territory("u-1", 0.0, 0.0, 40.0)
    path = make_path([(-20.0, 20.0), (60.0, 20.0)])
    assert not engine.check_path_against_territories(path, "u-1", [own]).has_collision


def test_comprehensive_reports_proximity_of_latest_point(engine, foreign, make_path):
    path = make_path([(-200.0, 0.0), (-100.0, 0.0), (-20.0, 0.0)])
    result = engine.check_comprehensive(path, "u-1", [foreign])
    assert not result.has_collision
    assert result.warning_level is WarningLevel.DANGER


def test_comprehensive_empty_path(engine, foreign):
    assert engine.check_comprehensive([], "u-1", [foreign]).warning_level is WarningLevel.SAFE
