"""
Shared fixtures for the territory claim engine tests.

Paths are built as local north/east offsets (meters) around a fixed origin
in Shanghai, so the tests read in meters rather than degrees.
"""

from datetime import datetime, timedelta, timezone

import pytest

from territory_engine.collision.engine import Territory
from territory_engine.geometry.shapes import GeoPoint, TimedFix, offset_point

ORIGIN = GeoPoint(latitude=31.2300, longitude=121.4700)
T0 = datetime(2025, 6, 1, 8, 0, 0, tzinfo=timezone.utc)

THIRD = 40.0 / 3.0

# 40 m x 40 m square walked counter-clockwise (north, east), ~13.3 m steps
SQUARE_40M = [
    (0.0, 0.0), (THIRD, 0.0), (2 * THIRD, 0.0), (40.0, 0.0),
    (40.0, THIRD), (40.0, 2 * THIRD), (40.0, 40.0),
    (2 * THIRD, 40.0), (THIRD, 40.0), (0.0, 40.0),
    (0.0, 2 * THIRD), (0.0, THIRD),
]


@pytest.fixture
def origin() -> GeoPoint:
    return ORIGIN


@pytest.fixture
def at():
    """at(north_m, east_m) -> GeoPoint offset from the origin."""
    def _at(north_m: float, east_m: float) -> GeoPoint:
        return offset_point(ORIGIN, north_m, east_m)
    return _at


@pytest.fixture
def make_path(at):
    """make_path([(north, east), ...]) -> list of GeoPoints."""
    def _make(offsets):
        return [at(n, e) for n, e in offsets]
    return _make


@pytest.fixture
def make_fixes(at):
    """
    make_fixes(offsets, interval_s=10.0, accuracy=5.0, start=T0) -> list of TimedFix.

    interval_s may be a number or a list of per-step intervals.
    """
    def _make(offsets, interval_s=10.0, accuracy=5.0, start=T0):
        fixes = []
        t = start
        for index, (n, e) in enumerate(offsets):
            if index > 0:
                step = interval_s[index - 1] if isinstance(interval_s, (list, tuple)) else interval_s
                t = t + timedelta(seconds=step)
            fixes.append(TimedFix(point=at(n, e), timestamp=t, horizontal_accuracy_m=accuracy))
        return fixes
    return _make


@pytest.fixture
def square_offsets():
    return list(SQUARE_40M)


@pytest.fixture
def make_territory(make_path):
    """make_territory(owner_id, south_m, west_m, size_m) -> square Territory."""
    def _make(owner_id, south_m, west_m, size_m, territory_id="t-1"):
        polygon = make_path([
            (south_m, west_m),
            (south_m, west_m + size_m),
            (south_m + size_m, west_m + size_m),
            (south_m + size_m, west_m),
        ])
        return Territory(owner_id=owner_id, polygon=tuple(polygon), area_m2=size_m * size_m,
                         territory_id=territory_id)
    return _make
