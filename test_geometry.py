"""
Geometry layer tests: distance, self-intersection, area, containment.
"""

import math

import pytest

from territory_engine.geometry.area import enclosed_area_m2, format_area
from territory_engine.geometry.intersection import find_self_intersection, has_self_intersection
from territory_engine.geometry.shapes import (
    BoundingBox,
    GeoPoint,
    distance_m,
    path_length_m,
    point_in_polygon,
    segments_intersect,
)


def lemniscate(make_path, size_m=50.0, samples=24, phase=math.pi / 2 + 0.1):
    """Figure-eight whose single crossing falls in the middle of the path."""
    offsets = []
    for k in range(samples):
        t = phase + 2 * math.pi * k / samples
        x = size_m * math.sin(t)
        y = x * math.cos(t)
        offsets.append((y, x))
    return make_path(offsets)


def test_geo_point_validates_ranges():
    with pytest.raises(ValueError):
        GeoPoint(latitude=91.0, longitude=0.0)
    with pytest.raises(ValueError):
        GeoPoint(latitude=0.0, longitude=-180.5)


def test_geo_point_dict_rows():
    p = GeoPoint.from_dict({"lat": 31.23, "lon": 121.47})
    assert p.to_dict() == {"lat": 31.23, "lon": 121.47}

    with pytest.raises(ValueError):
        GeoPoint.from_dict({"lat": 31.23})
    with pytest.raises(ValueError):
        GeoPoint.from_dict({"lat": "north", "lon": 1.0})


def test_distance_matches_offsets(at):
    assert distance_m(at(0, 0), at(100, 0)) == pytest.approx(100.0, rel=1e-3)
    assert distance_m(at(0, 0), at(0, 100)) == pytest.approx(100.0, rel=1e-3)
    assert distance_m(at(0, 0), at(30, 40)) == pytest.approx(50.0, rel=1e-3)


def test_path_length(make_path, square_offsets):
    path = make_path(square_offsets)
    # Open path: three full sides plus two thirds of the fourth
    assert path_length_m(path) == pytest.approx(40.0 * 3 + 40.0 * 2 / 3, rel=1e-3)
    assert path_length_m(path[:1]) == 0.0


def test_bounding_box(make_path):
    path = make_path([(0, 0), (10, 20), (-5, 3)])
    box = BoundingBox.from_points(path)
    assert box.min_lat == path[2].latitude
    assert box.max_lat == path[1].latitude
    assert box.min_lon == path[0].longitude
    assert box.max_lon == path[1].longitude
    assert BoundingBox.from_points([]) == BoundingBox(0.0, 0.0, 0.0, 0.0)


def test_segments_intersect(at):
    assert segments_intersect(at(0, 0), at(10, 10), at(0, 10), at(10, 0))
    assert not segments_intersect(at(0, 0), at(10, 0), at(0, 5), at(10, 5))


def test_convex_loop_does_not_self_intersect(make_path, square_offsets):
    path = make_path(square_offsets)
    assert not has_self_intersection(path)
    assert not has_self_intersection(list(reversed(path)))


def test_figure_eight_self_intersects(make_path):
    path = lemniscate(make_path)
    crossing = find_self_intersection(path)
    assert crossing is not None
    i, j = crossing
    assert j >= i + 2


def test_self_intersection_is_symmetric_under_reversal(make_path, square_offsets):
    for path in (lemniscate(make_path), make_path(square_offsets), lemniscate(make_path, samples=40)):
        assert has_self_intersection(path) == has_self_intersection(list(reversed(path)))


def test_short_paths_never_self_intersect(at):
    assert not has_self_intersection([])
    assert not has_self_intersection([at(0, 0), at(10, 10), at(0, 10)])


def test_closing_overlap_is_tolerated(make_path, square_offsets):
    # Overshooting the start: the last edge crosses the first edge
    path = make_path(square_offsets + [(6.0, -4.0)])
    assert not has_self_intersection(path)
    assert has_self_intersection(path, skip_window=0)


def test_negative_skip_window_rejected(make_path, square_offsets):
    with pytest.raises(ValueError):
        find_self_intersection(make_path(square_offsets), skip_window=-1)


def test_square_area(make_path):
    square = make_path([(0, 0), (40, 0), (40, 40), (0, 40)])
    assert enclosed_area_m2(square) == pytest.approx(1600.0, rel=0.01)


def test_area_scales_quadratically(make_path):
    small = enclosed_area_m2(make_path([(0, 0), (40, 0), (40, 40), (0, 40)]))
    large = enclosed_area_m2(make_path([(0, 0), (80, 0), (80, 80), (0, 80)]))
    assert large / small == pytest.approx(4.0, rel=0.01)


def test_area_is_orientation_independent(make_path, square_offsets):
    path = make_path(square_offsets)
    assert enclosed_area_m2(path) == pytest.approx(enclosed_area_m2(list(reversed(path))))


def test_area_degenerate_input(at):
    assert enclosed_area_m2([]) == 0.0
    assert enclosed_area_m2([at(0, 0), at(10, 10)]) == 0.0


def test_format_area():
    assert format_area(850.4) == "850 m²"
    assert format_area(1_250_000) == "1.25 km²"


def test_point_in_polygon(make_path, at):
    square = make_path([(0, 0), (40, 0), (40, 40), (0, 40)])
    assert point_in_polygon(at(20, 20), square)
    assert not point_in_polygon(at(500, 500), square)
    assert not point_in_polygon(at(20, 60), square)
    assert not point_in_polygon(at(20, 20), square[:2])
