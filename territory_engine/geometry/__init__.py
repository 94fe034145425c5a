"""
Geometry Layer
==============

Bounded Context: Pure geographic shapes and spatial queries.

Responsibilities:
- Value types (GeoPoint, TimedFix, BoundingBox)
- Great-circle distance, orientation and containment tests
- Self-intersection detection and spherical area
- Device/display coordinate frame conversion
- NO state, NO session bookkeeping

Design Philosophy:
- Free functions over plain coordinate structs
- Immutable data structures
- Total over well-formed input (degenerate input -> "not applicable")
"""

from territory_engine.geometry.shapes import (
    EARTH_RADIUS_M,
    GeoPoint,
    TimedFix,
    BoundingBox,
    haversine_m,
    distance_m,
    path_length_m,
    offset_point,
    ccw,
    segments_intersect,
    point_in_polygon,
)
from territory_engine.geometry.intersection import has_self_intersection, find_self_intersection
from territory_engine.geometry.area import enclosed_area_m2, format_area
from territory_engine.geometry import converter

__all__ = [
    "EARTH_RADIUS_M",
    "GeoPoint",
    "TimedFix",
    "BoundingBox",
    "haversine_m",
    "distance_m",
    "path_length_m",
    "offset_point",
    "ccw",
    "segments_intersect",
    "point_in_polygon",
    "has_self_intersection",
    "find_self_intersection",
    "enclosed_area_m2",
    "format_area",
    "converter",
]
