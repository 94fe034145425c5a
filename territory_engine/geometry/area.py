"""
Spherical Area Module
=====================

Enclosed area of a walked loop.

Spherical-excess shoelace variant: for each vertex pair (wrapping),
accumulate (lon2 - lon1) * (2 + sin(lat1) + sin(lat2)) in radians, then
scale by R^2 / 2. Accurate for pedestrian-scale loops up to a few km.
"""

from typing import Sequence

import numpy as np

from territory_engine.geometry.shapes import EARTH_RADIUS_M, GeoPoint, as_vertex_array


def enclosed_area_m2(path: Sequence[GeoPoint]) -> float:
    """
    Area enclosed by the implicitly closed ring of a path, in square meters.

    Args:
        path: Ring vertices; the last point wraps back to the first

    Returns:
        Absolute area in m^2, or 0.0 for fewer than 3 points
    """
    if len(path) < 3:
        return 0.0

    vertices = np.radians(as_vertex_array(path))
    lat1 = vertices[:, 0]
    lon1 = vertices[:, 1]
    lat2 = np.roll(lat1, -1)
    lon2 = np.roll(lon1, -1)

    total = np.sum((lon2 - lon1) * (2.0 + np.sin(lat1) + np.sin(lat2)))
    return float(abs(total * EARTH_RADIUS_M * EARTH_RADIUS_M / 2.0))


def format_area(area_m2: float) -> str:
    """Human-readable area ("850 m²" or "1.25 km²")."""
    if area_m2 >= 1_000_000:
        return f"{area_m2 / 1_000_000:.2f} km²"
    return f"{area_m2:.0f} m²"
