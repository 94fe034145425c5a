"""
Coordinate Converter Module
===========================

Transforms between the device frame (WGS-84, what GPS reports) and the map
display frame (GCJ-02, what mainland-China map tiles are drawn in).

Design:
- Stateless: every function is referentially transparent
- Forward transform is closed form; valid only inside the bounding box
  below, identity outside it
- Inverse has no closed form: fixed-point iteration with a bounded loop
- Used only at the rendering boundary, never on the validation path
"""

import logging
import math
from typing import List, Sequence

import numpy as np

from territory_engine.geometry.shapes import GeoPoint

logger = logging.getLogger(__name__)

# Krasovsky 1940 ellipsoid
SEMI_MAJOR_AXIS = 6378245.0
ECCENTRICITY_SQ = 0.00669342162296594323

# Reference origin of the offset polynomials
ORIGIN_LON = 105.0
ORIGIN_LAT = 35.0

# Region where the display frame differs from the device frame
MIN_LON, MAX_LON = 72.004, 137.8347
MIN_LAT, MAX_LAT = 0.8293, 55.8271

INVERSE_TOLERANCE_DEG = 1e-6
INVERSE_MAX_ITERATIONS = 30


def _in_region(lat: float, lon: float) -> bool:
    return MIN_LON <= lon <= MAX_LON and MIN_LAT <= lat <= MAX_LAT


def is_outside_region(point: GeoPoint) -> bool:
    """Whether the point lies outside the display frame's valid region."""
    return not _in_region(point.latitude, point.longitude)


def _transform_lat(x, y):
    ret = -100.0 + 2.0 * x + 3.0 * y + 0.2 * y * y + 0.1 * x * y + 0.2 * np.sqrt(np.abs(x))
    ret += (20.0 * np.sin(6.0 * x * math.pi) + 20.0 * np.sin(2.0 * x * math.pi)) * 2.0 / 3.0
    ret += (20.0 * np.sin(y * math.pi) + 40.0 * np.sin(y / 3.0 * math.pi)) * 2.0 / 3.0
    ret += (160.0 * np.sin(y / 12.0 * math.pi) + 320.0 * np.sin(y * math.pi / 30.0)) * 2.0 / 3.0
    return ret


def _transform_lon(x, y):
    ret = 300.0 + x + 2.0 * y + 0.1 * x * x + 0.1 * x * y + 0.1 * np.sqrt(np.abs(x))
    ret += (20.0 * np.sin(6.0 * x * math.pi) + 20.0 * np.sin(2.0 * x * math.pi)) * 2.0 / 3.0
    ret += (20.0 * np.sin(x * math.pi) + 40.0 * np.sin(x / 3.0 * math.pi)) * 2.0 / 3.0
    ret += (150.0 * np.sin(x / 12.0 * math.pi) + 300.0 * np.sin(x / 30.0 * math.pi)) * 2.0 / 3.0
    return ret


def _forward_offset(lat, lon):
    """
    Display-frame offset (d_lat, d_lon) in degrees.

    Works on scalars or numpy arrays alike.
    """
    d_lat = _transform_lat(lon - ORIGIN_LON, lat - ORIGIN_LAT)
    d_lon = _transform_lon(lon - ORIGIN_LON, lat - ORIGIN_LAT)

    rad_lat = np.radians(lat)
    magic = 1.0 - ECCENTRICITY_SQ * np.sin(rad_lat) ** 2
    sqrt_magic = np.sqrt(magic)

    d_lat = (d_lat * 180.0) / ((SEMI_MAJOR_AXIS * (1.0 - ECCENTRICITY_SQ)) / (magic * sqrt_magic) * math.pi)
    d_lon = (d_lon * 180.0) / (SEMI_MAJOR_AXIS / sqrt_magic * np.cos(rad_lat) * math.pi)
    return d_lat, d_lon


def to_display_frame(point: GeoPoint) -> GeoPoint:
    """
    Device frame (WGS-84) -> display frame (GCJ-02).

    Identity outside the valid region.
    """
    if is_outside_region(point):
        return point

    d_lat, d_lon = _forward_offset(point.latitude, point.longitude)
    return GeoPoint(
        latitude=float(point.latitude + d_lat),
        longitude=float(point.longitude + d_lon),
    )


def to_device_frame(
    point: GeoPoint,
    tolerance_deg: float = INVERSE_TOLERANCE_DEG,
    max_iterations: int = INVERSE_MAX_ITERATIONS,
) -> GeoPoint:
    """
    Display frame (GCJ-02) -> device frame (WGS-84) by fixed-point iteration.

    Repeatedly applies the forward transform to the working estimate and
    subtracts the forward error until both axis errors fall below
    tolerance_deg. The loop is bounded; on non-convergence the best
    estimate so far is returned.

    The region test applies to the device-frame estimate, not to the
    input: a device point just inside the boundary can be displayed just
    outside it.

    Args:
        point: Display-frame coordinate
        tolerance_deg: Convergence threshold per axis (degrees)
        max_iterations: Upper bound on forward evaluations

    Returns:
        Device-frame coordinate (identity when the estimate falls outside
        the valid region)
    """
    d_lat, d_lon = _forward_offset(point.latitude, point.longitude)
    est_lat = float(point.latitude - d_lat)
    est_lon = float(point.longitude - d_lon)
    if not _in_region(est_lat, est_lon):
        return point

    best_lat, best_lon, best_err = est_lat, est_lon, math.inf

    for _ in range(max_iterations):
        shown = to_display_frame(GeoPoint(latitude=est_lat, longitude=est_lon))
        err_lat = shown.latitude - point.latitude
        err_lon = shown.longitude - point.longitude

        err = max(abs(err_lat), abs(err_lon))
        if err < best_err:
            best_lat, best_lon, best_err = est_lat, est_lon, err
        if abs(err_lat) < tolerance_deg and abs(err_lon) < tolerance_deg:
            return GeoPoint(latitude=est_lat, longitude=est_lon)

        est_lat -= err_lat
        est_lon -= err_lon
    else:
        logger.warning(
            "Inverse frame transform did not converge after %d iterations "
            "(residual %.3e deg), returning best estimate",
            max_iterations,
            best_err,
        )

    return GeoPoint(latitude=best_lat, longitude=best_lon)


def convert_batch(points: Sequence[GeoPoint], to_display: bool = True) -> List[GeoPoint]:
    """
    Convert a sequence of points between frames.

    The forward direction is vectorised; points outside the valid region
    pass through unchanged.

    Args:
        points: Points to convert
        to_display: True for device -> display, False for display -> device

    Returns:
        Converted points, same order
    """
    if not points:
        return []

    if not to_display:
        return [to_device_frame(p) for p in points]

    lat = np.array([p.latitude for p in points], dtype=float)
    lon = np.array([p.longitude for p in points], dtype=float)
    inside = (lon >= MIN_LON) & (lon <= MAX_LON) & (lat >= MIN_LAT) & (lat <= MAX_LAT)

    d_lat, d_lon = _forward_offset(lat, lon)
    out_lat = np.where(inside, lat + d_lat, lat)
    out_lon = np.where(inside, lon + d_lon, lon)

    return [
        p if not ok else GeoPoint(latitude=float(la), longitude=float(lo))
        for p, ok, la, lo in zip(points, inside, out_lat, out_lon)
    ]
