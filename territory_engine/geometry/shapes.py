"""
Geographic Shapes Module
========================

Pure geographic primitives - NO state, NO side effects.

Design:
- Immutable value types (frozen dataclass pattern)
- Free functions over plain coordinates (distance, orientation, containment)
- Planar orientation test with longitude as x and latitude as y
- Thread-safe by design (immutability)
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, Sequence

import numpy as np

EARTH_RADIUS_M = 6_371_000.0  # mean Earth radius


@dataclass(frozen=True)
class GeoPoint:
    """
    Immutable geographic coordinate in decimal degrees.

    Attributes:
        latitude: Latitude in degrees, [-90, 90]
        longitude: Longitude in degrees, [-180, 180]

    Example:
        >>> p = GeoPoint(latitude=31.2304, longitude=121.4737)
        >>> p.to_dict()
        {'lat': 31.2304, 'lon': 121.4737}
    """

    latitude: float
    longitude: float

    def __post_init__(self):
        """Validate coordinate ranges."""
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude must be in [-90, 90], got {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude must be in [-180, 180], got {self.longitude}")

    def is_close(self, other: "GeoPoint", tolerance_deg: float = 1e-9) -> bool:
        """Coordinate equality within a tolerance (degrees)."""
        return (
            abs(self.latitude - other.latitude) <= tolerance_deg
            and abs(self.longitude - other.longitude) <= tolerance_deg
        )

    def to_dict(self) -> Dict[str, float]:
        """Serialize to the store's {"lat", "lon"} row format."""
        return {"lat": self.latitude, "lon": self.longitude}

    @classmethod
    def from_dict(cls, data: Dict[str, float]) -> "GeoPoint":
        """Deserialize from a {"lat", "lon"} row.

        Raises:
            ValueError: If keys are missing or values invalid
        """
        try:
            return cls(latitude=float(data["lat"]), longitude=float(data["lon"]))
        except KeyError as e:
            raise ValueError(f"Missing required GeoPoint field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid GeoPoint data: {e}")


@dataclass(frozen=True)
class TimedFix:
    """
    One location sample delivered by the location provider.

    Attributes:
        point: Coordinate in the provider's native (device) frame
        timestamp: Sample time (timezone-aware recommended)
        horizontal_accuracy_m: Reported accuracy radius; negative means invalid
    """

    point: GeoPoint
    timestamp: datetime
    horizontal_accuracy_m: float = 0.0

    @property
    def has_valid_accuracy(self) -> bool:
        return self.horizontal_accuracy_m >= 0.0


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned lat/lon bounding box."""

    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    @classmethod
    def from_points(cls, points: Sequence[GeoPoint]) -> "BoundingBox":
        """Bounding box of a point sequence (all zeros when empty)."""
        if not points:
            return cls(0.0, 0.0, 0.0, 0.0)
        lats = [p.latitude for p in points]
        lons = [p.longitude for p in points]
        return cls(min(lats), max(lats), min(lons), max(lons))

    def contains(self, point: GeoPoint) -> bool:
        return (
            self.min_lat <= point.latitude <= self.max_lat
            and self.min_lon <= point.longitude <= self.max_lon
        )


# ─────────────────────────────────────────────────────────────────────────────
# Distance
# ─────────────────────────────────────────────────────────────────────────────

def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance in meters between two lat/lon points.

    Args:
        lat1: Latitude 1 in degrees
        lon1: Longitude 1 in degrees
        lat2: Latitude 2 in degrees
        lon2: Longitude 2 in degrees

    Returns:
        Distance in meters
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_M * c


def distance_m(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between two GeoPoints (meters)."""
    return haversine_m(a.latitude, a.longitude, b.latitude, b.longitude)


def haversine_many_m(point: GeoPoint, vertices: np.ndarray) -> np.ndarray:
    """
    Vectorised great-circle distance from one point to many vertices.

    Args:
        point: Reference point
        vertices: Nx2 array of (lat, lon) in degrees

    Returns:
        Array of N distances in meters
    """
    if len(vertices) == 0:
        return np.array([], dtype=float)

    lat1 = math.radians(point.latitude)
    lon1 = math.radians(point.longitude)
    lat2 = np.radians(vertices[:, 0])
    lon2 = np.radians(vertices[:, 1])

    a = np.sin((lat2 - lat1) / 2.0) ** 2 + math.cos(lat1) * np.cos(lat2) * np.sin((lon2 - lon1) / 2.0) ** 2
    return EARTH_RADIUS_M * 2.0 * np.arctan2(np.sqrt(a), np.sqrt(1.0 - a))


def path_length_m(points: Sequence[GeoPoint]) -> float:
    """Sum of great-circle distances along an open path."""
    return sum(distance_m(points[i], points[i + 1]) for i in range(len(points) - 1))


def offset_point(origin: GeoPoint, north_m: float, east_m: float) -> GeoPoint:
    """
    Point displaced from origin by a local north/east offset in meters.

    Small-offset approximation on the mean sphere; adequate for
    pedestrian-scale loops.
    """
    d_lat = math.degrees(north_m / EARTH_RADIUS_M)
    d_lon = math.degrees(east_m / (EARTH_RADIUS_M * math.cos(math.radians(origin.latitude))))
    return GeoPoint(latitude=origin.latitude + d_lat, longitude=origin.longitude + d_lon)


# ─────────────────────────────────────────────────────────────────────────────
# Orientation & segment crossing
# ─────────────────────────────────────────────────────────────────────────────

def ccw(a: GeoPoint, b: GeoPoint, c: GeoPoint) -> bool:
    """
    Counter-clockwise test for the triangle (a, b, c).

    Uses longitude as x and latitude as y:
    (c - a) x (b - a) sign, True when c lies counter-clockwise of a->b.
    """
    return (c.latitude - a.latitude) * (b.longitude - a.longitude) > (
        b.latitude - a.latitude
    ) * (c.longitude - a.longitude)


def segments_intersect(p1: GeoPoint, p2: GeoPoint, p3: GeoPoint, p4: GeoPoint) -> bool:
    """
    Whether segment p1-p2 crosses segment p3-p4 (four-orientation test).

    Returns:
        True iff ccw(p1,p3,p4) != ccw(p2,p3,p4) and ccw(p1,p2,p3) != ccw(p1,p2,p4)
    """
    return ccw(p1, p3, p4) != ccw(p2, p3, p4) and ccw(p1, p2, p3) != ccw(p1, p2, p4)


def _ccw_many(ax, ay, bx, by, cx, cy) -> np.ndarray:
    return (cy - ay) * (bx - ax) > (by - ay) * (cx - ax)


def segment_crosses_ring(p1: GeoPoint, p2: GeoPoint, ring: np.ndarray) -> bool:
    """
    Whether segment p1-p2 crosses any edge of a closed ring.

    Vectorised form of segments_intersect() against every edge
    (ring[j], ring[j+1 mod N]).

    Args:
        p1: Segment start
        p2: Segment end
        ring: Nx2 array of (lat, lon) vertices, implicitly closed
    """
    if len(ring) < 2:
        return False

    y3 = ring[:, 0]
    x3 = ring[:, 1]
    y4 = np.roll(y3, -1)
    x4 = np.roll(x3, -1)
    x1, y1 = p1.longitude, p1.latitude
    x2, y2 = p2.longitude, p2.latitude

    d1 = _ccw_many(x1, y1, x3, y3, x4, y4)
    d2 = _ccw_many(x2, y2, x3, y3, x4, y4)
    d3 = _ccw_many(x1, y1, x2, y2, x3, y3)
    d4 = _ccw_many(x1, y1, x2, y2, x4, y4)
    return bool(np.any((d1 != d2) & (d3 != d4)))


# ─────────────────────────────────────────────────────────────────────────────
# Containment
# ─────────────────────────────────────────────────────────────────────────────

def point_in_polygon(point: GeoPoint, polygon: Sequence[GeoPoint]) -> bool:
    """
    Ray-casting containment test.

    Casts a horizontal ray (constant latitude) from the point and counts
    crossings with the polygon's edges; an odd count means inside.

    Args:
        point: Point to test
        polygon: Ring vertices (closing vertex optional)

    Returns:
        True if the point is inside, False otherwise or for < 3 vertices
    """
    if len(polygon) < 3:
        return False
    return point_in_ring(point, as_vertex_array(polygon))


def point_in_ring(point: GeoPoint, ring: np.ndarray) -> bool:
    """Vectorised ray casting against an Nx2 (lat, lon) ring."""
    if len(ring) < 3:
        return False

    x = point.longitude
    y = point.latitude
    yi = ring[:, 0]
    xi = ring[:, 1]
    yj = np.roll(yi, 1)
    xj = np.roll(xi, 1)

    straddles = (yi > y) != (yj > y)
    if not np.any(straddles):
        return False

    # Only straddling edges have yj != yi, so the division is safe there
    xs = (xj[straddles] - xi[straddles]) * (y - yi[straddles]) / (yj[straddles] - yi[straddles]) + xi[straddles]
    crossings = int(np.count_nonzero(x < xs))
    return crossings % 2 == 1


def as_vertex_array(points: Iterable[GeoPoint]) -> np.ndarray:
    """Nx2 float array of (lat, lon) from GeoPoints."""
    arr = np.array([(p.latitude, p.longitude) for p in points], dtype=float)
    if arr.size == 0:
        return np.zeros((0, 2), dtype=float)
    return arr
