"""
Common Schema Types
==================

Bounded Context: Shared Data Structures

This module defines common types used across claim and territory messages.

Design Principles:
- Immutability: frozen=True prevents accidental mutation
- Type Safety: All fields explicitly typed
- Serialization: to_dict() for JSON export
- Validation: Constructor validates invariants

Types:
- Timestamp: ISO 8601 timestamp wrapper
- WKT helpers: PostGIS EWKT polygon encoding (longitude first)
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Sequence, Tuple

from territory_engine.geometry.shapes import GeoPoint

SRID = 4326

_WKT_PATTERN = re.compile(r"^\s*(?:SRID=(\d+);)?\s*POLYGON\s*\(\(\s*(.+?)\s*\)\)\s*$", re.IGNORECASE)


@dataclass(frozen=True)
class Timestamp:
    """
    Immutable ISO 8601 timestamp wrapper.

    Provides type-safe timestamp handling with serialization.

    Attributes:
        value: ISO 8601 formatted timestamp string

    Example:
        >>> ts = Timestamp.from_datetime(datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc))
        >>> ts.value
        '2025-01-02T03:04:05+00:00'
    """
    value: str

    @classmethod
    def now(cls) -> 'Timestamp':
        """Create timestamp from current time (UTC)."""
        return cls(value=datetime.now(timezone.utc).isoformat())

    @classmethod
    def from_datetime(cls, dt: datetime) -> 'Timestamp':
        """Create timestamp from datetime object."""
        return cls(value=dt.isoformat())

    def to_datetime(self) -> datetime:
        """Parse to datetime object.

        Returns:
            datetime instance

        Raises:
            ValueError: If timestamp format invalid
        """
        try:
            return datetime.fromisoformat(self.value)
        except ValueError as e:
            raise ValueError(f"Invalid ISO timestamp: {self.value}") from e

    def to_dict(self) -> str:
        """Serialize to JSON (as string)."""
        return self.value


def polygon_to_wkt(points: Sequence[GeoPoint], srid: int = SRID) -> str:
    """
    Encode a ring as PostGIS EWKT.

    Coordinates are written longitude first; the ring is explicitly closed
    by repeating the first vertex unless it already is.

    Example:
        >>> polygon_to_wkt([GeoPoint(0, 0), GeoPoint(0, 1), GeoPoint(1, 1)])
        'SRID=4326;POLYGON((0 0, 1 0, 1 1, 0 0))'
    """
    if len(points) < 3:
        raise ValueError(f"Polygon needs at least 3 points, got {len(points)}")

    ring = list(points)
    if not ring[0].is_close(ring[-1]):
        ring.append(ring[0])

    coords = ", ".join(f"{_fmt(p.longitude)} {_fmt(p.latitude)}" for p in ring)
    return f"SRID={srid};POLYGON(({coords}))"


def polygon_from_wkt(wkt: str) -> Tuple[GeoPoint, ...]:
    """
    Decode a single-ring (E)WKT polygon into GeoPoints.

    Raises:
        ValueError: If the text is not a single-ring polygon
    """
    match = _WKT_PATTERN.match(wkt or "")
    if match is None:
        raise ValueError(f"Unsupported polygon WKT: {wkt!r}")

    points: List[GeoPoint] = []
    for pair in match.group(2).split(","):
        parts = pair.split()
        if len(parts) != 2:
            raise ValueError(f"Invalid WKT coordinate: {pair!r}")
        lon, lat = (float(v) for v in parts)
        points.append(GeoPoint(latitude=lat, longitude=lon))
    return tuple(points)


def path_to_rows(points: Sequence[GeoPoint]) -> List[Dict[str, float]]:
    """Serialize points to the store's [{"lat", "lon"}] column format."""
    return [p.to_dict() for p in points]


def path_from_rows(rows: Sequence[Dict[str, float]]) -> Tuple[GeoPoint, ...]:
    """Deserialize [{"lat", "lon"}] rows (raises ValueError on bad rows)."""
    if not isinstance(rows, (list, tuple)):
        raise ValueError(f"path must be a list of points, got {type(rows).__name__}")
    return tuple(GeoPoint.from_dict(row) for row in rows)


def _fmt(value: float) -> str:
    return repr(float(value)) if value != int(value) else str(int(value))
