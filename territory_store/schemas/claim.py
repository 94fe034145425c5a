"""
Claim Payload Schema
====================

Bounded Context: Territory upload data structures

This module defines the payload uploaded to the territory store when a claim
is accepted.

Design:
- Column names match the store's territories table
- Path stored twice: as [{"lat", "lon"}] rows and as an EWKT polygon
- Bounding box precomputed for the store's spatial pre-filter

Message Flow:
    ClaimPipeline (ACCEPTED) → ClaimPayload → ClaimPublisher → MQTT → store
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Tuple

from territory_engine.geometry.shapes import BoundingBox, GeoPoint

from .common import Timestamp, path_from_rows, path_to_rows, polygon_to_wkt


@dataclass(frozen=True)
class ClaimPayload:
    """
    Upload payload for one accepted claim.

    Attributes:
        user_id: Claiming user
        path: Recorded path (device frame)
        area_m2: Validated enclosed area
        started_at: When recording started
        is_active: Territory active flag

    Invariants:
        - path has at least 3 points
        - area_m2 >= 0

    Example:
        >>> payload = ClaimPayload.from_path(
        ...     user_id="u-1",
        ...     path=points,
        ...     area_m2=1600.0,
        ...     started_at=datetime.now(timezone.utc),
        ... )
        >>> payload.to_dict()['polygon']
        'SRID=4326;POLYGON((...))'
    """
    user_id: str
    path: Tuple[GeoPoint, ...]
    area_m2: float
    started_at: Timestamp
    is_active: bool = True

    def __post_init__(self):
        """Validate invariants."""
        if not self.user_id:
            raise ValueError("user_id must be non-empty")
        object.__setattr__(self, 'path', tuple(self.path))
        if len(self.path) < 3:
            raise ValueError(f"Claim path needs at least 3 points, got {len(self.path)}")
        if self.area_m2 < 0:
            raise ValueError(f"area_m2 must be >= 0, got {self.area_m2}")

    @classmethod
    def from_path(
        cls,
        user_id: str,
        path,
        area_m2: float,
        started_at: datetime,
    ) -> 'ClaimPayload':
        """Build from engine values."""
        return cls(
            user_id=user_id,
            path=tuple(path),
            area_m2=float(area_m2),
            started_at=Timestamp.from_datetime(started_at),
        )

    @property
    def polygon_wkt(self) -> str:
        return polygon_to_wkt(self.path)

    @property
    def bbox(self) -> BoundingBox:
        return BoundingBox.from_points(self.path)

    @property
    def point_count(self) -> int:
        return len(self.path)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the store's column layout."""
        bbox = self.bbox
        return {
            'user_id': self.user_id,
            'path': path_to_rows(self.path),
            'polygon': self.polygon_wkt,
            'bbox_min_lat': bbox.min_lat,
            'bbox_max_lat': bbox.max_lat,
            'bbox_min_lon': bbox.min_lon,
            'bbox_max_lon': bbox.max_lon,
            'area': self.area_m2,
            'point_count': self.point_count,
            'started_at': self.started_at.to_dict(),
            'is_active': self.is_active,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ClaimPayload':
        """Deserialize from dict.

        Derived columns (polygon, bbox, point_count) are recomputed from path.

        Raises:
            ValueError: If required fields missing or invalid
        """
        try:
            return cls(
                user_id=str(data['user_id']),
                path=path_from_rows(data['path']),
                area_m2=float(data['area']),
                started_at=Timestamp(value=str(data['started_at'])),
                is_active=bool(data.get('is_active', True)),
            )
        except KeyError as e:
            raise ValueError(f"Missing required ClaimPayload field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid ClaimPayload data: {e}")
