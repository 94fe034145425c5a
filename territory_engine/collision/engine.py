"""
Collision Engine Module
=======================

Spatial relationship between a claim in progress and other owners'
territories.

Design:
- Territory: immutable, vertices cached once as a read-only array
- Stateless engine: every call reads one territory snapshot (a tuple)
- Own territories are never a collision (owner ids compared case-insensitively)
- Degenerate territories (< 3 vertices) are ignored, never an error
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from territory_engine.config import ProximityConfig
from territory_engine.geometry.shapes import (
    BoundingBox,
    GeoPoint,
    as_vertex_array,
    haversine_many_m,
    point_in_ring,
    segment_crosses_ring,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Territory:
    """
    Immutable territory owned by some player.

    Design:
    - Vertex array created once at init (read-only)
    - Closing vertex, if present, is dropped from the cached ring
    - Thread-safe (no mutable state)

    Attributes:
        owner_id: Owning user id
        polygon: Ring vertices (closing vertex optional)
        area_m2: Stored area
        territory_id: Store primary key
        name: Display name
    """

    owner_id: str
    polygon: Tuple[GeoPoint, ...]
    area_m2: float = 0.0
    territory_id: Optional[str] = None
    name: Optional[str] = None

    def __post_init__(self):
        """Normalize polygon and cache the vertex ring."""
        if not self.owner_id:
            raise ValueError("owner_id must be non-empty")
        if self.area_m2 < 0:
            raise ValueError(f"area_m2 must be >= 0, got {self.area_m2}")

        polygon = tuple(self.polygon)
        object.__setattr__(self, "polygon", polygon)

        ring = list(polygon)
        if len(ring) > 1 and ring[0].is_close(ring[-1]):
            ring = ring[:-1]

        vertices = as_vertex_array(ring)
        vertices.flags.writeable = False
        object.__setattr__(self, "_vertices", vertices)
        object.__setattr__(self, "_bbox", BoundingBox.from_points(ring))

    @property
    def vertices(self) -> np.ndarray:
        """Nx2 read-only (lat, lon) ring without closing vertex."""
        return self._vertices

    @property
    def bbox(self) -> BoundingBox:
        return self._bbox

    @property
    def is_usable(self) -> bool:
        return len(self._vertices) >= 3

    def is_owned_by(self, owner_id: str) -> bool:
        return self.owner_id.lower() == (owner_id or "").lower()

    def contains(self, point: GeoPoint) -> bool:
        """Ray-casting containment (bbox pre-check)."""
        if not self.is_usable or not self._bbox.contains(point):
            return False
        return point_in_ring(point, self._vertices)

    def crossed_by(self, start: GeoPoint, end: GeoPoint) -> bool:
        """Whether segment start-end crosses any edge of this ring."""
        if not self.is_usable:
            return False
        return segment_crosses_ring(start, end, self._vertices)


class CollisionKind(str, Enum):
    POINT_IN_TERRITORY = "point_in_territory"
    PATH_CROSSES_TERRITORY = "path_crosses_territory"


class WarningLevel(str, Enum):
    """Proximity tier, ordered from harmless to blocking."""

    SAFE = "safe"
    CAUTION = "caution"
    WARNING = "warning"
    DANGER = "danger"
    VIOLATION = "violation"


@dataclass(frozen=True)
class CollisionResult:
    """
    Immutable result of one collision/proximity check.

    Attributes:
        has_collision: A hard violation was found
        kind: Violation kind (None when no collision)
        message: Human-readable message (None when nothing to report)
        nearest_distance_m: Distance to nearest foreign vertex (inf if none)
        warning_level: Proximity tier (VIOLATION when has_collision)
    """

    has_collision: bool = False
    kind: Optional[CollisionKind] = None
    message: Optional[str] = None
    nearest_distance_m: float = math.inf
    warning_level: WarningLevel = WarningLevel.SAFE

    @classmethod
    def safe(cls) -> "CollisionResult":
        return cls()

    @classmethod
    def violation(cls, kind: CollisionKind, message: str) -> "CollisionResult":
        return cls(
            has_collision=True,
            kind=kind,
            message=message,
            nearest_distance_m=0.0,
            warning_level=WarningLevel.VIOLATION,
        )


class CollisionEngine:
    """
    Stateless collision and proximity checks.

    Usage:
        engine = CollisionEngine(ProximityConfig())

        result = engine.check_start(point, owner_id, territories)
        if result.has_collision:
            ...  # cannot claim from inside someone else's territory

        result = engine.check_comprehensive(path, owner_id, territories)
        print(result.warning_level, result.message)
    """

    def __init__(self, config: Optional[ProximityConfig] = None):
        self.config = config or ProximityConfig()

    @staticmethod
    def foreign_territories(
        owner_id: str,
        territories: Iterable[Territory],
    ) -> Tuple[Territory, ...]:
        """Usable territories not owned by owner_id."""
        return tuple(t for t in territories if t.is_usable and not t.is_owned_by(owner_id))

    def check_start(
        self,
        point: GeoPoint,
        owner_id: str,
        territories: Sequence[Territory],
    ) -> CollisionResult:
        """
        Check whether a claim may start at this point.

        Returns:
            VIOLATION (POINT_IN_TERRITORY) if inside a foreign territory,
            otherwise the proximity tier of the point
        """
        foreign = self.foreign_territories(owner_id, territories)
        for territory in foreign:
            if territory.contains(point):
                logger.debug("Start point inside territory %s", territory.territory_id)
                return CollisionResult.violation(
                    CollisionKind.POINT_IN_TERRITORY,
                    "Cannot claim inside another player's territory",
                )
        return self._proximity_result(self.nearest_distance(point, foreign))

    def check_path_against_territories(
        self,
        path: Sequence[GeoPoint],
        owner_id: str,
        territories: Sequence[Territory],
    ) -> CollisionResult:
        """
        Full path check against every foreign territory.

        Every path edge is tested against every territory edge, then every
        path point is tested for containment.

        Returns:
            VIOLATION on the first crossing or contained point, else safe
        """
        if not path:
            return CollisionResult.safe()

        foreign = self.foreign_territories(owner_id, territories)
        if not foreign:
            return CollisionResult.safe()

        path_box = BoundingBox.from_points(path)
        for territory in foreign:
            if not _boxes_overlap(path_box, territory.bbox):
                continue

            for i in range(len(path) - 1):
                if territory.crossed_by(path[i], path[i + 1]):
                    logger.debug("Path edge %d crosses territory %s", i, territory.territory_id)
                    return CollisionResult.violation(
                        CollisionKind.PATH_CROSSES_TERRITORY,
                        "Path crosses another player's territory",
                    )

            for point in path:
                if territory.contains(point):
                    return CollisionResult.violation(
                        CollisionKind.POINT_IN_TERRITORY,
                        "Path entered another player's territory",
                    )

        return CollisionResult.safe()

    def nearest_distance(
        self,
        point: GeoPoint,
        territories: Sequence[Territory],
    ) -> float:
        """
        Minimum great-circle distance from point to any territory vertex.

        Returns:
            Distance in meters, inf when there are no usable territories
        """
        rings = [t.vertices for t in territories if t.is_usable]
        if not rings:
            return math.inf
        distances = haversine_many_m(point, np.concatenate(rings))
        return float(distances.min())

    def classify_proximity(self, distance_m: float) -> WarningLevel:
        """Map a distance to its proximity tier."""
        cfg = self.config
        if distance_m > cfg.safe_m:
            return WarningLevel.SAFE
        if distance_m > cfg.caution_m:
            return WarningLevel.CAUTION
        if distance_m > cfg.warning_m:
            return WarningLevel.WARNING
        return WarningLevel.DANGER

    def check_proximity(
        self,
        point: GeoPoint,
        owner_id: str,
        territories: Sequence[Territory],
    ) -> CollisionResult:
        """Proximity tier of one point relative to foreign territories."""
        foreign = self.foreign_territories(owner_id, territories)
        return self._proximity_result(self.nearest_distance(point, foreign))

    def check_comprehensive(
        self,
        path: Sequence[GeoPoint],
        owner_id: str,
        territories: Sequence[Territory],
    ) -> CollisionResult:
        """
        Path check followed by proximity of the latest point.

        Returns:
            VIOLATION if the path collides, otherwise the tier of path[-1]
        """
        if not path:
            return CollisionResult.safe()

        result = self.check_path_against_territories(path, owner_id, territories)
        if result.has_collision:
            return result
        return self.check_proximity(path[-1], owner_id, territories)

    def _proximity_result(self, distance_m: float) -> CollisionResult:
        level = self.classify_proximity(distance_m)
        return CollisionResult(
            has_collision=False,
            message=_proximity_message(level, distance_m),
            nearest_distance_m=distance_m,
            warning_level=level,
        )


def _proximity_message(level: WarningLevel, distance_m: float) -> Optional[str]:
    if level is WarningLevel.SAFE:
        return None
    if level is WarningLevel.CAUTION:
        return f"Caution: {distance_m:.0f} m from another territory"
    if level is WarningLevel.WARNING:
        return f"Warning: {distance_m:.0f} m from another territory, change direction"
    return f"Danger: {distance_m:.0f} m from another territory, about to enter"


def _boxes_overlap(a: BoundingBox, b: BoundingBox) -> bool:
    return not (
        a.max_lat < b.min_lat
        or b.max_lat < a.min_lat
        or a.max_lon < b.min_lon
        or b.max_lon < a.min_lon
    )
