"""
Territory Snapshot Schema
=========================

Bounded Context: Territory download data structures

Store rows describing existing territories, and the snapshot message that
carries them to a running claim session.

Message Flow:
    store → TerritorySnapshotMessage → MQTT → TerritorySubscriber
          → ClaimPipeline.update_territories()
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from territory_engine.collision.engine import Territory
from territory_engine.geometry.shapes import GeoPoint

from .common import Timestamp, path_from_rows, path_to_rows, polygon_from_wkt


@dataclass(frozen=True)
class TerritoryRecord:
    """
    One row of the store's territories table.

    Attributes:
        territory_id: Primary key
        user_id: Owner
        path: Ring vertices
        area_m2: Stored area
        name: Optional display name
        is_active: Inactive rows are excluded from collision checks
    """
    territory_id: str
    user_id: str
    path: Tuple[GeoPoint, ...]
    area_m2: float = 0.0
    name: Optional[str] = None
    is_active: bool = True

    def __post_init__(self):
        object.__setattr__(self, 'path', tuple(self.path))

    def to_territory(self) -> Territory:
        """Engine view of this record."""
        return Territory(
            owner_id=self.user_id,
            polygon=self.path,
            area_m2=self.area_m2,
            territory_id=self.territory_id,
            name=self.name,
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'id': self.territory_id,
            'user_id': self.user_id,
            'path': path_to_rows(self.path),
            'area': self.area_m2,
            'is_active': self.is_active,
        }
        if self.name is not None:
            result['name'] = self.name
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TerritoryRecord':
        """Deserialize from a store row.

        The ring is read from 'path' rows, falling back to the 'polygon'
        EWKT column when 'path' is absent.

        Raises:
            ValueError: If required fields missing or invalid
        """
        try:
            if data.get('path') is not None:
                path = path_from_rows(data['path'])
            else:
                path = polygon_from_wkt(data['polygon'])

            name = data.get('name')
            return cls(
                territory_id=str(data['id']),
                user_id=str(data['user_id']),
                path=path,
                area_m2=float(data.get('area') or 0.0),
                name=str(name) if name is not None else None,
                is_active=bool(data.get('is_active', True)),
            )
        except KeyError as e:
            raise ValueError(f"Missing required TerritoryRecord field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid TerritoryRecord data: {e}")


@dataclass(frozen=True)
class TerritorySnapshotMessage:
    """
    Full set of known territories at one point in time.

    Attributes:
        schema_version: Message schema version (for evolution)
        timestamp: ISO 8601 timestamp of snapshot creation
        territories: Store rows

    Example:
        >>> msg = TerritorySnapshotMessage.from_dict(json.loads(payload))
        >>> pipeline.update_territories(msg.active_territories())
    """
    schema_version: str
    timestamp: Timestamp
    territories: List[TerritoryRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'schema_version': self.schema_version,
            'timestamp': self.timestamp.to_dict(),
            'territories': [t.to_dict() for t in self.territories],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TerritorySnapshotMessage':
        """Deserialize from dict.

        Raises:
            ValueError: If required fields missing or invalid
        """
        try:
            return cls(
                schema_version=str(data['schema_version']),
                timestamp=Timestamp(value=str(data['timestamp'])),
                territories=[
                    TerritoryRecord.from_dict(row)
                    for row in data.get('territories', [])
                ],
            )
        except KeyError as e:
            raise ValueError(f"Missing required TerritorySnapshotMessage field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid TerritorySnapshotMessage data: {e}")

    @property
    def territory_count(self) -> int:
        return len(self.territories)

    def active_territories(self) -> Tuple[Territory, ...]:
        """Engine territories for active rows only."""
        return tuple(t.to_territory() for t in self.territories if t.is_active)


def territories_from_rows(rows: List[Dict[str, Any]]) -> Tuple[Territory, ...]:
    """Parse plain store rows, keeping active ones only."""
    records = [TerritoryRecord.from_dict(row) for row in rows]
    return tuple(r.to_territory() for r in records if r.is_active)
