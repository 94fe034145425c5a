"""
Territory Store Schemas
=======================

Bounded Context: Data Structures

This module defines immutable, typed data structures exchanged with the
territory store.

Design:
- Frozen dataclasses (immutability)
- to_dict() for JSON serialization
- from_dict() for deserialization (errors surface as ValueError)
- Schema versioning for evolution

Public API
----------
Common Types:
    Timestamp: ISO 8601 timestamp wrapper
    polygon_to_wkt / polygon_from_wkt: EWKT ring encoding

Claim Types:
    ClaimPayload: Upload payload of an accepted claim

Territory Types:
    TerritoryRecord: One store row
    TerritorySnapshotMessage: Set of rows pushed to sessions
"""

from .common import Timestamp, polygon_to_wkt, polygon_from_wkt, path_to_rows, path_from_rows
from .claim import ClaimPayload
from .territory import TerritoryRecord, TerritorySnapshotMessage, territories_from_rows

SCHEMA_VERSION = "1.0"

__all__ = [
    # Common types
    'Timestamp',
    'polygon_to_wkt',
    'polygon_from_wkt',
    'path_to_rows',
    'path_from_rows',
    # Claim types
    'ClaimPayload',
    # Territory types
    'TerritoryRecord',
    'TerritorySnapshotMessage',
    'territories_from_rows',
    'SCHEMA_VERSION',
]
