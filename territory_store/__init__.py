"""
Territory Store Communication Package
=====================================

Bounded Context: Boundary between the claim engine and the territory store

This package provides the wire formats and MQTT transport that connect a
claim session to the backend store: uploading accepted claims and receiving
snapshots of existing territories.

Architecture:
- schemas/: Immutable data structures (ClaimPayload, TerritorySnapshotMessage)
- publishers/: Message producers (ClaimPublisher, TerritorySnapshotPublisher)
- subscriber.py: Snapshot consumer (TerritorySubscriber)
- logging/: Structured JSON logging and the in-memory claim log

Design Philosophy:
- Immutability: frozen dataclasses for message DTOs
- Transport errors are logged and returned as False, never raised
- Observability: Structured logs (JSON) for production queries

Example:
    >>> from territory_engine.config import MQTTConfig
    >>> from territory_store import ClaimPublisher, create_logger
    >>> publisher = ClaimPublisher(MQTTConfig(), logger=create_logger("claims"))
    >>> publisher.connect()
    >>> publisher.publish_claim(pipeline.build_payload())
"""

from .schemas import (
    Timestamp,
    ClaimPayload,
    TerritoryRecord,
    TerritorySnapshotMessage,
    territories_from_rows,
    polygon_to_wkt,
    polygon_from_wkt,
    SCHEMA_VERSION,
)
from .publishers import StorePublisher, ClaimPublisher, TerritorySnapshotPublisher
from .subscriber import TerritorySubscriber
from .logging import LogEvent, StructuredLogger, create_logger, ClaimLogBuffer

__all__ = [
    # Schemas
    'Timestamp',
    'ClaimPayload',
    'TerritoryRecord',
    'TerritorySnapshotMessage',
    'territories_from_rows',
    'polygon_to_wkt',
    'polygon_from_wkt',
    'SCHEMA_VERSION',
    # Publishers
    'StorePublisher',
    'ClaimPublisher',
    'TerritorySnapshotPublisher',
    # Subscriber
    'TerritorySubscriber',
    # Logging
    'LogEvent',
    'StructuredLogger',
    'create_logger',
    'ClaimLogBuffer',
]

__version__ = "1.0.0"
