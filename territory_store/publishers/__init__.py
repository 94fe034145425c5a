"""
Territory Store Publishers
==========================

Bounded Context: Message Production

Public API
----------
    StorePublisher: Abstract base (connection, topic templates, counters)
    ClaimPublisher: Accepted claims (QoS 1, per-owner topic)
    TerritorySnapshotPublisher: Retained territory snapshots
"""

from .base import StorePublisher
from .claim import ClaimPublisher, TerritorySnapshotPublisher

__all__ = [
    'StorePublisher',
    'ClaimPublisher',
    'TerritorySnapshotPublisher',
]
