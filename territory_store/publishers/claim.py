"""
Claim Publishers
================

Bounded Context: Territory store message production

Design:
- ClaimPublisher: one ClaimPayload per accepted claim, per-owner topic
- TerritorySnapshotPublisher: retained snapshot so late subscribers get
  the current territory set immediately

Message Flow:
    ClaimPipeline → ClaimPayload → ClaimPublisher → MQTT → store
    store → TerritorySnapshotMessage → TerritorySnapshotPublisher → MQTT

Example:
    >>> from territory_engine.config import MQTTConfig
    >>> from territory_store.publishers import ClaimPublisher
    >>> from territory_store.logging import create_logger
    >>>
    >>> publisher = ClaimPublisher(MQTTConfig(), logger=create_logger("publisher"))
    >>> publisher.connect()
    >>> publisher.publish_claim(pipeline.build_payload())
"""

from typing import Any, Dict, Optional

from territory_engine.config import MQTTConfig

from .base import StorePublisher
from ..schemas import ClaimPayload, TerritorySnapshotMessage
from ..logging import StructuredLogger, LogEvent


class ClaimPublisher(StorePublisher):
    """Publisher for accepted claims on config.claim_topic."""

    message_type = "claim"
    default_client_id = "territory_claim_publisher"

    def __init__(self, config: MQTTConfig, logger: StructuredLogger, client_id: Optional[str] = None):
        super().__init__(config, topic=config.claim_topic, logger=logger, client_id=client_id)

    def topic_fields(self, payload: ClaimPayload) -> Dict[str, Any]:
        return {'owner_id': payload.user_id}

    def publish_claim(self, payload: ClaimPayload) -> bool:
        """
        Publish one accepted claim.

        Returns:
            True if published successfully, False otherwise
        """
        published = self.send(payload)
        if published:
            self.logger.info(
                LogEvent.CLAIM_ACCEPTED,
                "Claim uploaded",
                {
                    'owner_id': payload.user_id,
                    'area_m2': round(payload.area_m2, 1),
                    'point_count': payload.point_count,
                },
            )
        return published


class TerritorySnapshotPublisher(StorePublisher):
    """Publisher for territory snapshots on config.snapshot_topic (retained)."""

    message_type = "snapshot"
    retain = True
    default_client_id = "territory_snapshot_publisher"

    def __init__(self, config: MQTTConfig, logger: StructuredLogger, client_id: Optional[str] = None):
        super().__init__(config, topic=config.snapshot_topic, logger=logger, client_id=client_id)

    def topic_fields(self, snapshot: TerritorySnapshotMessage) -> Dict[str, Any]:
        return {}

    def publish_snapshot(self, snapshot: TerritorySnapshotMessage) -> bool:
        return self.send(snapshot)
