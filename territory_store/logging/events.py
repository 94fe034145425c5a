"""
Structured Log Event Types
==========================

Bounded Context: Observability Event Taxonomy

This module defines typed event names for structured logging.

Design:
- Enum-based (prevents typos, enables autocomplete)
- Hierarchical naming (namespace.category.action)
- Searchable in log aggregators

Event Naming Convention:
    <component>.<category>.<action>

    component: claim, speed, collision, mqtt, error
    category: started, closed, warning
    action: success, failed, updated

Example Log Query (CloudWatch Insights):
    fields @timestamp, event, message, metadata.owner_id
    | filter event = "claim.rejected"
    | stats count() by metadata.reason
"""

import logging
from enum import Enum


class LogEvent(str, Enum):
    """
    Typed log event names for structured logging.

    Categories:
    - claim.*: Claim session lifecycle
    - speed.*: Speed gate decisions
    - collision.*: Territory collision/proximity
    - mqtt.*: MQTT broker interactions
    - error.*: Error conditions
    """

    # ========== Claim Events ==========
    CLAIM_STARTED = "claim.started"
    """Recording of a new claim started."""

    CLAIM_POINT_RECORDED = "claim.point.recorded"
    """Point appended to the claim path."""

    CLAIM_CLOSED = "claim.closed"
    """Walked loop returned near its start."""

    CLAIM_ACCEPTED = "claim.accepted"
    """Closed loop passed validation."""

    CLAIM_REJECTED = "claim.rejected"
    """Closed loop failed validation."""

    CLAIM_FAILED = "claim.failed"
    """Recording aborted (overspeed or collision)."""

    CLAIM_CANCELLED = "claim.cancelled"
    """Recording cancelled by the user."""

    # ========== Speed Events ==========
    SPEED_WARNING = "speed.warning"
    """Advisory overspeed warning."""

    SPEED_HALTED = "speed.halted"
    """Sustained overspeed halted the claim."""

    # ========== Collision Events ==========
    COLLISION_PROXIMITY = "collision.proximity"
    """Proximity tier changed."""

    COLLISION_VIOLATION = "collision.violation"
    """Claim entered or crossed another territory."""

    TERRITORIES_UPDATED = "collision.territories.updated"
    """Territory snapshot refreshed."""

    # ========== MQTT Events ==========
    MQTT_CONNECTED = "mqtt.connected"
    """MQTT broker connection established."""

    MQTT_DISCONNECTED = "mqtt.disconnected"
    """MQTT broker connection lost."""

    MQTT_PUBLISH_SUCCESS = "mqtt.publish.success"
    """Message successfully published to broker."""

    MQTT_PUBLISH_FAILED = "mqtt.publish.failed"
    """Message publication failed."""

    MQTT_MESSAGE_RECEIVED = "mqtt.message.received"
    """Message received by subscriber."""

    # ========== Error Events ==========
    SERIALIZATION_ERROR = "error.serialization"
    """Failed to serialize message to JSON."""

    DESERIALIZATION_ERROR = "error.deserialization"
    """Failed to deserialize message from JSON."""

    SCHEMA_VALIDATION_ERROR = "error.schema_validation"
    """Message failed schema validation."""

    MQTT_CONNECTION_ERROR = "error.mqtt_connection"
    """Failed to connect to MQTT broker."""

    MQTT_PUBLISH_ERROR = "error.mqtt_publish"
    """Error during message publication."""


# Severity an event is logged at unless the caller overrides it
DEBUG_EVENTS = frozenset({
    LogEvent.CLAIM_POINT_RECORDED,
    LogEvent.MQTT_MESSAGE_RECEIVED,
})

WARNING_EVENTS = frozenset({
    LogEvent.CLAIM_FAILED,
    LogEvent.SPEED_WARNING,
    LogEvent.SPEED_HALTED,
    LogEvent.COLLISION_VIOLATION,
    LogEvent.MQTT_DISCONNECTED,
    LogEvent.MQTT_PUBLISH_FAILED,
})

ERROR_EVENTS = frozenset({
    LogEvent.SERIALIZATION_ERROR,
    LogEvent.DESERIALIZATION_ERROR,
    LogEvent.SCHEMA_VALIDATION_ERROR,
    LogEvent.MQTT_CONNECTION_ERROR,
    LogEvent.MQTT_PUBLISH_ERROR,
})


def default_level(event: LogEvent) -> int:
    """Logging level for an event when none is given."""
    if event in ERROR_EVENTS:
        return logging.ERROR
    if event in WARNING_EVENTS:
        return logging.WARNING
    if event in DEBUG_EVENTS:
        return logging.DEBUG
    return logging.INFO
