"""
Store Publisher
===============

Bounded Context: MQTT Infrastructure

Shared transport for messages sent to the territory store.

Design:
- Broker settings come straight from MQTTConfig (QoS 1 by default)
- Topics are templates; each message supplies the fields its topic needs
  (a claim fills {owner_id})
- Every outcome is counted: a message is either published or failed
- Transport and encoding errors are logged and reported as False, never raised

Architecture:
    StorePublisher (abstract: topic_fields)
        ↓
    ClaimPublisher, TerritorySnapshotPublisher
"""

import json
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import paho.mqtt.client as mqtt

from territory_engine.config import MQTTConfig

from ..logging import LogEvent, StructuredLogger


class StorePublisher(ABC):
    """
    Publishes one kind of store message (anything with to_dict()).

    Class attributes set by subclasses:
        message_type: Label used in logs
        retain: Whether the broker keeps the last message on the topic
        default_client_id: Client id when none is given

    Thread Safety:
        paho-mqtt runs the network loop in its own thread; connection state
        is a threading.Event and counters are guarded by a lock.
    """

    message_type = "message"
    retain = False
    default_client_id = "territory_publisher"

    def __init__(
        self,
        config: MQTTConfig,
        topic: str,
        logger: StructuredLogger,
        client_id: Optional[str] = None,
    ):
        self.config = config
        self.topic = topic
        self.client_id = client_id or self.default_client_id
        self.logger = logger.bind(broker=self.broker, client_id=self.client_id)

        self.client = mqtt.Client(client_id=self.client_id)
        if config.username and config.password:
            self.client.username_pw_set(config.username, config.password)
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

        self._connected = threading.Event()
        self._stats_lock = threading.Lock()
        self._published = 0
        self._failed = 0

    @property
    def broker(self) -> str:
        return f"{self.config.broker}:{self.config.port}"

    @property
    def qos(self) -> int:
        return self.config.qos

    def _on_connect(self, client: mqtt.Client, userdata: Any, flags: Dict[str, Any], rc: int) -> None:
        if rc != 0:
            self.logger.error(LogEvent.MQTT_CONNECTION_ERROR, f"Broker refused connection (rc={rc})")
            return
        self._connected.set()
        self.logger.info(LogEvent.MQTT_CONNECTED, f"Ready to publish {self.message_type}s",
                         {'topic': self.topic})

    def _on_disconnect(self, client: mqtt.Client, userdata: Any, rc: int) -> None:
        self._connected.clear()
        self.logger.emit(LogEvent.MQTT_DISCONNECTED, "Disconnected from MQTT broker", {'reason_code': rc})

    def connect(self, timeout: float = 10.0) -> bool:
        """
        Connect and start the network loop.

        Returns:
            True once the broker acknowledged the connection within timeout
        """
        try:
            self.client.connect(self.config.broker, self.config.port)
        except Exception as e:
            self.logger.error(LogEvent.MQTT_CONNECTION_ERROR, "Failed to reach broker", exc_info=e)
            return False

        self.client.loop_start()
        if not self._connected.wait(timeout=timeout):
            self.logger.error(LogEvent.MQTT_CONNECTION_ERROR, "Connection timeout", {'timeout': timeout})
            return False
        return True

    def disconnect(self) -> None:
        """Stop the network loop and disconnect."""
        self.client.loop_stop()
        self.client.disconnect()
        self.logger.info(LogEvent.MQTT_DISCONNECTED, "Publisher closed", self.get_stats())

    def is_connected(self) -> bool:
        return self._connected.is_set()

    @abstractmethod
    def topic_fields(self, message: Any) -> Dict[str, Any]:
        """Fields the topic template needs for this message."""

    def resolve_topic(self, **fields: Any) -> str:
        """Topic template with format fields filled in (e.g. owner_id)."""
        try:
            return self.topic.format(**fields)
        except KeyError as e:
            raise ValueError(f"Topic '{self.topic}' needs field {e}")

    def send(self, message: Any) -> bool:
        """
        Encode a message, resolve its topic and publish it.

        Returns:
            True if the client accepted the message, False otherwise
        """
        try:
            topic = self.resolve_topic(**self.topic_fields(message))
            body = json.dumps(message.to_dict())
        except (TypeError, ValueError) as e:
            self._count(published=False)
            self.logger.error(LogEvent.SERIALIZATION_ERROR, f"Cannot encode {self.message_type}", exc_info=e)
            return False

        if not self._connected.is_set():
            self._count(published=False)
            self.logger.emit(LogEvent.MQTT_PUBLISH_FAILED, "Not connected to broker", {'topic': topic})
            return False

        try:
            info = self.client.publish(topic=topic, payload=body, qos=self.qos, retain=self.retain)
        except Exception as e:
            self._count(published=False)
            self.logger.error(LogEvent.MQTT_PUBLISH_ERROR, f"Error publishing {self.message_type}",
                              {'topic': topic}, exc_info=e)
            return False

        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            self._count(published=False)
            self.logger.emit(LogEvent.MQTT_PUBLISH_FAILED, f"Publish failed (rc={info.rc})", {'topic': topic})
            return False

        self._count(published=True)
        self.logger.info(LogEvent.MQTT_PUBLISH_SUCCESS, f"Published {self.message_type}",
                         {'topic': topic, 'qos': self.qos, 'retain': self.retain})
        return True

    def _count(self, published: bool) -> None:
        with self._stats_lock:
            if published:
                self._published += 1
            else:
                self._failed += 1

    def get_stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            return {
                'published': self._published,
                'failed': self._failed,
                'connected': self._connected.is_set(),
                'topic': self.topic,
            }
