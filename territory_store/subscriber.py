"""
Territory Snapshot Subscriber
=============================

Bounded Context: Message Consumption

Receives territory snapshots from the broker and hands them to a running
claim session as an immutable tuple of engine Territories.

Design:
- Callback-based (callbacks run in the paho-mqtt network thread)
- Automatic deserialization with error handling; bad messages are logged
  and dropped, never raised into the engine
- Inactive territories are filtered out before the callback
- Messages are only handled between start() and stop()

Message Flow:
    store → TerritorySnapshotMessage (JSON) → TerritorySubscriber
          → on_territories(tuple[Territory]) → ClaimPipeline.update_territories

Example:
    >>> from territory_store import TerritorySubscriber, create_logger
    >>>
    >>> subscriber = TerritorySubscriber(
    ...     broker_host="localhost",
    ...     topic="territory/snapshots",
    ...     on_territories=pipeline.update_territories,
    ...     logger=create_logger("subscriber"),
    ... )
    >>> subscriber.connect()
    >>> subscriber.start()
    >>> # ... claim session runs ...
    >>> subscriber.stop()
"""

import json
import threading
from typing import Any, Callable, Dict, Optional, Tuple
import paho.mqtt.client as mqtt

from territory_engine.collision.engine import Territory
from territory_engine.config import MQTTConfig

from .schemas import TerritorySnapshotMessage
from .logging import StructuredLogger, LogEvent

TerritoryCallback = Callable[[Tuple[Territory, ...]], None]


class TerritorySubscriber:
    """
    MQTT subscriber for territory snapshot messages.

    Attributes:
        broker_host: MQTT broker hostname
        broker_port: MQTT broker port
        topic: Snapshot topic
        client_id: MQTT client identifier
        logger: Structured logger instance
        on_territories: Callback receiving the active territories

    Thread Safety:
        Thread-safe via paho-mqtt's loop_start() and threading.Event.
        The callback runs in the MQTT thread; ClaimPipeline.update_territories
        only swaps a reference, so it is safe to pass directly.
    """

    def __init__(
        self,
        broker_host: str,
        topic: str,
        on_territories: TerritoryCallback,
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "territory_subscriber",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 1
    ):
        """
        Initialize MQTT subscriber.

        Args:
            broker_host: MQTT broker hostname
            topic: Topic carrying TerritorySnapshotMessage JSON
            on_territories: Callback for each valid snapshot
            logger: Structured logger instance
            broker_port: MQTT broker port (default: 1883)
            client_id: MQTT client ID
            username: MQTT auth username (optional)
            password: MQTT auth password (optional)
            qos: Quality of Service (default: 1)
        """
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.topic = topic
        self.client_id = client_id
        self.logger = logger
        self.qos = qos
        self.on_territories = on_territories

        self.client = mqtt.Client(client_id=client_id)
        if username and password:
            self.client.username_pw_set(username, password)

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

        self._connected = threading.Event()
        self._running = False
        self._stats_lock = threading.Lock()
        self._received = 0
        self._rejected = 0

    @classmethod
    def from_config(
        cls,
        config: MQTTConfig,
        on_territories: TerritoryCallback,
        logger: StructuredLogger,
        client_id: str = "territory_subscriber",
    ) -> "TerritorySubscriber":
        return cls(
            broker_host=config.broker,
            broker_port=config.port,
            topic=config.snapshot_topic,
            on_territories=on_territories,
            logger=logger,
            client_id=client_id,
            username=config.username,
            password=config.password,
            qos=config.qos,
        )

    @property
    def broker(self) -> str:
        return f"{self.broker_host}:{self.broker_port}"

    def _on_connect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Dict[str, Any],
        rc: int
    ) -> None:
        if rc == 0:
            self._connected.set()
            client.subscribe(self.topic, qos=self.qos)
            self.logger.info(
                event=LogEvent.MQTT_CONNECTED,
                message="Connected to MQTT broker and subscribed",
                metadata={'broker': self.broker, 'topic': self.topic}
            )
        else:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message=f"Failed to connect to broker (rc={rc})",
                metadata={'broker': self.broker}
            )

    def _on_disconnect(
        self,
        client: mqtt.Client,
        userdata: Any,
        rc: int
    ) -> None:
        self._connected.clear()
        self.logger.warning(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Disconnected from MQTT broker",
            metadata={'broker': self.broker, 'reason_code': rc}
        )

    def _on_message(
        self,
        client: mqtt.Client,
        userdata: Any,
        msg: mqtt.MQTTMessage
    ) -> None:
        if msg.topic != self.topic:
            self.logger.warning(
                event=LogEvent.DESERIALIZATION_ERROR,
                message=f"Received message from unknown topic: {msg.topic}"
            )
            return
        if not self._running:
            self.logger.debug(
                event=LogEvent.MQTT_MESSAGE_RECEIVED,
                message="Dropped snapshot received while not running",
                metadata={'topic': msg.topic}
            )
            return
        self.logger.debug(
            event=LogEvent.MQTT_MESSAGE_RECEIVED,
            message="Received snapshot message",
            metadata={'topic': msg.topic, 'bytes': len(msg.payload)}
        )
        self.handle_payload(msg.payload)

    def handle_payload(self, payload: bytes) -> Optional[Tuple[Territory, ...]]:
        """
        Decode one snapshot payload and invoke the callback.

        Args:
            payload: Raw MQTT payload (UTF-8 JSON)

        Returns:
            Territories handed to the callback, or None if the message was
            dropped
        """
        try:
            data = json.loads(payload.decode('utf-8'))
            snapshot = TerritorySnapshotMessage.from_dict(data)
            territories = snapshot.active_territories()
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            self._count_rejected()
            self.logger.error(
                event=LogEvent.DESERIALIZATION_ERROR,
                message="Failed to decode JSON message",
                exc_info=e,
                metadata={'topic': self.topic}
            )
            return None
        except ValueError as e:
            self._count_rejected()
            self.logger.error(
                event=LogEvent.SCHEMA_VALIDATION_ERROR,
                message="Snapshot message failed schema validation",
                exc_info=e,
                metadata={'topic': self.topic}
            )
            return None

        with self._stats_lock:
            self._received += 1

        self.logger.info(
            event=LogEvent.TERRITORIES_UPDATED,
            message="Received territory snapshot",
            metadata={
                'territory_count': snapshot.territory_count,
                'active_count': len(territories),
                'snapshot_at': snapshot.timestamp.value,
            }
        )

        try:
            self.on_territories(territories)
        except Exception as e:
            self.logger.error(
                event=LogEvent.DESERIALIZATION_ERROR,
                message="Territory callback raised",
                exc_info=e
            )
        return territories

    def _count_rejected(self) -> None:
        with self._stats_lock:
            self._rejected += 1

    def connect(self, timeout: float = 10.0) -> bool:
        """
        Connect to MQTT broker and start the network loop.

        Returns:
            True if connected successfully, False otherwise
        """
        try:
            self.client.connect(self.broker_host, self.broker_port)
            self.client.loop_start()

            if self._connected.wait(timeout=timeout):
                return True

            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Connection timeout",
                metadata={'timeout': timeout, 'broker': self.broker}
            )
            return False

        except Exception as e:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Failed to connect to broker",
                exc_info=e,
                metadata={'broker': self.broker}
            )
            return False

    def start(self) -> None:
        """Mark the subscriber as listening (messages arrive in the MQTT thread)."""
        if not self._connected.is_set():
            self.logger.warning(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Cannot start: not connected to broker"
            )
            return

        self._running = True
        self.logger.info(
            event=LogEvent.MQTT_CONNECTED,
            message="Subscriber started (listening for snapshots)",
            metadata={'topic': self.topic}
        )

    def stop(self) -> None:
        """Stop the network loop and disconnect."""
        self._running = False
        self.client.loop_stop()
        self.client.disconnect()

        self.logger.info(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Subscriber stopped",
            metadata=self.get_stats()
        )

    def is_connected(self) -> bool:
        return self._connected.is_set()

    def is_running(self) -> bool:
        return self._running

    def get_stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            return {
                'snapshots_received': self._received,
                'snapshots_rejected': self._rejected,
                'connected': self._connected.is_set(),
                'running': self._running,
                'topic': self.topic,
                'broker': self.broker
            }
