"""
Territory store boundary tests: schemas, publishers, subscriber.

No real broker: the paho client is replaced where a publish would go out,
and snapshot payloads are fed to the subscriber directly.
"""

import json
import logging
from unittest import mock

import paho.mqtt.client as mqtt
import pytest

from territory_engine.config import MQTTConfig
from territory_engine.geometry.shapes import GeoPoint
from territory_store import (
    ClaimPayload,
    ClaimPublisher,
    TerritoryRecord,
    TerritorySnapshotMessage,
    TerritorySnapshotPublisher,
    TerritorySubscriber,
    Timestamp,
    create_logger,
    polygon_from_wkt,
    polygon_to_wkt,
    territories_from_rows,
)

from conftest import T0


@pytest.fixture
def logger():
    return create_logger("test")


@pytest.fixture
def payload(make_path, square_offsets):
    return ClaimPayload.from_path(
        user_id="u-1",
        path=make_path(square_offsets[:11]),
        area_m2=1600.0,
        started_at=T0,
    )


def snapshot_dict():
    return {
        "schema_version": "1.0",
        "timestamp": "2025-06-01T08:00:00+00:00",
        "territories": [
            {
                "id": "t-1",
                "user_id": "u-2",
                "path": [{"lat": 0.0, "lon": 0.0}, {"lat": 0.0, "lon": 1.0}, {"lat": 1.0, "lon": 1.0}],
                "area": 12.5,
                "is_active": True,
            },
            {
                "id": "t-2",
                "user_id": "u-3",
                "polygon": "SRID=4326;POLYGON((2 2, 3 2, 3 3, 2 2))",
                "is_active": False,
            },
        ],
    }


# ─────────────────────────────────────────────────────────────────────────────
# Schemas
# ─────────────────────────────────────────────────────────────────────────────

def test_wkt_is_closed_and_longitude_first():
    ring = [GeoPoint(0, 0), GeoPoint(0, 1), GeoPoint(1, 1)]
    assert polygon_to_wkt(ring) == "SRID=4326;POLYGON((0 0, 1 0, 1 1, 0 0))"
    # Already closed rings are not closed twice
    assert polygon_to_wkt(ring + [GeoPoint(0, 0)]) == polygon_to_wkt(ring)


def test_wkt_decoding():
    points = polygon_from_wkt("SRID=4326;POLYGON((121.5 31.25, 121.6 31.25, 121.6 31.3, 121.5 31.25))")
    assert points[0] == GeoPoint(latitude=31.25, longitude=121.5)
    assert len(points) == 4

    assert len(polygon_from_wkt("POLYGON((0 0, 1 0, 1 1, 0 0))")) == 4
    with pytest.raises(ValueError):
        polygon_from_wkt("LINESTRING(0 0, 1 1)")
    with pytest.raises(ValueError):
        polygon_from_wkt("POLYGON((0 0 0, 1 0, 1 1))")


def test_wkt_needs_three_points():
    with pytest.raises(ValueError):
        polygon_to_wkt([GeoPoint(0, 0), GeoPoint(1, 1)])


def test_timestamp_round_trip():
    ts = Timestamp.from_datetime(T0)
    assert ts.value == "2025-06-01T08:00:00+00:00"
    assert ts.to_datetime() == T0
    with pytest.raises(ValueError):
        Timestamp("yesterday").to_datetime()


def test_claim_payload_columns(payload):
    data = payload.to_dict()
    assert set(data) == {
        "user_id", "path", "polygon",
        "bbox_min_lat", "bbox_max_lat", "bbox_min_lon", "bbox_max_lon",
        "area", "point_count", "started_at", "is_active",
    }
    assert data["point_count"] == 11
    assert data["path"][0] == {"lat": payload.path[0].latitude, "lon": payload.path[0].longitude}
    assert data["bbox_min_lat"] <= data["bbox_max_lat"]
    assert data["polygon"].count(",") == 11  # 11 vertices + closing vertex

    restored = ClaimPayload.from_dict(json.loads(json.dumps(data)))
    assert restored == payload


def test_claim_payload_rejects_bad_data(payload):
    data = payload.to_dict()
    del data["user_id"]
    with pytest.raises(ValueError):
        ClaimPayload.from_dict(data)

    data = payload.to_dict()
    data["path"] = data["path"][:2]
    with pytest.raises(ValueError):
        ClaimPayload.from_dict(data)

    with pytest.raises(ValueError):
        ClaimPayload(user_id="u-1", path=payload.path, area_m2=-1.0, started_at=Timestamp.now())


def test_territory_record_from_path_rows_and_wkt():
    rows = snapshot_dict()["territories"]
    first = TerritoryRecord.from_dict(rows[0])
    assert first.territory_id == "t-1"
    assert first.area_m2 == 12.5
    assert len(first.path) == 3

    second = TerritoryRecord.from_dict(rows[1])
    assert second.path[1] == GeoPoint(latitude=2.0, longitude=3.0)
    assert not second.is_active
    assert second.to_territory().vertices.shape == (3, 2)

    with pytest.raises(ValueError):
        TerritoryRecord.from_dict({"id": "t-3", "user_id": "u-1"})


def test_snapshot_keeps_active_territories_only():
    snapshot = TerritorySnapshotMessage.from_dict(snapshot_dict())
    assert snapshot.territory_count == 2
    active = snapshot.active_territories()
    assert [t.territory_id for t in active] == ["t-1"]
    assert active[0].owner_id == "u-2"

    assert TerritorySnapshotMessage.from_dict(snapshot.to_dict()) == snapshot
    assert territories_from_rows(snapshot_dict()["territories"]) == active


# ─────────────────────────────────────────────────────────────────────────────
# Publishers
# ─────────────────────────────────────────────────────────────────────────────

def test_claim_topic_per_owner(logger):
    publisher = ClaimPublisher(MQTTConfig(), logger=logger)
    assert publisher.resolve_topic(owner_id="u-1") == "territory/claims/u-1"
    with pytest.raises(ValueError):
        publisher.resolve_topic()


def test_publish_requires_connection(logger, payload):
    publisher = ClaimPublisher(MQTTConfig(), logger=logger)
    assert not publisher.publish_claim(payload)
    assert publisher.get_stats()["published"] == 0
    assert publisher.get_stats()["failed"] == 1


def test_publish_claim(logger, payload):
    publisher = ClaimPublisher(MQTTConfig(qos=1), logger=logger)
    publisher._connected.set()

    with mock.patch.object(publisher.client, "publish",
                           return_value=mock.Mock(rc=mqtt.MQTT_ERR_SUCCESS)) as publish:
        assert publisher.publish_claim(payload)

    kwargs = publish.call_args.kwargs
    assert kwargs["topic"] == "territory/claims/u-1"
    assert kwargs["qos"] == 1
    assert kwargs["retain"] is False
    assert json.loads(kwargs["payload"])["user_id"] == "u-1"
    assert publisher.get_stats()["published"] == 1


def test_snapshot_is_retained(logger):
    publisher = TerritorySnapshotPublisher(MQTTConfig(), logger=logger)
    publisher._connected.set()
    snapshot = TerritorySnapshotMessage.from_dict(snapshot_dict())

    with mock.patch.object(publisher.client, "publish",
                           return_value=mock.Mock(rc=mqtt.MQTT_ERR_SUCCESS)) as publish:
        assert publisher.publish_snapshot(snapshot)
    assert publish.call_args.kwargs["retain"] is True
    assert publish.call_args.kwargs["topic"] == "territory/snapshots"


def test_rejected_publish_is_counted_as_failed(logger, payload):
    publisher = ClaimPublisher(MQTTConfig(), logger=logger)
    publisher._connected.set()

    with mock.patch.object(publisher.client, "publish",
                           return_value=mock.Mock(rc=mqtt.MQTT_ERR_NO_CONN)):
        assert not publisher.publish_claim(payload)
    with mock.patch.object(publisher.client, "publish", side_effect=ValueError("bad topic")):
        assert not publisher.publish_claim(payload)

    assert publisher.get_stats()["published"] == 0
    assert publisher.get_stats()["failed"] == 2


def test_publisher_logs_carry_broker_context(logger, payload, caplog):
    publisher = ClaimPublisher(MQTTConfig(broker="store.local", port=1884), logger=logger)
    with caplog.at_level(logging.WARNING, logger="territory_store.test"):
        publisher.publish_claim(payload)

    entry = caplog.records[-1].claim_entry
    assert entry["event"] == "mqtt.publish.failed"
    assert entry["context"] == {"broker": "store.local:1884", "client_id": "territory_claim_publisher"}
    assert entry["metadata"] == {"topic": "territory/claims/u-1"}


# ─────────────────────────────────────────────────────────────────────────────
# Subscriber
# ─────────────────────────────────────────────────────────────────────────────

def test_subscriber_hands_active_territories_to_callback(logger):
    received = []
    subscriber = TerritorySubscriber.from_config(MQTTConfig(), on_territories=received.append, logger=logger)
    assert subscriber.topic == "territory/snapshots"

    territories = subscriber.handle_payload(json.dumps(snapshot_dict()).encode("utf-8"))
    assert received == [territories]
    assert len(territories) == 1
    assert subscriber.get_stats()["snapshots_received"] == 1


def test_subscriber_drops_bad_messages(logger):
    received = []
    subscriber = TerritorySubscriber(broker_host="localhost", topic="territory/snapshots",
                                     on_territories=received.append, logger=logger)

    assert subscriber.handle_payload(b"{not json") is None
    assert subscriber.handle_payload(json.dumps({"territories": []}).encode("utf-8")) is None
    assert received == []
    assert subscriber.get_stats()["snapshots_rejected"] == 2


@pytest.mark.parametrize("field, value", [("user_id", ""), ("area", -1.0)])
def test_subscriber_drops_snapshot_with_invalid_territory(logger, field, value):
    received = []
    subscriber = TerritorySubscriber(broker_host="localhost", topic="territory/snapshots",
                                     on_territories=received.append, logger=logger)
    data = snapshot_dict()
    data["territories"][0][field] = value

    assert subscriber.handle_payload(json.dumps(data).encode("utf-8")) is None
    assert received == []
    assert subscriber.get_stats()["snapshots_rejected"] == 1
    assert subscriber.get_stats()["snapshots_received"] == 0


def test_subscriber_ignores_messages_until_started(logger):
    received = []
    subscriber = TerritorySubscriber(broker_host="localhost", topic="territory/snapshots",
                                     on_territories=received.append, logger=logger)
    message = mock.Mock(topic="territory/snapshots",
                        payload=json.dumps(snapshot_dict()).encode("utf-8"))

    subscriber._on_message(subscriber.client, None, message)
    assert received == []

    subscriber._connected.set()
    subscriber.start()
    subscriber._on_message(subscriber.client, None, message)
    assert len(received) == 1

    with mock.patch.object(subscriber.client, "loop_stop"), \
            mock.patch.object(subscriber.client, "disconnect"):
        subscriber.stop()
    subscriber._on_message(subscriber.client, None, message)
    assert len(received) == 1
    assert subscriber.get_stats()["snapshots_received"] == 1


def test_subscriber_survives_callback_errors(logger):
    def explode(territories):
        raise RuntimeError("pipeline gone")

    subscriber = TerritorySubscriber(broker_host="localhost", topic="territory/snapshots",
                                     on_territories=explode, logger=logger)
    territories = subscriber.handle_payload(json.dumps(snapshot_dict()).encode("utf-8"))
    assert len(territories) == 1


def test_subscriber_feeds_pipeline(logger, make_fixes):
    from territory_engine.pipeline import ClaimPipelineBuilder, ClaimState

    pipeline = ClaimPipelineBuilder().build()
    subscriber = TerritorySubscriber(broker_host="localhost", topic="territory/snapshots",
                                     on_territories=pipeline.update_territories, logger=logger)
    subscriber.handle_payload(json.dumps(snapshot_dict()).encode("utf-8"))
    assert [t.territory_id for t in pipeline.territories] == ["t-1"]
    assert pipeline.state is ClaimState.IDLE
