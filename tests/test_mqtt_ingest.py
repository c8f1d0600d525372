"""Tests de ingesta MQTT.

Tests obligatorios:
1. Contrato idéntico a HTTP (mismo validador, mismo resultado)
2. Payload malformado: se loguea y se descarta, nunca se propaga
3. Rechazos e internos: contabilizados, sin canal de respuesta
4. Receptor paho: conexión, suscripción y delegación al handler

Ejecutar:
    pytest tests/test_mqtt_ingest.py -v
"""

import json
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from energy_api.core.admission import AdmissionValidator, PersistenceFanout
from energy_api.core.admission.validator import MSG_ACCEPTED, MSG_DUPLICATE
from energy_api.dependencies import Services
from energy_api.main import create_app
from energy_api.mqtt import MQTTReportReceiver, ReportMessageHandler

from .conftest import InMemoryTimeSeries, StaticOracle, make_payload, make_settings

TOPIC = "energy-consumption-reports"


def _encode(payload) -> bytes:
    return json.dumps(payload).encode("utf-8")


@pytest.fixture
def handler(validator) -> ReportMessageHandler:
    return ReportMessageHandler(validator)


# =============================================================================
# HANDLER
# =============================================================================

class TestMessageHandler:
    """Decodificación + admisión de un mensaje."""

    def test_valid_message_is_accepted(self, handler, timeseries):
        outcome = handler.handle(TOPIC, _encode(make_payload()))

        assert outcome.accepted is True
        assert outcome.message == MSG_ACCEPTED
        assert len(timeseries.points) == 96
        assert handler.stats.received == 1
        assert handler.stats.accepted == 1
        assert handler.stats.last_message_at > 0

    def test_duplicate_is_dropped(self, handler):
        handler.handle(TOPIC, _encode(make_payload()))
        outcome = handler.handle(TOPIC, _encode(make_payload()))

        assert outcome.kind == "conflict"
        assert outcome.message == MSG_DUPLICATE
        assert handler.stats.rejected == 1

    @pytest.mark.parametrize(
        "payload",
        [
            b"{not json",
            b"\xff\xfe\x00",
            b"[]",
            b'{"version": 1, "id": "dev-1"}',
        ],
    )
    def test_undecodable_payload(self, handler, oracle, payload):
        assert handler.handle(TOPIC, payload) is None
        assert handler.stats.failed == 1
        assert oracle.calls == []

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_value_is_dropped(self, handler, oracle, timeseries, bad):
        values = [float(i) for i in range(96)]
        values[10] = bad
        values[11] = 0.0

        assert handler.handle(TOPIC, _encode(make_payload(values=values))) is None
        assert handler.stats.failed == 1
        assert oracle.calls == []
        assert timeseries.points == []

    @pytest.mark.parametrize("date", ["20240301", "2024-W09-5", "2024-3-1", "2024-02-30"])
    def test_non_canonical_date_is_dropped(self, handler, oracle, date):
        payload = make_payload()
        payload["date"] = date

        assert handler.handle(TOPIC, _encode(payload)) is None
        assert handler.stats.failed == 1
        assert oracle.calls == []

    def test_internal_error_counted_as_failed(self, registry, audit):
        ts = InMemoryTimeSeries(fail_after=0)
        validator = AdmissionValidator(registry, StaticOracle(), ts, PersistenceFanout(ts, audit))
        handler = ReportMessageHandler(validator)

        outcome = handler.handle(TOPIC, _encode(make_payload()))

        assert outcome.kind == "internal"
        assert handler.stats.failed == 1
        assert handler.stats.rejected == 0

    def test_stats_to_dict(self, handler):
        handler.handle(TOPIC, b"nope")
        stats = handler.stats.to_dict()
        assert stats["received"] == 1
        assert stats["failed"] == 1
        assert "failed=1" in str(handler.stats)


class TestTransportParity:
    """HTTP y MQTT producen la misma decisión para el mismo payload."""

    @pytest.mark.parametrize(
        "values, expected_kind",
        [
            ([float(i) for i in range(96)], None),
            ([float(95 - i) for i in range(96)], "compliance"),
            ([1.0, 2.0], "validation"),
        ],
    )
    def test_same_outcome(self, tmp_path, values, expected_kind):
        payload = make_payload(values=values)

        def build(name):
            from sqlalchemy import create_engine

            from energy_api.infrastructure.audit import AuditLogWriter
            from energy_api.registry import DeviceRegistry

            registry = DeviceRegistry(
                create_engine("sqlite:///" + str(tmp_path / f"{name}.db"), connect_args={"check_same_thread": False})
            )
            ts = InMemoryTimeSeries()
            oracle = StaticOracle()
            audit = AuditLogWriter(str(tmp_path / f"{name}.json"))
            validator = AdmissionValidator(registry, oracle, ts, PersistenceFanout(ts, audit))
            return Services(
                settings=make_settings(tmp_path),
                registry=registry,
                oracle=oracle,
                timeseries=ts,
                audit=audit,
                validator=validator,
            )

        http_services = build("http")
        with TestClient(create_app(http_services)) as c:
            http_response = c.post("/api/energy", json=payload)

        mqtt_services = build("mqtt")
        outcome = ReportMessageHandler(mqtt_services.validator).handle(TOPIC, _encode(payload))
        mqtt_services.registry.close()

        assert outcome.kind == expected_kind
        body = http_response.json()
        assert body == ({"message": outcome.message} if outcome.accepted else {"error": outcome.message})
        assert len(http_services.timeseries.points) == len(mqtt_services.timeseries.points)


# =============================================================================
# RECEPTOR PAHO
# =============================================================================

class TestReceiver:
    """Cliente paho mockeado."""

    @pytest.fixture
    def receiver(self, validator) -> MQTTReportReceiver:
        return MQTTReportReceiver(
            validator,
            broker_host="broker.local",
            broker_port=8883,
            username="user",
            password="secret",
            topic=TOPIC,
            use_tls=True,
        )

    def test_start_connects_and_subscribes(self, receiver):
        fake_client = MagicMock()
        fake_client.connect.side_effect = lambda *a, **k: receiver._on_connect(fake_client, None, {}, 0, None)

        with patch("energy_api.mqtt.receiver.mqtt.Client", return_value=fake_client):
            assert receiver.start() is True

        fake_client.tls_set.assert_called_once()
        fake_client.username_pw_set.assert_called_once_with("user", "secret")
        fake_client.connect.assert_called_once_with("broker.local", 8883, keepalive=60)
        fake_client.loop_start.assert_called_once()
        fake_client.subscribe.assert_called_once_with(TOPIC, qos=0)
        assert receiver.is_connected is True
        assert receiver.health_check()["healthy"] is True

        receiver.stop()
        fake_client.loop_stop.assert_called_once()
        fake_client.disconnect.assert_called_once()
        assert receiver.health_check()["healthy"] is False

    def test_start_without_tls(self, validator):
        receiver = MQTTReportReceiver(validator, topic=TOPIC, use_tls=False)
        fake_client = MagicMock()
        fake_client.connect.side_effect = lambda *a, **k: receiver._on_connect(fake_client, None, {}, 0, None)

        with patch("energy_api.mqtt.receiver.mqtt.Client", return_value=fake_client):
            assert receiver.start() is True

        fake_client.tls_set.assert_not_called()
        fake_client.username_pw_set.assert_not_called()

    def test_start_failure_returns_false(self, receiver):
        fake_client = MagicMock()
        fake_client.connect.side_effect = OSError("connection refused")

        with patch("energy_api.mqtt.receiver.mqtt.Client", return_value=fake_client):
            assert receiver.start() is False

    def test_connection_refused_by_broker(self, receiver):
        client = MagicMock()
        receiver._on_connect(client, None, {}, 5, None)

        assert receiver.is_connected is False
        client.subscribe.assert_not_called()

    def test_disconnect_marks_not_connected(self, receiver):
        receiver._on_connect(MagicMock(), None, {}, 0, None)
        receiver._on_disconnect(MagicMock(), None, {}, 7, None)
        assert receiver.is_connected is False

    def test_message_delegates_to_handler(self, receiver, timeseries):
        msg = MagicMock(topic=TOPIC, payload=_encode(make_payload()))
        receiver._on_message(None, None, msg)

        assert receiver.stats["accepted"] == 1
        assert len(timeseries.points) == 96

    def test_handler_exception_does_not_escape(self, receiver):
        msg = MagicMock(topic=TOPIC, payload=b"{}")
        with patch.object(receiver._handler, "handle", side_effect=RuntimeError("boom")):
            receiver._on_message(None, None, msg)

        assert receiver.stats["failed"] == 1

    def test_from_settings(self, validator, tmp_path):
        settings = make_settings(
            tmp_path,
            mqtt_broker_host="mqtt.example",
            mqtt_broker_port=1883,
            mqtt_topic="custom-topic",
            mqtt_tls=False,
        )
        receiver = MQTTReportReceiver.from_settings(validator, settings)

        assert receiver.broker_host == "mqtt.example"
        assert receiver.broker_port == 1883
        assert receiver.topic == "custom-topic"
        assert receiver.use_tls is False
