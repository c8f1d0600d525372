"""Receptor MQTT de reportes energéticos.

Usa paho-mqtt para suscribirse al topic de reportes y delega cada mensaje
a ReportMessageHandler (mismo validador que el endpoint HTTP).

Flujo:
  MQTT topic energy-consumption-reports
  → receiver (este archivo)
  → message_handler
  → AdmissionValidator
"""

from __future__ import annotations

import logging
import time
from typing import Optional

import paho.mqtt.client as mqtt

from ..core.admission.validator import AdmissionValidator
from .message_handler import ReportMessageHandler

logger = logging.getLogger(__name__)

DEFAULT_TOPIC = "energy-consumption-reports"
CONNECT_TIMEOUT_SECONDS = 5.0


class MQTTReportReceiver:
    """Receptor MQTT que admite reportes con el validador compartido."""

    def __init__(
        self,
        validator: AdmissionValidator,
        broker_host: str = "localhost",
        broker_port: int = 8883,
        username: Optional[str] = None,
        password: Optional[str] = None,
        topic: str = DEFAULT_TOPIC,
        use_tls: bool = True,
        client_id: str = "energy-ingest",
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.username = username
        self.password = password
        self.topic = topic or DEFAULT_TOPIC
        self.use_tls = use_tls
        self.client_id = f"{client_id}-{int(time.time())}"

        self._handler = ReportMessageHandler(validator)
        self._client: Optional[mqtt.Client] = None
        self._running = False
        self._connected = False

    @classmethod
    def from_settings(cls, validator: AdmissionValidator, settings) -> "MQTTReportReceiver":
        return cls(
            validator,
            broker_host=settings.mqtt_broker_host,
            broker_port=settings.mqtt_broker_port,
            username=settings.mqtt_username,
            password=settings.mqtt_password,
            topic=settings.mqtt_topic,
            use_tls=settings.mqtt_tls,
        )

    def _build_client(self) -> mqtt.Client:
        client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=self.client_id,
            protocol=mqtt.MQTTv311,
        )
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message

        if self.username and self.password:
            client.username_pw_set(self.username, self.password)
        if self.use_tls:
            client.tls_set()
        return client

    def _wait_connected(self, timeout: float = CONNECT_TIMEOUT_SECONDS) -> bool:
        deadline = time.monotonic() + timeout
        while not self._connected and time.monotonic() < deadline:
            time.sleep(0.1)
        return self._connected

    def start(self) -> bool:
        """Conecta al broker y arranca el hilo de red de paho.

        Retorna False si no hubo conexión; la entrada HTTP sigue disponible.
        """
        logger.info(
            "[MQTT] Connecting to %s:%d topic=%s tls=%s",
            self.broker_host, self.broker_port, self.topic, self.use_tls,
        )
        try:
            self._client = self._build_client()
            self._client.connect(self.broker_host, self.broker_port, keepalive=60)
        except Exception as e:
            logger.exception("[MQTT] Start failed: %s", e)
            return False

        self._client.loop_start()
        self._running = True

        if not self._wait_connected():
            logger.error("[MQTT] Connection timeout after %.0fs", CONNECT_TIMEOUT_SECONDS)
            return False

        logger.info("[MQTT] Receiver ready")
        return True

    def stop(self) -> None:
        """Detiene el hilo de red y desconecta."""
        self._running = False
        client, self._client = self._client, None
        if client is not None:
            try:
                client.loop_stop()
                client.disconnect()
            except Exception as e:
                logger.warning("[MQTT] Error stopping: %s", e)

        logger.info("[MQTT] Stopped. %s", self._handler.stats)

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code != 0:
            self._connected = False
            logger.error("[MQTT] Connection refused: rc=%s", reason_code)
            return

        self._connected = True
        # Re-suscribir en cada (re)conexión: la sesión no es persistente
        client.subscribe(self.topic, qos=0)
        logger.info("[MQTT] Connected, subscribed to %s", self.topic)

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        self._connected = False
        logger.warning("[MQTT] Disconnected (rc=%s)", reason_code)

    def _on_message(self, client, userdata, msg):
        try:
            self._handler.handle(msg.topic, msg.payload)
        except Exception as e:
            self._handler.stats.failed += 1
            logger.exception("[MQTT] Processing error: %s", e)

        if self._handler.stats.received % 100 == 0:
            logger.info("[MQTT] %s", self._handler.stats)

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def stats(self) -> dict:
        return {
            "connected": self._connected,
            "broker": f"{self.broker_host}:{self.broker_port}",
            "topic": self.topic,
            **self._handler.stats.to_dict(),
        }

    def health_check(self) -> dict:
        return {
            "healthy": self._running and self._connected,
            "connected": self._connected,
            "topic": self.topic,
            "messages_accepted": self._handler.stats.accepted,
            "messages_rejected": self._handler.stats.rejected,
            "messages_failed": self._handler.stats.failed,
        }
