"""Handler de mensajes MQTT con reportes energéticos.

FLUJO IDÉNTICO A HTTP:
1. Decodificar payload (mismo esquema EnergyReportIn)
2. Admitir con el mismo AdmissionValidator
3. Sin canal de respuesta: todo rechazo se loguea y el mensaje se descarta
"""

from __future__ import annotations

import json
import logging
import time
from typing import Optional

from pydantic import ValidationError as SchemaError

from ..core.admission.outcome import status_code_for
from ..core.admission.validator import AdmissionValidator
from ..core.domain.outcome import AdmissionOutcome, IngressContext
from ..schemas import EnergyReportIn

logger = logging.getLogger(__name__)


class HandlerStats:
    """Estadísticas del handler MQTT."""

    def __init__(self):
        self.received = 0
        self.accepted = 0
        self.rejected = 0
        self.failed = 0
        self.last_message_at: float = 0

    def __str__(self) -> str:
        return (
            f"Stats: received={self.received} accepted={self.accepted} "
            f"rejected={self.rejected} failed={self.failed}"
        )

    def to_dict(self) -> dict:
        return {
            "received": self.received,
            "accepted": self.accepted,
            "rejected": self.rejected,
            "failed": self.failed,
            "last_message_at": self.last_message_at,
        }


class ReportMessageHandler:
    """Decodifica y admite un mensaje MQTT."""

    def __init__(self, validator: AdmissionValidator):
        self._validator = validator
        self._stats = HandlerStats()

    def handle(self, topic: str, payload: bytes) -> Optional[AdmissionOutcome]:
        """Procesa un mensaje. Retorna el resultado, o None si no se pudo decodificar."""
        self._stats.received += 1
        self._stats.last_message_at = time.time()

        report_in = self._decode(topic, payload)
        if report_in is None:
            self._stats.failed += 1
            return None

        report = report_in.to_report()
        outcome = self._validator.admit(report, IngressContext(transport="mqtt", client=topic))

        if outcome.accepted:
            self._stats.accepted += 1
            logger.info(
                "[MQTT] Energy data received and written id=%s date=%s points=%d",
                report.device_id, report.date, outcome.points_written,
            )
        elif outcome.kind == "internal":
            self._stats.failed += 1
            logger.error(
                "[MQTT] Internal error id=%s date=%s status=%d error=%s",
                report.device_id, report.date, status_code_for(outcome), outcome.message,
            )
        else:
            self._stats.rejected += 1
            logger.warning(
                "[MQTT] Dropped id=%s date=%s status=%d error=%s",
                report.device_id, report.date, status_code_for(outcome), outcome.message,
            )
        return outcome

    def _decode(self, topic: str, payload: bytes) -> Optional[EnergyReportIn]:
        try:
            data = json.loads(payload.decode("utf-8"))
            return EnergyReportIn.model_validate(data)
        except (UnicodeDecodeError, ValueError, SchemaError) as e:
            logger.warning("[MQTT] Failed to decode JSON: %s (topic=%s)", e, topic)
            return None

    @property
    def stats(self) -> HandlerStats:
        return self._stats
