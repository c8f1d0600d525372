"""Mapeo determinístico resultado → código de estado.

HTTP lo usa como status de la respuesta; MQTT lo registra en el log
(no tiene canal de respuesta).
"""

from __future__ import annotations

from ..domain.errors import (
    ComplianceError,
    ConflictError,
    InternalError,
    NotRegisteredError,
    ValidationError,
)
from ..domain.outcome import AdmissionOutcome

STATUS_BY_KIND = {
    ValidationError.kind: 400,
    NotRegisteredError.kind: 400,
    ComplianceError.kind: 400,
    ConflictError.kind: 409,
    InternalError.kind: 500,
}


def status_code_for(outcome: AdmissionOutcome) -> int:
    if outcome.accepted:
        return 200
    return STATUS_BY_KIND.get(outcome.kind or "", 500)


def response_body_for(outcome: AdmissionOutcome) -> dict:
    if outcome.accepted:
        return {"message": outcome.message}
    return {"error": outcome.message}
