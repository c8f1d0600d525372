"""Resultado tipado de la admisión de un reporte."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import AdmissionError


class AdmissionStage(Enum):
    """Estado alcanzado por una solicitud dentro del pipeline de admisión."""
    RECEIVED = "received"
    STRUCTURALLY_VALID = "structurally_valid"
    REGISTRATION_CHECKED = "registration_checked"
    DUPLICATE_CHECKED = "duplicate_checked"
    CONTINUITY_CHECKED = "continuity_checked"
    CLASSIFIED = "classified"
    STATUS_COMMITTED = "status_committed"
    PERSISTED = "persisted"
    PERSIST_FAILED = "persist_failed"
    REJECTED = "rejected"


class ReportStatus(str, Enum):
    VALID = "valid"
    INVALID = "invalid"


@dataclass(frozen=True)
class IngressContext:
    """Contexto de la entrada que originó la solicitud (http, mqtt)."""
    transport: str
    client: Optional[str] = None


@dataclass(frozen=True)
class AdmissionOutcome:
    """Accepted | Rejected(kind, message).

    `stage` es el último estado alcanzado; `classification` solo se llena
    cuando la solicitud llegó a clasificarse.
    """
    accepted: bool
    message: str
    stage: AdmissionStage
    kind: Optional[str] = None
    classification: Optional[ReportStatus] = None
    points_written: int = 0

    @classmethod
    def accept(cls, message: str, points_written: int) -> "AdmissionOutcome":
        return cls(
            accepted=True,
            message=message,
            stage=AdmissionStage.PERSISTED,
            classification=ReportStatus.VALID,
            points_written=points_written,
        )

    @classmethod
    def reject(
        cls,
        error: AdmissionError,
        *,
        stage: AdmissionStage = AdmissionStage.REJECTED,
        classification: Optional[ReportStatus] = None,
        points_written: int = 0,
    ) -> "AdmissionOutcome":
        return cls(
            accepted=False,
            message=error.message,
            stage=stage,
            kind=error.kind,
            classification=classification,
            points_written=points_written,
        )
