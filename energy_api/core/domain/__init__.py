"""Modelos de dominio del pipeline de admisión."""

from .errors import (
    AdmissionError,
    ComplianceError,
    ConflictError,
    InternalError,
    NotRegisteredError,
    RegistrationLookupError,
    RegistryError,
    TimeSeriesError,
    ValidationError,
)
from .outcome import AdmissionOutcome, AdmissionStage, IngressContext, ReportStatus
from .report import SLOTS_PER_DAY, EnergyReport, EnergyTuple

__all__ = [
    "AdmissionError",
    "ComplianceError",
    "ConflictError",
    "InternalError",
    "NotRegisteredError",
    "RegistrationLookupError",
    "RegistryError",
    "TimeSeriesError",
    "ValidationError",
    "AdmissionOutcome",
    "AdmissionStage",
    "IngressContext",
    "ReportStatus",
    "SLOTS_PER_DAY",
    "EnergyReport",
    "EnergyTuple",
]
