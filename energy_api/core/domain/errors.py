"""Taxonomía de errores de admisión.

Errores de admisión (resultado de la decisión):
- ValidationError: forma incorrecta del reporte
- NotRegisteredError: el ledger no reconoce el dispositivo
- ConflictError: reporte duplicado o datos que no crecen respecto al histórico
- ComplianceError: lote no monotónico internamente
- InternalError: fallo de un colaborador (almacenamiento o transporte)

Errores de colaboradores (se convierten a InternalError en el validador):
- RegistryError, RegistrationLookupError, TimeSeriesError
"""

from __future__ import annotations


class AdmissionError(Exception):
    """Base de todos los rechazos de admisión."""

    kind = "admission"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AdmissionError):
    kind = "validation"


class NotRegisteredError(AdmissionError):
    kind = "not_registered"


class ConflictError(AdmissionError):
    kind = "conflict"


class ComplianceError(AdmissionError):
    kind = "compliance"


class InternalError(AdmissionError):
    kind = "internal"


class RegistryError(Exception):
    """Fallo de almacenamiento en el registro local de dispositivos."""


class RegistrationLookupError(Exception):
    """Fallo de transporte/consulta contra el ledger de registro."""


class TimeSeriesError(Exception):
    """Fallo de lectura o escritura en el almacén de series temporales."""
