"""Endpoint HTTP de ingesta de reportes energéticos.

Solo hace marshaling: decodifica, llama al validador compartido y mapea el
resultado a status + cuerpo JSON.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..core.admission.outcome import response_body_for, status_code_for
from ..core.admission.validator import AdmissionValidator
from ..core.domain.outcome import IngressContext
from ..dependencies import get_validator
from ..schemas import EnergyReportIn, Response

router = APIRouter(tags=["energy"])
logger = logging.getLogger(__name__)


@router.post("/api/energy", response_model=Response)
@router.post("/energy", response_model=Response, include_in_schema=False)
def ingest_energy(
    payload: EnergyReportIn,
    request: Request,
    validator: AdmissionValidator = Depends(get_validator),
) -> JSONResponse:
    """Admite un reporte diario (96 slots) de un dispositivo.

    200 aceptado, 400 estructura/registro/cumplimiento, 409 duplicado o
    continuidad, 500 fallo interno.
    """
    client = request.client.host if request.client else None
    outcome = validator.admit(
        payload.to_report(),
        IngressContext(transport="http", client=client),
    )
    return JSONResponse(
        status_code=status_code_for(outcome),
        content=response_body_for(outcome),
    )
