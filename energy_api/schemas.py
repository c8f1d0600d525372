from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .core.domain.report import TIMESTAMP_LAYOUT, EnergyReport, EnergyTuple

DATE_LAYOUT = "%Y-%m-%d"
# Solo la forma canónica: la fecha se usa tal cual como clave del estado del reporte
_DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


class EnergyTupleIn(BaseModel):
    # NaN/inf rompen las comparaciones de monotonía y continuidad
    value: float = Field(allow_inf_nan=False)
    # "YYYY-MM-DD HH:MM:SS", siempre UTC
    timestamp: datetime

    @field_validator("timestamp", mode="before")
    @classmethod
    def parse_timestamp(cls, v: Any) -> Any:
        if isinstance(v, str):
            return datetime.strptime(v, TIMESTAMP_LAYOUT).replace(tzinfo=timezone.utc)
        return v


class EnergyReportIn(BaseModel):
    """Esquema de cable compartido por HTTP y MQTT.

    La cantidad de slots (96) NO se valida aquí: es la primera verificación
    del validador de admisión.
    """

    version: int
    id: str
    date: str
    timezone_name: str
    data: List[EnergyTupleIn] = Field(default_factory=list)

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        if not _DATE_PATTERN.fullmatch(v):
            raise ValueError(f"date must use the YYYY-MM-DD layout, got {v!r}")
        datetime.strptime(v, DATE_LAYOUT)
        return v

    def to_report(self) -> EnergyReport:
        return EnergyReport(
            version=self.version,
            device_id=self.id,
            date=self.date,
            timezone_name=self.timezone_name,
            data=[EnergyTuple(value=t.value, timestamp=t.timestamp) for t in self.data],
        )


class Response(BaseModel):
    message: Optional[str] = None
    error: Optional[str] = None


class DeviceOut(BaseModel):
    liquid_address: str
    device_name: str
    device_type: str
    planetmint_address: str
    timestamp: datetime


DevicesOut = Dict[str, DeviceOut]
