"""Modelo de dominio para reportes de consumo energético."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List

SLOTS_PER_DAY = 96
TIMESTAMP_LAYOUT = "%Y-%m-%d %H:%M:%S"


def format_timestamp(ts: datetime) -> str:
    """Formato de cable: UTC, sin zona, precisión de segundos."""
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc)
    return ts.strftime(TIMESTAMP_LAYOUT)


@dataclass(frozen=True)
class EnergyTuple:
    """Lectura acumulada del medidor en un slot de 15 minutos."""
    value: float
    timestamp: datetime

    def to_dict(self) -> dict:
        return {"value": self.value, "timestamp": format_timestamp(self.timestamp)}


@dataclass
class EnergyReport:
    """Reporte diario de un dispositivo - contrato único del pipeline de admisión.

    HTTP / MQTT → EnergyReport → AdmissionValidator → InfluxDB + audit log
    """
    version: int
    device_id: str
    date: str
    timezone_name: str
    data: List[EnergyTuple] = field(default_factory=list)

    @property
    def first_value(self) -> float:
        return self.data[0].value

    def is_increasing(self) -> bool:
        """True si los valores son monótonos no decrecientes (se permiten tramos planos)."""
        for prev, cur in zip(self.data, self.data[1:]):
            if cur.value < prev.value:
                return False
        return True

    def to_dict(self) -> dict:
        """Convierte al esquema de cable (una línea del audit log)."""
        return {
            "version": self.version,
            "id": self.device_id,
            "date": self.date,
            "timezone_name": self.timezone_name,
            "data": [t.to_dict() for t in self.data],
        }
