"""Modelo de dispositivo registrado."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Device:
    """Dispositivo registrado. Inmutable una vez creado.

    El id vive en la clave del registro (`device:<id>`); el valor JSON
    guarda solo los demás campos.
    """
    device_id: str
    liquid_address: str
    device_name: str
    device_type: str
    planetmint_address: str
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "liquid_address": self.liquid_address,
            "device_name": self.device_name,
            "device_type": self.device_type,
            "planetmint_address": self.planetmint_address,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, device_id: str, raw: str) -> "Device":
        data = json.loads(raw)
        return cls(
            device_id=device_id,
            liquid_address=data.get("liquid_address", ""),
            device_name=data.get("device_name", ""),
            device_type=data.get("device_type", ""),
            planetmint_address=data.get("planetmint_address", ""),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )
