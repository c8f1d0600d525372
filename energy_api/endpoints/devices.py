"""Endpoints de consulta del registro de dispositivos (solo lectura, con `?pwd=`)."""

from __future__ import annotations

import logging
from typing import Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..auth import require_server_password
from ..core.domain.errors import RegistryError
from ..dependencies import get_registry
from ..registry.device_registry import DeviceRegistry
from ..registry.models import Device
from ..schemas import DevicesOut

router = APIRouter(tags=["devices"], dependencies=[Depends(require_server_password)])
logger = logging.getLogger(__name__)


def _devices_response(devices: Dict[str, Device]) -> JSONResponse:
    return JSONResponse(content={device_id: d.to_dict() for device_id, d in devices.items()})


@router.get("/api/devices", response_model=DevicesOut)
def list_devices(registry: DeviceRegistry = Depends(get_registry)):
    try:
        devices = registry.get_all_devices()
    except RegistryError as e:
        logger.error("[DEVICES] Failed to retrieve devices err=%s", e)
        return JSONResponse(status_code=500, content={"error": "Failed to retrieve devices"})
    return _devices_response(devices)


@router.get("/api/devices/liquid/{liquid_address}", response_model=DevicesOut)
def devices_by_liquid_address(liquid_address: str, registry: DeviceRegistry = Depends(get_registry)):
    try:
        devices = registry.get_by_liquid_address(liquid_address)
    except RegistryError as e:
        logger.error("[DEVICES] Failed to retrieve devices liquid=%s err=%s", liquid_address, e)
        return JSONResponse(status_code=500, content={"error": "Failed to retrieve devices"})
    return _devices_response(devices)


@router.get("/api/devices/{device_id}", response_model=DevicesOut)
def get_device(device_id: str, registry: DeviceRegistry = Depends(get_registry)):
    try:
        device, found = registry.get_device(device_id)
    except RegistryError as e:
        logger.error("[DEVICES] Database error id=%s err=%s", device_id, e)
        return JSONResponse(status_code=500, content={"error": "Database error"})

    if not found:
        return JSONResponse(status_code=404, content={"error": "Device not found"})
    return _devices_response({device_id: device})
