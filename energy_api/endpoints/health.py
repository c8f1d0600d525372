"""Health check del servicio."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ..dependencies import Services, get_services

router = APIRouter(tags=["health"])


@router.get("/health")
def health(services: Services = Depends(get_services)):
    mqtt = services.receiver.health_check() if services.receiver is not None else {"enabled": False}
    return {
        "status": "ok",
        "audit": services.audit.metrics,
        "mqtt": mqtt,
    }
