"""Módulo de endpoints HTTP."""

from .devices import router as devices_router
from .energy import router as energy_router
from .health import router as health_router

__all__ = [
    "devices_router",
    "energy_router",
    "health_router",
]
