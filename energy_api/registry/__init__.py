"""Registro local de dispositivos."""

from .device_registry import DeviceRegistry
from .models import Device
from .rwlock import ReadWriteLock

__all__ = ["DeviceRegistry", "Device", "ReadWriteLock"]
