"""Registro local de dispositivos y estado de reportes diarios.

Almacén clave-valor sobre una sola tabla SQL (SQLite por defecto):
- device:<id>                      → JSON del Device
- report:device:<id>,date:<date>   → "valid" | "invalid"

Todas las operaciones pasan por un único lock lectores/escritor:
lecturas concurrentes, cualquier escritura excluye al resto del registro.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, Iterator, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..core.domain.errors import RegistryError
from .models import Device
from .rwlock import ReadWriteLock

logger = logging.getLogger(__name__)

DEVICE_PREFIX = "device:"


def device_key(device_id: str) -> str:
    return f"{DEVICE_PREFIX}{device_id}"


def report_key(device_id: str, date: str) -> str:
    return f"report:device:{device_id},date:{date}"


class DeviceRegistry:
    """Registro de dispositivos (identidad + estado de reporte por día)."""

    def __init__(self, engine: Engine, lock: Optional[ReadWriteLock] = None):
        self._engine = engine
        self._lock = lock or ReadWriteLock()
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        try:
            with self._engine.begin() as conn:
                conn.execute(
                    text(
                        """
                        CREATE TABLE IF NOT EXISTS registry_kv (
                            kv_key VARCHAR(512) PRIMARY KEY,
                            kv_value TEXT NOT NULL
                        )
                        """
                    )
                )
        except SQLAlchemyError as e:
            raise RegistryError(f"failed to open registry: {e}") from e

    def close(self) -> None:
        self._engine.dispose()

    # ------------------------------------------------------------------
    # Primitivas clave-valor (sin lock; el llamador lo toma)
    # ------------------------------------------------------------------

    def _get(self, key: str) -> Optional[str]:
        with self._engine.connect() as conn:
            row = conn.execute(
                text("SELECT kv_value FROM registry_kv WHERE kv_key = :key"),
                {"key": key},
            ).fetchone()
        return None if row is None else str(row[0])

    def _put(self, key: str, value: str) -> None:
        with self._engine.begin() as conn:
            conn.execute(text("DELETE FROM registry_kv WHERE kv_key = :key"), {"key": key})
            conn.execute(
                text("INSERT INTO registry_kv (kv_key, kv_value) VALUES (:key, :value)"),
                {"key": key, "value": value},
            )

    def _iter_devices(self) -> Iterator[Tuple[str, Device]]:
        with self._engine.connect() as conn:
            rows = conn.execute(
                text(
                    "SELECT kv_key, kv_value FROM registry_kv "
                    "WHERE kv_key LIKE :prefix ORDER BY kv_key"
                ),
                {"prefix": f"{DEVICE_PREFIX}%"},
            ).fetchall()

        for row in rows:
            device_id = str(row[0])[len(DEVICE_PREFIX):]
            try:
                yield device_id, Device.from_json(device_id, str(row[1]))
            except (ValueError, KeyError) as e:
                raise RegistryError(f"failed to unmarshal device data: {e}") from e

    # ------------------------------------------------------------------
    # Dispositivos
    # ------------------------------------------------------------------

    def get_device(self, device_id: str) -> Tuple[Optional[Device], bool]:
        """Obtiene un dispositivo por id.

        Returns:
            (device, found). RegistryError solo ante fallo de almacenamiento.
        """
        with self._lock.read_locked():
            try:
                raw = self._get(device_key(device_id))
            except SQLAlchemyError as e:
                raise RegistryError(f"failed to get device: {e}") from e

        if raw is None:
            return None, False

        try:
            return Device.from_json(device_id, raw), True
        except (ValueError, KeyError) as e:
            raise RegistryError(f"failed to unmarshal device data: {e}") from e

    def add_device(
        self,
        device_id: str,
        liquid_address: str,
        device_name: str,
        device_type: str,
        planetmint_address: str,
    ) -> None:
        """Agrega un dispositivo. No protege contra sobrescritura: el llamador verifica antes."""
        device = Device(
            device_id=device_id,
            liquid_address=liquid_address,
            device_name=device_name,
            device_type=device_type,
            planetmint_address=planetmint_address,
            timestamp=datetime.now(timezone.utc),
        )
        with self._lock.write_locked():
            try:
                self._put(device_key(device_id), device.to_json())
            except SQLAlchemyError as e:
                raise RegistryError(f"failed to store device: {e}") from e

        logger.info("[REGISTRY] Device stored id=%s name=%s", device_id, device_name)

    def exists_id(self, device_id: str) -> bool:
        _, found = self.get_device(device_id)
        return found

    def get_all_devices(self) -> Dict[str, Device]:
        with self._lock.read_locked():
            try:
                return dict(self._iter_devices())
            except SQLAlchemyError as e:
                raise RegistryError(f"iterator error: {e}") from e

    def get_by_liquid_address(self, liquid_address: str) -> Dict[str, Device]:
        with self._lock.read_locked():
            try:
                return {
                    device_id: device
                    for device_id, device in self._iter_devices()
                    if device.liquid_address == liquid_address
                }
            except SQLAlchemyError as e:
                raise RegistryError(f"iterator error: {e}") from e

    # ------------------------------------------------------------------
    # Estado de reportes
    # ------------------------------------------------------------------

    def set_report_status(self, device_id: str, date: str, status: str) -> None:
        with self._lock.write_locked():
            try:
                self._put(report_key(device_id, date), status)
            except SQLAlchemyError as e:
                raise RegistryError(f"failed to store report status: {e}") from e

    def create_report_status(self, device_id: str, date: str, status: str) -> bool:
        """Crea el estado solo si no existe.

        Returns:
            True si se creó, False si ya había un estado para (id, fecha).
        """
        with self._lock.write_locked():
            try:
                with self._engine.begin() as conn:
                    conn.execute(
                        text("INSERT INTO registry_kv (kv_key, kv_value) VALUES (:key, :value)"),
                        {"key": report_key(device_id, date), "value": status},
                    )
                return True
            except IntegrityError:
                return False
            except SQLAlchemyError as e:
                raise RegistryError(f"failed to store report status: {e}") from e

    def get_report_status(self, device_id: str, date: str) -> str:
        """Estado del reporte; cadena vacía si no hay registro."""
        with self._lock.read_locked():
            try:
                return self._get(report_key(device_id, date)) or ""
            except SQLAlchemyError as e:
                raise RegistryError(f"failed to get report status: {e}") from e
