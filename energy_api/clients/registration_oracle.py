"""Cliente del ledger de registro (Planetmint).

El ledger es la fuente de verdad sobre si un dispositivo está registrado;
el registro local no basta para admitir un reporte.

Consulta el REST gateway de la cadena:
    GET {rest_url}/planetmint/der/der/{id}
    200 → {"der": {"zigbeeID": ..., "plmntAddress": ..., "liquidAddress": ...}}
    404 / "not found" → no registrado
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

import requests

from ..core.domain.errors import RegistrationLookupError

logger = logging.getLogger(__name__)

DER_QUERY_PATH = "/planetmint/der/der/{device_id}"


class RegistrationOracle(ABC):
    """Contrato consumido por el validador de admisión."""

    @abstractmethod
    def is_registered(self, device_id: str) -> bool:
        """True si el ledger confirma el registro.

        Raises:
            RegistrationLookupError: fallo de transporte o respuesta inesperada
        """


class PlanetmintClient(RegistrationOracle):
    """Consulta DERs registrados en Planetmint vía REST."""

    def __init__(
        self,
        rest_url: str,
        timeout_seconds: float = 5.0,
        session: Optional[requests.Session] = None,
    ):
        self._rest_url = rest_url.rstrip("/")
        self._timeout = timeout_seconds
        self._session = session or requests.Session()

    def is_registered(self, device_id: str) -> bool:
        url = self._rest_url + DER_QUERY_PATH.format(device_id=device_id)
        try:
            response = self._session.get(url, timeout=self._timeout)
        except requests.RequestException as e:
            logger.warning("[PLANETMINT] Lookup failed id=%s err=%s", device_id, e)
            raise RegistrationLookupError(str(e)) from e

        if response.status_code == 404 or (
            response.status_code >= 400 and "not found" in response.text.lower()
        ):
            logger.debug("[PLANETMINT] No DER found for id=%s", device_id)
            return False

        if response.status_code >= 400:
            logger.warning(
                "[PLANETMINT] Lookup error id=%s status=%d",
                device_id,
                response.status_code,
            )
            raise RegistrationLookupError(
                f"DER query failed with status {response.status_code}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise RegistrationLookupError(f"invalid DER response: {e}") from e

        if body is None:
            body = {}
        if not isinstance(body, dict):
            raise RegistrationLookupError(f"invalid DER response: expected object, got {type(body).__name__}")
        der = body.get("der") or {}
        if not isinstance(der, dict):
            raise RegistrationLookupError(f"invalid DER response: der is {type(der).__name__}")

        registered_id = der.get("zigbeeID") or der.get("zigbee_id")
        registered = registered_id == device_id
        logger.debug("[PLANETMINT] id=%s registered=%s", device_id, registered)
        return registered

    def close(self) -> None:
        self._session.close()
