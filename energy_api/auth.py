"""Protección por contraseña de las consultas del registro.

La contraseña viene de SERVER_PASSWORD y se pasa como `?pwd=`.
Sin contraseña configurada las consultas quedan cerradas.
"""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Query

from .dependencies import Services, get_services

logger = logging.getLogger(__name__)

UNAUTHORIZED_DETAIL = "Unauthorized: missing or incorrect password"


def require_server_password(
    pwd: Optional[str] = Query(default=None),
    services: Services = Depends(get_services),
) -> None:
    expected = services.settings.server_password

    if not expected:
        logger.warning("[SECURITY] SERVER_PASSWORD not set - device queries disabled")
        raise HTTPException(status_code=401, detail=UNAUTHORIZED_DETAIL)

    if not pwd or not secrets.compare_digest(pwd.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("[SECURITY] Invalid password attempt on device query")
        raise HTTPException(status_code=401, detail=UNAUTHORIZED_DETAIL)
