from __future__ import annotations

import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from .config import Settings


logger = logging.getLogger(__name__)


def get_registry_engine(settings: Settings) -> Engine:
    url = settings.registry_db_url

    # SQLite compartido entre el threadpool de FastAPI y el hilo de paho.
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    logger.info("[DB] Crear engine del registro url=%s", url.split("@")[-1])
    engine = create_engine(url, pool_pre_ping=True, future=True, connect_args=connect_args)

    # Test de conexión: deja rastro en logs si el archivo no es accesible
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("[DB] Test de conexión OK")
    except Exception:
        logger.exception("[DB] Test de conexión FALLÓ")

    return engine
