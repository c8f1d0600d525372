from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from common.config import configure_logging, get_settings

from .dependencies import Services, build_services
from .endpoints import devices_router, energy_router, health_router

logger = logging.getLogger(__name__)


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Crea la app. Si no se pasan servicios, se construyen desde el entorno al arrancar."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        current = services
        if current is None:
            settings = get_settings()
            configure_logging(settings.log_level)
            current = build_services(settings)
            app.state.services = current

        current.start()
        logger.info("[APP] Energy ingest service started")
        try:
            yield
        finally:
            current.stop()
            current.close()
            logger.info("[APP] Energy ingest service stopped")

    app = FastAPI(title="Energy Ingest Service", version="0.1.0", lifespan=lifespan)
    if services is not None:
        app.state.services = services

    @app.exception_handler(RequestValidationError)
    async def _decode_error_handler(request: Request, exc: RequestValidationError):
        # Cuerpo ilegible o con forma incorrecta: mismo contrato que un JSON inválido.
        logger.warning("[HTTP] Failed to decode JSON path=%s errors=%s", request.url.path, exc.errors())
        return JSONResponse(status_code=400, content={"error": "Failed to decode JSON"})

    app.include_router(energy_router)
    app.include_router(devices_router)
    app.include_router(health_router)
    return app


def main() -> None:
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(), host="0.0.0.0", port=settings.server_port)


if __name__ == "__main__":
    main()
