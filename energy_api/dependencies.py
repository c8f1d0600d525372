"""Construcción de dependencias del servicio.

La configuración se carga una vez y se inyecta en cada componente;
no hay estado global de configuración.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from common.config import Settings
from common.db import get_registry_engine

from .clients.registration_oracle import PlanetmintClient, RegistrationOracle
from .clients.timeseries import InfluxTimeSeriesStore, TimeSeriesStore
from .core.admission import AdmissionValidator, PersistenceFanout
from .infrastructure.audit.audit_logger import AuditLogWriter
from .mqtt.receiver import MQTTReportReceiver
from .registry.device_registry import DeviceRegistry

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    registry: DeviceRegistry
    oracle: RegistrationOracle
    timeseries: TimeSeriesStore
    audit: AuditLogWriter
    validator: AdmissionValidator
    receiver: Optional[MQTTReportReceiver] = None

    def start(self) -> None:
        self.audit.start()
        if self.receiver is not None:
            if not self.receiver.start():
                logger.error("[APP] MQTT receiver failed to start; HTTP ingress remains available")

    def stop(self) -> None:
        if self.receiver is not None:
            self.receiver.stop()
        self.audit.stop(drain=True)

    def close(self) -> None:
        self.registry.close()
        for client in (self.oracle, self.timeseries):
            close = getattr(client, "close", None)
            if close is not None:
                close()


def build_services(settings: Settings) -> Services:
    registry = DeviceRegistry(get_registry_engine(settings))
    oracle = PlanetmintClient(
        settings.planetmint_rest_url,
        timeout_seconds=settings.planetmint_timeout_seconds,
    )
    timeseries = InfluxTimeSeriesStore.from_settings(settings)
    audit = AuditLogWriter(settings.data_file, max_queue_size=settings.audit_queue_size)
    validator = AdmissionValidator(
        registry=registry,
        oracle=oracle,
        timeseries=timeseries,
        fanout=PersistenceFanout(timeseries, audit),
    )

    receiver = None
    if settings.mqtt_enabled:
        receiver = MQTTReportReceiver.from_settings(validator, settings)
    else:
        logger.info("[APP] MQTT ingress disabled (MQTT_ENABLED=false)")

    return Services(
        settings=settings,
        registry=registry,
        oracle=oracle,
        timeseries=timeseries,
        audit=audit,
        validator=validator,
        receiver=receiver,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_validator(request: Request) -> AdmissionValidator:
    return get_services(request).validator


def get_registry(request: Request) -> DeviceRegistry:
    return get_services(request).registry
