"""Fixtures compartidos por los tests del servicio de ingesta energética."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional

import pytest
from sqlalchemy import create_engine

from common.config import Settings
from energy_api.clients.registration_oracle import RegistrationOracle
from energy_api.clients.timeseries import (
    MEASUREMENT,
    VALUE_FIELD,
    LastPoint,
    TimeSeriesStore,
    report_tags,
)
from energy_api.core.admission import AdmissionValidator, PersistenceFanout
from energy_api.core.domain import EnergyReport, EnergyTuple, TimeSeriesError
from energy_api.core.domain.errors import RegistrationLookupError
from energy_api.infrastructure.audit import AuditLogWriter
from energy_api.registry import DeviceRegistry

DEVICE_ID = "dev-1"
REPORT_DATE = "2024-03-01"
TIMEZONE = "Europe/Stockholm"


# =============================================================================
# HELPERS
# =============================================================================

def make_report(
    values: Optional[List[float]] = None,
    device_id: str = DEVICE_ID,
    date: str = REPORT_DATE,
    timezone_name: str = TIMEZONE,
) -> EnergyReport:
    """Reporte diario con un valor por slot de 15 minutos (por defecto 0..95)."""
    if values is None:
        values = [float(i) for i in range(96)]
    start = datetime.fromisoformat(date).replace(tzinfo=timezone.utc)
    data = [
        EnergyTuple(value=float(v), timestamp=start + timedelta(minutes=15 * i))
        for i, v in enumerate(values)
    ]
    return EnergyReport(
        version=1,
        device_id=device_id,
        date=date,
        timezone_name=timezone_name,
        data=data,
    )


def make_payload(values: Optional[List[float]] = None, **kwargs) -> Dict[str, Any]:
    """Payload de cable equivalente (HTTP / MQTT)."""
    return make_report(values, **kwargs).to_dict()


class StaticOracle(RegistrationOracle):
    """Oracle de registro en memoria."""

    def __init__(self, registered=(DEVICE_ID,), error: Optional[Exception] = None):
        self.registered = set(registered)
        self.error = error
        self.calls: List[str] = []

    def is_registered(self, device_id: str) -> bool:
        self.calls.append(device_id)
        if self.error is not None:
            raise self.error
        return device_id in self.registered


class InMemoryTimeSeries(TimeSeriesStore):
    """Almacén de series temporales en memoria.

    fail_after: cantidad de escrituras exitosas antes de empezar a fallar.
    """

    def __init__(self, fail_after: Optional[int] = None, query_error: Optional[Exception] = None):
        self.points: List[tuple] = []
        self.fail_after = fail_after
        self.query_error = query_error
        self.write_attempts = 0

    def write_point(self, measurement, tags, fields, timestamp) -> None:
        self.write_attempts += 1
        if self.fail_after is not None and self.write_attempts > self.fail_after:
            raise TimeSeriesError("write timeout")
        self.points.append((measurement, dict(tags), dict(fields), timestamp))

    def get_last_point(self, measurement: str, tags: Mapping[str, str]) -> Optional[LastPoint]:
        if self.query_error is not None:
            raise self.query_error
        matching = [
            p for p in self.points
            if p[0] == measurement and all(p[1].get(k) == v for k, v in tags.items())
        ]
        if not matching:
            return None
        last = max(matching, key=lambda p: p[3])
        return LastPoint(value=last[2][VALUE_FIELD], timestamp=last[3], tags=last[1])

    def seed(self, value: float, timestamp: datetime, device_id=DEVICE_ID, timezone_name=TIMEZONE):
        self.points.append(
            (MEASUREMENT, report_tags(device_id, timezone_name), {VALUE_FIELD: value}, timestamp)
        )

    def points_for(self, device_id: str = DEVICE_ID) -> List[tuple]:
        return [p for p in self.points if p[1].get("Inspelning") == device_id]


def make_settings(tmp_path, **overrides) -> Settings:
    values = dict(
        server_port=8080,
        server_password="s3cret",
        log_level="debug",
        data_file=str(tmp_path / "energy_data.json"),
        registry_db_url="sqlite:///" + str(tmp_path / "devices.db"),
        influxdb_url="http://localhost:8086",
        influxdb_token="token",
        influxdb_org="org",
        influxdb_bucket="energy",
        influxdb_lookback="30d",
        planetmint_rest_url="http://localhost:1317",
        planetmint_timeout_seconds=1.0,
        mqtt_enabled=False,
        mqtt_broker_host="localhost",
        mqtt_broker_port=8883,
        mqtt_username=None,
        mqtt_password=None,
        mqtt_topic="energy-consumption-reports",
        mqtt_tls=True,
        audit_queue_size=100,
    )
    values.update(overrides)
    return Settings(**values)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def registry(tmp_path):
    engine = create_engine(
        "sqlite:///" + str(tmp_path / "devices.db"),
        connect_args={"check_same_thread": False},
    )
    reg = DeviceRegistry(engine)
    yield reg
    reg.close()


@pytest.fixture
def oracle() -> StaticOracle:
    return StaticOracle()


@pytest.fixture
def timeseries() -> InMemoryTimeSeries:
    return InMemoryTimeSeries()


@pytest.fixture
def audit(tmp_path):
    writer = AuditLogWriter(str(tmp_path / "energy_data.json"), max_queue_size=100)
    yield writer
    writer.stop(drain=False)


@pytest.fixture
def validator(registry, oracle, timeseries, audit) -> AdmissionValidator:
    return AdmissionValidator(
        registry=registry,
        oracle=oracle,
        timeseries=timeseries,
        fanout=PersistenceFanout(timeseries, audit),
    )


@pytest.fixture
def lookup_error() -> RegistrationLookupError:
    return RegistrationLookupError("connection refused")
