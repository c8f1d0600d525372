"""Cliente del almacén de series temporales (InfluxDB 2.x).

Un punto por slot de 15 minutos:
    measurement = "energy_data"
    tags        = {"Inspelning": <device_id>, "timezone": <timezone_name>}
    fields      = {"kW/h": <lectura acumulada>}
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from influxdb_client import InfluxDBClient, Point, WritePrecision
from influxdb_client.client.write_api import SYNCHRONOUS

from ..core.domain.errors import TimeSeriesError

logger = logging.getLogger(__name__)

MEASUREMENT = "energy_data"
VALUE_FIELD = "kW/h"
DEVICE_TAG = "Inspelning"
TIMEZONE_TAG = "timezone"


def report_tags(device_id: str, timezone_name: str) -> Dict[str, str]:
    return {DEVICE_TAG: device_id, TIMEZONE_TAG: timezone_name}


@dataclass(frozen=True)
class LastPoint:
    """Último punto registrado para una combinación de tags."""
    value: float
    timestamp: datetime
    tags: Dict[str, str] = field(default_factory=dict)


class TimeSeriesStore(ABC):
    """Contrato consumido por el validador y el fan-out de persistencia."""

    @abstractmethod
    def write_point(
        self,
        measurement: str,
        tags: Mapping[str, str],
        fields: Mapping[str, Any],
        timestamp: datetime,
    ) -> None:
        """Escribe un punto. Raises TimeSeriesError."""

    @abstractmethod
    def get_last_point(self, measurement: str, tags: Mapping[str, str]) -> Optional[LastPoint]:
        """Último punto dentro de la ventana reciente, o None. Raises TimeSeriesError."""


def _flux_string(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def build_last_point_query(
    bucket: str,
    measurement: str,
    tags: Mapping[str, str],
    lookback: str,
) -> str:
    """Compone la consulta Flux del último punto para los tags dados."""
    predicates = [f'r["_measurement"] == {_flux_string(measurement)}']
    predicates.append(f'r["_field"] == {_flux_string(VALUE_FIELD)}')
    for key in sorted(tags):
        predicates.append(f"r[{_flux_string(key)}] == {_flux_string(tags[key])}")

    return (
        f"from(bucket: {_flux_string(bucket)})"
        f" |> range(start: -{lookback})"
        f" |> filter(fn: (r) => {' and '.join(predicates)})"
        " |> last()"
    )


class InfluxTimeSeriesStore(TimeSeriesStore):
    """Implementación sobre influxdb-client (write API bloqueante)."""

    def __init__(
        self,
        client: InfluxDBClient,
        org: str,
        bucket: str,
        lookback: str = "30d",
    ):
        self._client = client
        self._org = org
        self._bucket = bucket
        self._lookback = lookback
        self._write_api = client.write_api(write_options=SYNCHRONOUS)
        self._query_api = client.query_api()

    @classmethod
    def from_settings(cls, settings) -> "InfluxTimeSeriesStore":
        client = InfluxDBClient(
            url=settings.influxdb_url,
            token=settings.influxdb_token,
            org=settings.influxdb_org,
        )
        logger.info("[INFLUX] Client created url=%s bucket=%s", settings.influxdb_url, settings.influxdb_bucket)
        return cls(
            client,
            org=settings.influxdb_org,
            bucket=settings.influxdb_bucket,
            lookback=settings.influxdb_lookback,
        )

    def write_point(
        self,
        measurement: str,
        tags: Mapping[str, str],
        fields: Mapping[str, Any],
        timestamp: datetime,
    ) -> None:
        point = Point(measurement)
        for key, value in tags.items():
            point = point.tag(key, value)
        for key, value in fields.items():
            point = point.field(key, value)
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        point = point.time(timestamp, WritePrecision.S)

        try:
            self._write_api.write(bucket=self._bucket, org=self._org, record=point)
        except Exception as e:
            logger.warning("[INFLUX] Write failed measurement=%s tags=%s err=%s", measurement, dict(tags), e)
            raise TimeSeriesError(f"failed to write point: {e}") from e

    def get_last_point(self, measurement: str, tags: Mapping[str, str]) -> Optional[LastPoint]:
        flux = build_last_point_query(self._bucket, measurement, tags, self._lookback)
        try:
            tables = self._query_api.query(flux, org=self._org)
        except Exception as e:
            logger.warning("[INFLUX] Query failed measurement=%s tags=%s err=%s", measurement, dict(tags), e)
            raise TimeSeriesError(f"failed to query last point: {e}") from e

        last: Optional[LastPoint] = None
        try:
            for table in tables:
                for record in table.records:
                    record_tags = {
                        k: v
                        for k, v in record.values.items()
                        if isinstance(v, str) and not k.startswith("_") and k not in ("result", "table")
                    }
                    value = float(record.get_value())
                    if not math.isfinite(value):
                        raise ValueError(f"non-finite value {value}")
                    last = LastPoint(
                        value=value,
                        timestamp=record.get_time(),
                        tags=record_tags,
                    )
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning("[INFLUX] Unreadable last point measurement=%s tags=%s err=%s", measurement, dict(tags), e)
            raise TimeSeriesError(f"failed to decode last point: {e}") from e
        return last

    def close(self) -> None:
        self._client.close()
