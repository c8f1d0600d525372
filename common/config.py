from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def _default_env_file() -> str:
    # .env junto al directorio de trabajo del servicio.
    return str(Path.cwd() / ".env")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("true", "1", "yes", "on")


@dataclass(frozen=True)
class Settings:
    server_port: int
    server_password: str
    log_level: str
    data_file: str

    registry_db_url: str

    influxdb_url: str
    influxdb_token: str
    influxdb_org: str
    influxdb_bucket: str
    influxdb_lookback: str

    planetmint_rest_url: str
    planetmint_timeout_seconds: float

    mqtt_enabled: bool
    mqtt_broker_host: str
    mqtt_broker_port: int
    mqtt_username: Optional[str]
    mqtt_password: Optional[str]
    mqtt_topic: str
    mqtt_tls: bool

    audit_queue_size: int


def get_settings() -> Settings:
    # Carga el .env (si existe) sin pisar variables reales del entorno.
    env_file = os.getenv("ENERGY_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    return Settings(
        server_port=int(os.getenv("SERVER_PORT", "8080")),
        server_password=os.getenv("SERVER_PASSWORD", ""),
        log_level=os.getenv("LOG_LEVEL", "info"),
        data_file=os.getenv("ENERGY_DATA_FILE", "energy_data.json"),
        registry_db_url=os.getenv("REGISTRY_DB_URL", "sqlite:///devices.db"),
        influxdb_url=os.getenv("INFLUXDB_URL", "http://localhost:8086"),
        influxdb_token=os.getenv("INFLUXDB_TOKEN", ""),
        influxdb_org=os.getenv("INFLUXDB_ORG", ""),
        influxdb_bucket=os.getenv("INFLUXDB_BUCKET", ""),
        influxdb_lookback=os.getenv("INFLUXDB_LOOKBACK", "30d"),
        planetmint_rest_url=os.getenv("PLANETMINT_REST_URL", "http://localhost:1317"),
        planetmint_timeout_seconds=float(os.getenv("PLANETMINT_TIMEOUT_SECONDS", "5")),
        mqtt_enabled=_env_bool("MQTT_ENABLED", "false"),
        mqtt_broker_host=os.getenv("MQTT_BROKER_HOST", "localhost"),
        mqtt_broker_port=int(os.getenv("MQTT_BROKER_PORT", "8883")),
        mqtt_username=os.getenv("MQTT_USERNAME") or None,
        mqtt_password=os.getenv("MQTT_PASSWORD") or None,
        mqtt_topic=os.getenv("MQTT_TOPIC", "energy-consumption-reports"),
        mqtt_tls=_env_bool("MQTT_TLS", "true"),
        audit_queue_size=int(os.getenv("AUDIT_QUEUE_SIZE", "1000")),
    )


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )
