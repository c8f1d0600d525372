"""Clientes de colaboradores externos (ledger y series temporales)."""

from .registration_oracle import PlanetmintClient, RegistrationOracle
from .timeseries import InfluxTimeSeriesStore, LastPoint, TimeSeriesStore

__all__ = [
    "PlanetmintClient",
    "RegistrationOracle",
    "InfluxTimeSeriesStore",
    "LastPoint",
    "TimeSeriesStore",
]
