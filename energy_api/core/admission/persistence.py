"""Fan-out de persistencia para reportes aceptados.

1. Audit log: encolado, no bloquea; fallos solo se loguean.
2. Series temporales: sincrónico, un punto por slot. Aborta en el primer
   fallo; los puntos ya escritos quedan (no hay rollback).
"""

from __future__ import annotations

import logging
from typing import Optional

from ...clients.timeseries import MEASUREMENT, VALUE_FIELD, TimeSeriesStore, report_tags
from ...infrastructure.audit.audit_logger import AuditLogWriter
from ..domain.errors import TimeSeriesError
from ..domain.report import EnergyReport

logger = logging.getLogger(__name__)


class PartialWriteError(TimeSeriesError):
    """Fallo de escritura a mitad del lote."""

    def __init__(self, message: str, points_written: int):
        super().__init__(message)
        self.points_written = points_written


class PersistenceFanout:
    def __init__(self, timeseries: TimeSeriesStore, audit: Optional[AuditLogWriter] = None):
        self._timeseries = timeseries
        self._audit = audit

    def persist(self, report: EnergyReport) -> int:
        """Persiste un reporte aceptado.

        Returns:
            Cantidad de puntos escritos.

        Raises:
            PartialWriteError: si falla alguna escritura de series temporales
        """
        if self._audit is not None:
            self._audit.submit(report)

        tags = report_tags(report.device_id, report.timezone_name)
        written = 0
        for entry in report.data:
            try:
                self._timeseries.write_point(
                    MEASUREMENT,
                    tags,
                    {VALUE_FIELD: entry.value},
                    entry.timestamp,
                )
            except TimeSeriesError as e:
                logger.error(
                    "[PERSIST] Time-series write failed id=%s date=%s written=%d err=%s",
                    report.device_id, report.date, written, e,
                )
                raise PartialWriteError(str(e), points_written=written) from e
            written += 1

        return written
