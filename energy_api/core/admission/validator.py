"""Validador de admisión - decide si un reporte entra al almacén.

Orden fijo de verificaciones (cada una puede cortar el flujo):
1. Estructura: exactamente 96 slots con valores finitos
2. Registro en el ledger (autoritativo sobre el registro local)
3. Duplicado: ya existe estado para (id, fecha)
4. Continuidad: el primer valor no puede ser menor que el último histórico
5. Monotonía del lote: clasifica valid/invalid (NO corta)
6. Commit del estado (best-effort; pierde la carrera → conflicto)
7. invalid → ComplianceError
8. valid → fan-out de persistencia

Las dos entradas (HTTP y MQTT) usan este mismo validador.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from ...clients.registration_oracle import RegistrationOracle
from ...clients.timeseries import MEASUREMENT, TimeSeriesStore, report_tags
from ...registry.device_registry import DeviceRegistry
from ..domain.errors import (
    AdmissionError,
    ComplianceError,
    ConflictError,
    InternalError,
    NotRegisteredError,
    RegistrationLookupError,
    RegistryError,
    TimeSeriesError,
    ValidationError,
)
from ..domain.outcome import AdmissionOutcome, AdmissionStage, IngressContext, ReportStatus
from ..domain.report import SLOTS_PER_DAY, EnergyReport
from .persistence import PartialWriteError, PersistenceFanout

logger = logging.getLogger(__name__)

MSG_ACCEPTED = "Energy data received and written to database successfully"
MSG_NOT_REGISTERED = "device not registered in Planetmint"
MSG_DUPLICATE = "report for this ID and date already exists"
MSG_NOT_INCREASING = "Incompatible data: data does not increase."
MSG_NOT_COMPLIANT = "data set is not compliant"
MSG_LOOKUP_ERROR = "Registration lookup error"
MSG_DATABASE_ERROR = "Database error"
MSG_LAST_POINT_ERROR = "Failed to retrieve last point from database"
MSG_WRITE_ERROR = "Failed to write to database"
MSG_NOT_FINITE = "data values must be finite numbers"


class AdmissionValidator:
    """Pipeline de admisión compartido por todas las entradas."""

    def __init__(
        self,
        registry: DeviceRegistry,
        oracle: RegistrationOracle,
        timeseries: TimeSeriesStore,
        fanout: Optional[PersistenceFanout] = None,
    ):
        self._registry = registry
        self._oracle = oracle
        self._timeseries = timeseries
        self._fanout = fanout or PersistenceFanout(timeseries)

    def admit(self, report: EnergyReport, context: Optional[IngressContext] = None) -> AdmissionOutcome:
        """Ejecuta el pipeline completo y retorna un resultado tipado.

        Nunca lanza AdmissionError: todo rechazo se convierte en AdmissionOutcome.
        """
        transport = context.transport if context else "direct"
        stage = AdmissionStage.RECEIVED
        classification: Optional[ReportStatus] = None

        try:
            self._check_structure(report)
            stage = AdmissionStage.STRUCTURALLY_VALID

            self._check_registration(report)
            stage = AdmissionStage.REGISTRATION_CHECKED

            self._check_duplicate(report)
            stage = AdmissionStage.DUPLICATE_CHECKED

            self._check_continuity(report)
            stage = AdmissionStage.CONTINUITY_CHECKED

            classification = self.classify(report)
            stage = AdmissionStage.CLASSIFIED

            self._commit_status(report, classification)
            stage = AdmissionStage.STATUS_COMMITTED

            if classification is ReportStatus.INVALID:
                logger.info(
                    "[ADMISSION] Not compliant id=%s date=%s transport=%s",
                    report.device_id, report.date, transport,
                )
                raise ComplianceError(MSG_NOT_COMPLIANT)

        except AdmissionError as e:
            self._log_rejection(report, e, transport)
            return AdmissionOutcome.reject(e, classification=classification)

        try:
            written = self._fanout.persist(report)
        except PartialWriteError as e:
            error = InternalError(MSG_WRITE_ERROR)
            self._log_rejection(report, error, transport)
            return AdmissionOutcome.reject(
                error,
                stage=AdmissionStage.PERSIST_FAILED,
                classification=classification,
                points_written=e.points_written,
            )

        logger.info(
            "[ADMISSION] Accepted id=%s date=%s points=%d transport=%s",
            report.device_id, report.date, written, transport,
        )
        return AdmissionOutcome.accept(MSG_ACCEPTED, points_written=written)

    # ------------------------------------------------------------------
    # Verificaciones
    # ------------------------------------------------------------------

    @staticmethod
    def _check_structure(report: EnergyReport) -> None:
        if len(report.data) != SLOTS_PER_DAY:
            raise ValidationError(
                f"data must contain exactly {SLOTS_PER_DAY} entries, got {len(report.data)}"
            )
        if not all(math.isfinite(entry.value) for entry in report.data):
            raise ValidationError(MSG_NOT_FINITE)

    def _check_registration(self, report: EnergyReport) -> None:
        try:
            registered = self._oracle.is_registered(report.device_id)
        except RegistrationLookupError as e:
            logger.error(
                "[ADMISSION] Registration lookup failed id=%s date=%s err=%s",
                report.device_id, report.date, e,
            )
            raise InternalError(MSG_LOOKUP_ERROR) from e

        if not registered:
            raise NotRegisteredError(MSG_NOT_REGISTERED)

    def _check_duplicate(self, report: EnergyReport) -> None:
        try:
            status = self._registry.get_report_status(report.device_id, report.date)
        except RegistryError as e:
            logger.error(
                "[ADMISSION] Failed to check report status id=%s date=%s err=%s",
                report.device_id, report.date, e,
            )
            raise InternalError(MSG_DATABASE_ERROR) from e

        if status:
            raise ConflictError(MSG_DUPLICATE)

    def _check_continuity(self, report: EnergyReport) -> None:
        try:
            last = self._timeseries.get_last_point(
                MEASUREMENT, report_tags(report.device_id, report.timezone_name)
            )
        except TimeSeriesError as e:
            logger.error(
                "[ADMISSION] Failed to get last point id=%s date=%s err=%s",
                report.device_id, report.date, e,
            )
            raise InternalError(MSG_LAST_POINT_ERROR) from e

        # Sin histórico: primer envío, no se compara
        if last is None:
            return

        if report.first_value < last.value:
            raise ConflictError(MSG_NOT_INCREASING)

    @staticmethod
    def classify(report: EnergyReport) -> ReportStatus:
        return ReportStatus.VALID if report.is_increasing() else ReportStatus.INVALID

    def _commit_status(self, report: EnergyReport, status: ReportStatus) -> None:
        try:
            created = self._registry.create_report_status(
                report.device_id, report.date, status.value
            )
        except RegistryError as e:
            logger.error(
                "[ADMISSION] Failed to store report status id=%s date=%s err=%s",
                report.device_id, report.date, e,
            )
            return

        # Otra solicitud para (id, fecha) hizo commit entre la lectura y la escritura
        if not created:
            raise ConflictError(MSG_DUPLICATE)

    @staticmethod
    def _log_rejection(report: EnergyReport, error: AdmissionError, transport: str) -> None:
        logger.warning(
            "[ADMISSION] Rejected id=%s date=%s kind=%s transport=%s reason=%s",
            report.device_id, report.date, error.kind, transport, error.message,
        )
