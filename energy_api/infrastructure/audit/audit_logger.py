"""Audit Log - Registro append-only de cada reporte aceptado.

Una línea JSON por reporte (JSON Lines) en el archivo de datos configurado.

La escritura no bloquea la respuesta al cliente:
    submit() → cola acotada → worker → append al archivo (bajo lock)

Si la cola está llena el registro se descarta y se contabiliza en `metrics`
(backpressure visible). Los fallos de escritura solo se loguean.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
from pathlib import Path
from typing import Optional

from ...core.domain.report import EnergyReport

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 1000


class AuditLogWriter:
    """Cola acotada + worker para el audit log."""

    def __init__(self, data_file: str, max_queue_size: int = DEFAULT_QUEUE_SIZE):
        self._path = Path(data_file)
        self._queue: queue.Queue = queue.Queue(maxsize=max_queue_size)
        self._file_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._worker: Optional[threading.Thread] = None

        # Metrics
        self._enqueued = 0
        self._dropped = 0
        self._written = 0
        self._errors = 0
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def start(self) -> None:
        """Inicia el worker."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._worker = threading.Thread(
            target=self._worker_loop,
            daemon=True,
            name="audit-writer",
        )
        self._worker.start()
        logger.info(
            "[AUDIT] Started file=%s queue_max=%d",
            self._path, self._queue.maxsize,
        )

    def stop(self, drain: bool = True) -> None:
        """Detiene el worker. Con drain=True escribe lo pendiente antes."""
        if drain and self.is_running:
            self._queue.join()
        self._stop_event.set()
        if self._worker is not None:
            self._worker.join(timeout=5.0)
        self._worker = None
        logger.info("[AUDIT] Stopped. %s", self.metrics)

    def submit(self, report: EnergyReport) -> bool:
        """Encola un reporte aceptado. Retorna False si la cola está llena."""
        try:
            self._queue.put_nowait(report)
            with self._lock:
                self._enqueued += 1
            return True
        except queue.Full:
            with self._lock:
                self._dropped += 1
            logger.warning(
                "[AUDIT] Queue full, dropped id=%s date=%s",
                report.device_id, report.date,
            )
            return False

    def drain(self) -> None:
        """Bloquea hasta que la cola quede vacía."""
        self._queue.join()

    def append(self, report: EnergyReport) -> None:
        """Escribe una línea en el archivo (sincrónico)."""
        line = json.dumps(report.to_dict()) + "\n"
        with self._file_lock:
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)

    def _worker_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                report = self._queue.get(timeout=0.5)
            except queue.Empty:
                continue

            try:
                self.append(report)
                with self._lock:
                    self._written += 1
            except Exception as e:
                with self._lock:
                    self._errors += 1
                logger.error(
                    "[AUDIT] Failed to write id=%s date=%s err=%s",
                    report.device_id, report.date, e,
                )
            finally:
                self._queue.task_done()

    @property
    def metrics(self) -> dict:
        with self._lock:
            return {
                "queue_depth": self._queue.qsize(),
                "queue_max": self._queue.maxsize,
                "enqueued": self._enqueued,
                "dropped": self._dropped,
                "written": self._written,
                "errors": self._errors,
            }
