"""Pipeline de admisión de reportes energéticos."""

from .persistence import PartialWriteError, PersistenceFanout
from .validator import AdmissionValidator

__all__ = ["AdmissionValidator", "PartialWriteError", "PersistenceFanout"]
