from .audit_logger import AuditLogWriter

__all__ = ["AuditLogWriter"]
