"""Entity package: AuditLog."""

from .entity import AuditLog, diff_fields, summarize_changes
from .repository import AuditLogRepository
from .table import AuditLogTable

__all__ = [
    "AuditLog",
    "AuditLogRepository",
    "AuditLogTable",
    "diff_fields",
    "summarize_changes",
]
