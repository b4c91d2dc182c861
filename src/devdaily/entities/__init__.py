"""Entities module with hybrid entity-centric structure.

Each entity has its own package containing:
- entity.py: Domain model with business logic
- table.py: Database persistence model
- repository.py: Data access layer
"""

from .catalog.product import Product, ProductRepository, ProductStatus, ProductTable
from .core.audit_log import AuditLog, AuditLogRepository, AuditLogTable

__all__ = [
    "AuditLog",
    "AuditLogRepository",
    "AuditLogTable",
    "Product",
    "ProductRepository",
    "ProductStatus",
    "ProductTable",
]
