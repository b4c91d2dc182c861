"""Core services exports."""

# Catalog Services
from .catalog.product_maintenance import ProductMaintenanceService, build_product_maintenance
from .catalog.product_workflow import ProductWorkflowService, build_product_workflow

# Database Services
from .database.db_manage import DbManageService
from .database.db_session import DbSessionService
from .database.driver import SessionDriver, TransactionDriver
from .database.transaction import (
    BatchError,
    BatchResult,
    IsolationLevel,
    TransactionMetrics,
    TransactionRunner,
)

__all__ = [
    # Catalog Services
    "ProductMaintenanceService",
    "build_product_maintenance",
    "ProductWorkflowService",
    "build_product_workflow",
    # Database Services
    "BatchError",
    "BatchResult",
    "DbManageService",
    "DbSessionService",
    "IsolationLevel",
    "SessionDriver",
    "TransactionDriver",
    "TransactionMetrics",
    "TransactionRunner",
]
