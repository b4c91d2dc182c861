"""Schema management for the catalog database."""

from loguru import logger
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel

from src.devdaily.core.services.database.db_session import DbSessionService


class DbManageService:
    def __init__(self, engine: Engine | None = None):
        self._engine = engine or DbSessionService().engine

    def create_all(self) -> None:
        """Create all database tables."""
        # Registers the tables on SQLModel.metadata
        from src.devdaily.entities.catalog.product import ProductTable  # noqa: F401
        from src.devdaily.entities.core.audit_log import AuditLogTable  # noqa: F401

        SQLModel.metadata.create_all(self._engine)
        logger.info("Database initialized with tables: {}", ", ".join(sorted(SQLModel.metadata.tables)))

    def drop_all(self) -> None:
        """Drop every catalog table. Used by tests and ``init-db --reset``."""
        from src.devdaily.entities.catalog.product import ProductTable  # noqa: F401
        from src.devdaily.entities.core.audit_log import AuditLogTable  # noqa: F401

        SQLModel.metadata.drop_all(self._engine)
        logger.warning("All catalog tables dropped")
