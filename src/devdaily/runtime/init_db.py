"""Database initialization script."""

from src.devdaily.core.services.database.db_manage import DbManageService


def init_db(reset: bool = False) -> None:
    """Create all database tables, dropping them first when ``reset``."""
    db_manage_service = DbManageService()
    if reset:
        db_manage_service.drop_all()
    db_manage_service.create_all()


if __name__ == "__main__":
    init_db()
