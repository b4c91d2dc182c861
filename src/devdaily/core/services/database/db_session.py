"""Database engine and session factory used across the application."""

from collections.abc import Iterator
from contextlib import contextmanager

from loguru import logger
from sqlalchemy import text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, create_engine

from src.devdaily.runtime.config.config_data import ConfigData
from src.devdaily.runtime.context import get_config


class DbSessionService:
    def __init__(self, config: ConfigData | None = None, engine: Engine | None = None):
        """Initialize the shared database engine and session factory.

        ``engine`` lets tests hand in an in-memory engine.
        """
        main_config = config or get_config()
        self._config = main_config

        if engine is not None:
            self._engine = engine
            return

        db_config = main_config.database
        logger.info("Configuring database engine for environment: {}", main_config.app.environment)

        engine_kwargs: dict = {
            "echo": db_config.echo,
            "echo_pool": False,
            # Validate connections before use
            "pool_pre_ping": True,
            "connect_args": self._get_connect_args(main_config),
        }

        # SQLite uses a single-connection pool that rejects sizing options
        if make_url(db_config.url).get_backend_name() != "sqlite":
            engine_kwargs.update(
                {
                    "pool_size": db_config.pool_size,
                    "max_overflow": db_config.max_overflow,
                    "pool_timeout": db_config.pool_timeout,
                    "pool_recycle": db_config.pool_recycle,
                }
            )

        logger.info(
            "Initializing database engine for {}",
            make_url(db_config.connection_string).render_as_string(hide_password=True),
        )
        self._engine = create_engine(db_config.connection_string, **engine_kwargs)

        if main_config.app.environment == "production":
            logger.info(
                "Database engine initialized",
                pool_size=db_config.pool_size,
                max_overflow=db_config.max_overflow,
                pool_timeout=db_config.pool_timeout,
                pool_recycle=db_config.pool_recycle,
            )

    @property
    def engine(self) -> Engine:
        return self._engine

    def _get_connect_args(self, config: ConfigData) -> dict:
        """Get database-specific connection arguments."""
        connect_args: dict = {}
        backend = make_url(config.database.url).get_backend_name()

        if backend == "postgresql":
            connect_args.update(
                {
                    # Application name for connection tracking
                    "application_name": f"{config.app.environment}_devdaily",
                    "connect_timeout": 30,
                }
            )
        elif backend == "sqlite":
            connect_args.update(
                {
                    "check_same_thread": False,
                    "timeout": 20,
                }
            )
            if config.app.environment == "production":
                logger.warning(
                    "SQLite is not recommended for production use. "
                    "Consider PostgreSQL or MySQL for row locking and isolation levels."
                )

        return connect_args

    def get_session(self) -> Session:
        """Return a new SQLModel session bound to the shared engine.

        Transaction boundaries belong to the TransactionRunner, so objects are
        not expired on commit.
        """
        return Session(self._engine, expire_on_commit=False, autoflush=True)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Yield a session that commits on success and rolls back on error."""
        db = self.get_session()
        try:
            yield db
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(
                "Database transaction failed",
                error_type=type(e).__name__,
                error_message=str(e),
            )
            raise
        finally:
            db.close()

    def health_check(self) -> bool:
        """Perform a health check on the database connection."""
        try:
            with self._engine.connect() as connection:
                connection.execute(text("SELECT 1"))
                return True
        except SQLAlchemyError as e:
            logger.error(
                "Database health check failed",
                error_type=type(e).__name__,
                error_message=str(e),
            )
            return False
