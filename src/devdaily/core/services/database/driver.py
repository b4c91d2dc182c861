"""Database driver port used by the transaction runner.

The runner only needs transaction boundaries, savepoints, two session
settings and a raw query hook. ``SessionDriver`` provides them on top of a
SQLModel ``Session``.
"""

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import SessionTransaction
from sqlmodel import Session


@runtime_checkable
class TransactionDriver(Protocol):
    """Operations the transaction runner issues against the store."""

    @property
    def database_name(self) -> str: ...

    def begin(self) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...

    def savepoint(self, name: str) -> None: ...

    def rollback_to_savepoint(self, name: str) -> None: ...

    def release_savepoint(self, name: str) -> None: ...

    def set_isolation_level(self, level: str) -> bool: ...

    def set_lock_timeout(self, seconds: int) -> bool: ...

    def run_query(
        self, statement: str, params: Mapping[str, Any] | None = None, return_rows: bool = True
    ) -> list[dict[str, Any]] | int: ...


class SessionDriver:
    """``TransactionDriver`` over a SQLModel session.

    Savepoints map to ``Session.begin_nested()``. SQLAlchemy closes every
    savepoint opened after the one being rolled back or released, so the
    bookkeeping here drops them too.
    """

    def __init__(self, session: Session) -> None:
        self._session = session
        self._savepoints: dict[str, SessionTransaction] = {}

    @property
    def session(self) -> Session:
        return self._session

    @property
    def dialect(self) -> str:
        return self._session.get_bind().dialect.name

    @property
    def database_name(self) -> str:
        return self._session.get_bind().url.database or self.dialect

    def begin(self) -> None:
        # Reads before the unit of work may already have autobegun one
        if not self._session.in_transaction():
            self._session.begin()

    def commit(self) -> None:
        self._savepoints.clear()
        self._session.commit()

    def rollback(self) -> None:
        self._savepoints.clear()
        self._session.rollback()

    def savepoint(self, name: str) -> None:
        if name in self._savepoints:
            raise ValueError(f"Savepoint {name!r} already exists")
        self._savepoints[name] = self._session.begin_nested()

    def rollback_to_savepoint(self, name: str) -> None:
        self._pop_savepoint(name).rollback()

    def release_savepoint(self, name: str) -> None:
        self._pop_savepoint(name).commit()

    def _pop_savepoint(self, name: str) -> SessionTransaction:
        names = list(self._savepoints)
        if name not in names:
            raise KeyError(f"Unknown savepoint {name!r}")

        for later in names[names.index(name) + 1 :]:
            del self._savepoints[later]
        return self._savepoints.pop(name)

    def set_isolation_level(self, level: str) -> bool:
        """Apply ``level`` to the connection of the next transaction.

        Returns False when the backend cannot honour it. SQLite only knows
        SERIALIZABLE semantics, and an already open connection keeps the
        level it was checked out with.
        """
        if self.dialect == "sqlite":
            logger.debug("Isolation level {} not supported by sqlite, ignoring", level)
            return False

        if self._session.in_transaction():
            logger.warning("Connection already in use, isolation level {} not applied", level)
            return False

        try:
            self._session.connection(execution_options={"isolation_level": level})
        except SQLAlchemyError as e:
            logger.warning("Failed to set isolation level {}: {}", level, e)
            return False
        return True

    def set_lock_timeout(self, seconds: int) -> bool:
        dialect = self.dialect
        if dialect in ("mysql", "mariadb"):
            statement = f"SET innodb_lock_wait_timeout = {int(seconds)}"
        elif dialect == "postgresql":
            statement = f"SET lock_timeout = {int(seconds) * 1000}"
        elif dialect == "sqlite":
            statement = f"PRAGMA busy_timeout = {int(seconds) * 1000}"
        else:
            logger.debug("Lock timeout not supported by {}, ignoring", dialect)
            return False

        try:
            self._session.execute(text(statement))
        except SQLAlchemyError as e:
            logger.warning("Failed to set lock timeout on {}: {}", dialect, e)
            return False
        return True

    def run_query(
        self, statement: str, params: Mapping[str, Any] | None = None, return_rows: bool = True
    ) -> list[dict[str, Any]] | int:
        """Run raw SQL with bound ``:name`` parameters.

        Returns the rows as dicts, or the affected row count when
        ``return_rows`` is False.
        """
        result = self._session.execute(text(statement), dict(params or {}))
        if not return_rows:
            return result.rowcount
        return [dict(row) for row in result.mappings()]
