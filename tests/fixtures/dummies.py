from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError, OperationalError


class FakeClock:
    """Deterministic clock for workflow tests."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class RecordingDriver:
    """In-memory ``TransactionDriver`` that records every call.

    ``fail(op, exc, on_call=n)`` makes the n-th call of ``op`` raise ``exc``.
    """

    def __init__(self, isolation_supported: bool = True):
        self.calls: list[tuple] = []
        self.isolation_supported = isolation_supported
        self._counts: dict[str, int] = defaultdict(int)
        self._failures: dict[tuple[str, int], Exception] = {}
        self.query_rows: list[dict] = []

    @property
    def database_name(self) -> str:
        return "test_db"

    def fail(self, op: str, exc: Exception, on_call: int = 1) -> None:
        self._failures[(op, on_call)] = exc

    def count(self, op: str) -> int:
        return sum(1 for call in self.calls if call[0] == op)

    @property
    def boundaries(self) -> list[tuple]:
        """Calls without the per-transaction session settings."""
        return [call for call in self.calls if not call[0].startswith("set_")]

    def _record(self, op: str, *args) -> None:
        self._counts[op] += 1
        self.calls.append((op, *args))
        exc = self._failures.pop((op, self._counts[op]), None)
        if exc is not None:
            raise exc

    def begin(self) -> None:
        self._record("begin")

    def commit(self) -> None:
        self._record("commit")

    def rollback(self) -> None:
        self._record("rollback")

    def savepoint(self, name: str) -> None:
        self._record("savepoint", name)

    def rollback_to_savepoint(self, name: str) -> None:
        self._record("rollback_to_savepoint", name)

    def release_savepoint(self, name: str) -> None:
        self._record("release_savepoint", name)

    def set_isolation_level(self, level: str) -> bool:
        self._record("set_isolation_level", level)
        return self.isolation_supported

    def set_lock_timeout(self, seconds: int) -> bool:
        self._record("set_lock_timeout", seconds)
        return True

    def run_query(self, statement: str, params=None, return_rows: bool = True):
        self._record("run_query", statement, dict(params or {}))
        return list(self.query_rows) if return_rows else len(self.query_rows)


class MySQLDriverError(Exception):
    """Shape of a MySQL DBAPI error: ``args == (errno, message)``."""


class PostgresDriverError(Exception):
    def __init__(self, message: str, pgcode: str):
        super().__init__(message)
        self.pgcode = pgcode


def deadlock_error() -> OperationalError:
    return OperationalError(
        "UPDATE products SET status=%s",
        {},
        MySQLDriverError(1213, "Deadlock found when trying to get lock; try restarting transaction"),
    )


def lock_wait_timeout_error() -> OperationalError:
    return OperationalError(
        "UPDATE products SET status=%s",
        {},
        MySQLDriverError(1205, "Lock wait timeout exceeded"),
    )


def serialization_error() -> OperationalError:
    return OperationalError(
        "UPDATE products SET status=%s",
        {},
        PostgresDriverError("could not serialize access", pgcode="40001"),
    )


def duplicate_key_error() -> IntegrityError:
    return IntegrityError(
        "INSERT INTO products",
        {},
        MySQLDriverError(1062, "Duplicate entry 'mechanical-keyboard' for key 'slug'"),
    )
