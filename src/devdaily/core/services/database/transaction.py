"""Transaction runner: nested units of work, savepoints and retry.

Every write path in the catalog goes through ``TransactionRunner.execute``.
Nested calls are emulated with savepoints on the one underlying transaction;
transient store failures (deadlocks, lock-wait timeouts, serialization
failures) are retried with tenacity at the outermost level only, with
exponential backoff between attempts.
"""

import enum
import re
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any, TypeVar
from uuid import uuid4

from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from src.devdaily.core.exceptions import (
    PermanentStoreError,
    RunnerStateError,
    StoreError,
    TransientStoreError,
)
from src.devdaily.core.services.database.driver import TransactionDriver
from src.devdaily.runtime.config.config_data import TransactionConfig

T = TypeVar("T")
ItemT = TypeVar("ItemT")

ERROR_DEADLOCK = 1213
ERROR_LOCK_WAIT_TIMEOUT = 1205
ERROR_LOCK_ACQUIRE = 3572

_RETRYABLE_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"deadlock",
        r"lock wait timeout",
        r"try restarting transaction",
        r"serialization failure",
    )
]


class IsolationLevel(str, enum.Enum):
    READ_UNCOMMITTED = "READ UNCOMMITTED"
    READ_COMMITTED = "READ COMMITTED"
    REPEATABLE_READ = "REPEATABLE READ"
    SERIALIZABLE = "SERIALIZABLE"


class TransactionMetrics(BaseModel):
    """Counters kept by one runner instance."""

    transactions_started: int = 0
    transactions_committed: int = 0
    transactions_rolled_back: int = 0
    retries_attempted: int = 0
    deadlocks_detected: int = 0
    total_execution_time: float = Field(default=0.0, description="Seconds spent in successful executes")


class BatchError(BaseModel):
    """One failure recorded by ``execute_batch``.

    ``item`` is the global index of the failing item, or ``None`` when the
    whole chunk failed.
    """

    chunk: int
    item: int | None = None
    error: str
    exception: str | None = None


class BatchResult(BaseModel):
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    errors: list[BatchError] = Field(default_factory=list)
    chunks: int = 0


def error_code(exc: BaseException) -> int | str | None:
    """Vendor error code carried by a store exception, if any.

    PostgreSQL drivers expose the SQLSTATE (``pgcode``/``sqlstate``), MySQL
    drivers put the numeric error code first in ``args``.
    """
    if isinstance(exc, StoreError):
        return exc.code

    orig = exc.orig if isinstance(exc, DBAPIError) else exc
    for attr in ("pgcode", "sqlstate"):
        code = getattr(orig, attr, None)
        if code:
            return code

    args = getattr(orig, "args", ())
    if args and isinstance(args[0], int):
        return args[0]
    return None


def is_retryable_error(
    exc: BaseException, retryable_codes: Iterable[int | str] | None = None
) -> bool:
    """Whether ``exc`` is a transient store failure worth retrying."""
    if isinstance(exc, TransientStoreError):
        return True
    if isinstance(exc, PermanentStoreError) or not isinstance(exc, SQLAlchemyError):
        return False

    codes = {str(code) for code in (retryable_codes or TransactionConfig().retryable_error_codes)}
    code = error_code(exc)
    if code is not None and str(code) in codes:
        return True

    message = str(exc)
    return any(pattern.search(message) for pattern in _RETRYABLE_PATTERNS)


def is_deadlock(exc: BaseException) -> bool:
    code = error_code(exc)
    return code in (ERROR_DEADLOCK, "40P01") or "deadlock" in str(exc).lower()


class TransactionRunner:
    """Unit-of-work runner over a ``TransactionDriver``.

    Not thread safe: create one per request or unit of work. Use it as a
    context manager so an unfinished transaction is rolled back on exit.
    """

    def __init__(
        self,
        driver: TransactionDriver,
        config: TransactionConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._driver = driver
        self._config = config or TransactionConfig()
        self._sleep = sleep
        self._level = 0
        self._rolled_back = False
        # level -> savepoint opened when that level was started
        self._savepoints: dict[int, str] = {}
        self._metrics = TransactionMetrics()
        self._logger = logger.bind(unit_of_work=uuid4().hex[:8])

    # -- scoped cleanup ----------------------------------------------------

    def __enter__(self) -> "TransactionRunner":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __del__(self) -> None:
        try:
            self.close()
        except Exception:
            logger.exception("Failed to close transaction runner during finalization")

    def close(self) -> None:
        """Roll back a transaction the caller left open."""
        if self._level == 0:
            return

        self._logger.error(
            "Transaction left open at level {}, forcing rollback",
            self._level,
            transaction_level=self._level,
            connection=self._driver.database_name,
        )
        self.rollback(force=True)

    # -- boundaries --------------------------------------------------------

    def start(
        self, isolation_level: IsolationLevel | str | None = None, use_savepoint: bool = True
    ) -> bool:
        """Open the root transaction, or a savepoint when already inside one."""
        isolation = isolation_level if isolation_level is not None else self._config.default_isolation

        try:
            if self._level == 0:
                if isolation is not None:
                    self._set_isolation_level(isolation)

                self._driver.begin()
                self._metrics.transactions_started += 1

                if self._config.lock_timeout > 0:
                    self._set_lock_timeout(self._config.lock_timeout)

                self._log_event(
                    "Transaction started",
                    isolation_level=getattr(isolation, "value", isolation),
                    lock_timeout=self._config.lock_timeout,
                )
            elif self._config.enable_savepoints and use_savepoint:
                name = f"SAVEPOINT_{self._level - 1}"
                self._driver.savepoint(name)
                self._savepoints[self._level] = name
                self._log_event("Savepoint created", savepoint_name=name)
        except SQLAlchemyError as e:
            self._log_error("Failed to start transaction", e)
            raise

        self._level += 1
        self._rolled_back = False
        return True

    def commit(self, force: bool = False) -> bool:
        """Close the innermost level; the real commit happens at level 0.

        A forced commit commits everything and leaves the runner at level 0.
        """
        if self._level == 0:
            raise RunnerStateError("No active transaction to commit")
        if self._rolled_back:
            raise RunnerStateError("Cannot commit rolled back transaction")

        savepoint = self._savepoints.pop(self._level - 1, None)
        self._level -= 1

        if self._level > 0 and not force:
            if savepoint is not None:
                self._driver.release_savepoint(savepoint)
                self._log_event("Savepoint released", savepoint_name=savepoint)
            return True

        self._level = 0
        self._savepoints.clear()
        try:
            self._driver.commit()
        except SQLAlchemyError as e:
            self._log_error("Failed to commit transaction", e)
            self._discard_failed_commit()
            raise

        self._metrics.transactions_committed += 1
        self._log_event("Transaction committed", forced=force)
        return True

    def rollback(self, force: bool = False, savepoint_name: str | None = None) -> bool:
        """Undo the innermost level, a named savepoint, or everything (``force``)."""
        if self._level == 0:
            raise RunnerStateError("No active transaction to rollback")

        self._rolled_back = True
        try:
            if savepoint_name is not None and self._config.enable_savepoints:
                self._driver.rollback_to_savepoint(savepoint_name)
                self._forget_savepoints_from(savepoint_name)
                self._log_event("Rolled back to savepoint", savepoint_name=savepoint_name)
                return True

            savepoint = self._savepoints.pop(self._level - 1, None)
            self._level -= 1

            if self._level == 0 or force:
                self._level = 0
                self._savepoints.clear()
                self._driver.rollback()
                self._metrics.transactions_rolled_back += 1
                self._log_event("Transaction rolled back", forced=force)
                return True

            if savepoint is not None:
                self._driver.rollback_to_savepoint(savepoint)
                self._log_event(
                    "Nested transaction rolled back",
                    savepoint_name=savepoint,
                    remaining_level=self._level,
                )
            return True
        except SQLAlchemyError as e:
            self._log_error("Failed to rollback transaction", e)
            self._level = 0
            self._savepoints.clear()
            raise

    def create_savepoint(self, name: str) -> None:
        """Open a named savepoint inside the current transaction."""
        if self._level == 0:
            raise RunnerStateError("Savepoints require an active transaction")
        self._driver.savepoint(name)
        self._log_event("Savepoint created", savepoint_name=name)

    def release_savepoint(self, name: str) -> None:
        if self._level == 0:
            raise RunnerStateError("Savepoints require an active transaction")
        self._driver.release_savepoint(name)
        self._forget_savepoints_from(name)
        self._log_event("Savepoint released", savepoint_name=name)

    # -- units of work -----------------------------------------------------

    def execute(
        self,
        work: Callable[[TransactionDriver], T],
        *,
        isolation_level: IsolationLevel | str | None = None,
        max_retries: int | None = None,
        retry_delay_ms: int | None = None,
        deadlock_retry: bool | None = None,
        throw_on_failure: bool = True,
    ) -> T | None:
        """Run ``work`` in a transaction and return its result.

        ``work`` receives the driver. At the outermost level a transient store
        failure is retried up to ``max_retries`` times, sleeping
        ``retry_delay_ms * 2 ** (attempt - 2)`` milliseconds before attempt
        ``attempt``. Other store failures become ``PermanentStoreError``;
        domain errors propagate unchanged. Inside an open transaction the
        work runs in a savepoint and is never retried.
        """
        max_retries = self._config.max_retries if max_retries is None else max_retries
        retry_delay_ms = self._config.retry_delay_ms if retry_delay_ms is None else retry_delay_ms
        deadlock_retry = self._config.deadlock_retry if deadlock_retry is None else deadlock_retry

        if self._level > 0:
            return self._execute_nested(work, isolation_level, throw_on_failure)

        codes = self._config.retryable_error_codes
        retrying = Retrying(
            stop=stop_after_attempt(max_retries + 1),
            wait=wait_exponential(multiplier=retry_delay_ms / 1000),
            retry=retry_if_exception(
                lambda e: deadlock_retry and is_retryable_error(e, codes)
            ),
            sleep=self._sleep,
            before_sleep=lambda state: self._before_retry(state, max_retries),
            reraise=True,
        )

        started = time.perf_counter()
        attempt = 0
        try:
            for attempt_manager in retrying:
                with attempt_manager:
                    attempt = attempt_manager.retry_state.attempt_number
                    result = self._attempt(work, isolation_level)
        except Exception as e:
            self._log_error(
                "Transaction execution failed", e, attempt=attempt, max_retries=max_retries
            )
            if not throw_on_failure:
                return None
            retryable = is_retryable_error(e, codes)
            error = self._classify(e, exhausted=retryable and attempt > 1)
            if error is e:
                raise
            raise error from e

        elapsed = time.perf_counter() - started
        self._metrics.total_execution_time += elapsed
        self._log_event(
            "Transaction executed successfully",
            attempts=attempt,
            execution_time=round(elapsed, 4),
        )
        return result

    def _attempt(
        self, work: Callable[[TransactionDriver], T], isolation_level: IsolationLevel | str | None
    ) -> T:
        """One start/work/commit cycle; a failure unwinds every level it opened."""
        self.start(isolation_level)
        try:
            result = work(self._driver)
            self.commit()
        except Exception:
            self._rollback_to_level(0)
            raise
        return result

    def _before_retry(self, retry_state: RetryCallState, max_retries: int) -> None:
        exc = retry_state.outcome.exception()
        if is_deadlock(exc):
            self._metrics.deadlocks_detected += 1
            self._log_event(
                "Deadlock detected, retrying",
                error_code=error_code(exc),
                attempt=retry_state.attempt_number,
            )

        self._metrics.retries_attempted += 1
        self._log_event(
            "Retry attempt",
            attempt=retry_state.attempt_number + 1,
            max_retries=max_retries,
            delay_ms=round(retry_state.next_action.sleep * 1000),
        )

    def _execute_nested(
        self,
        work: Callable[[TransactionDriver], T],
        isolation_level: IsolationLevel | str | None,
        throw_on_failure: bool,
    ) -> T | None:
        entry_level = self._level
        self.start(isolation_level)
        try:
            result = work(self._driver)
            self.commit()
        except Exception as e:
            self._rollback_to_level(entry_level)
            self._log_error("Nested transaction failed", e)
            if not throw_on_failure:
                return None
            error = self._classify(e)
            if error is e:
                raise
            raise error from e
        return result

    def execute_batch(
        self,
        items: Sequence[ItemT],
        processor: Callable[[ItemT, int], Any],
        *,
        chunk_size: int | None = None,
        stop_on_error: bool = False,
        log_progress: bool = False,
        progress_interval: int = 100,
    ) -> BatchResult:
        """Process ``items`` in chunks, one transaction per chunk.

        ``processor(item, index)`` failures are recorded and the chunk goes on
        unless ``stop_on_error`` is set. A chunk that cannot be committed is
        rolled back and all of its items count as failed. Chunks are not
        retried.
        """
        if chunk_size is None:
            chunk_size = self._config.batch_chunk_size
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")

        chunks = [items[i : i + chunk_size] for i in range(0, len(items), chunk_size)]
        result = BatchResult(chunks=len(chunks))
        entry_level = self._level

        for chunk_index, chunk in enumerate(chunks):
            chunk_errors: list[BatchError] = []
            succeeded = 0
            failed = 0

            try:
                self.start()
                chunk_level = self._level

                for offset, item in enumerate(chunk):
                    index = chunk_index * chunk_size + offset
                    try:
                        processor(item, index)
                    except Exception as e:
                        failed += 1
                        chunk_errors.append(
                            BatchError(
                                chunk=chunk_index,
                                item=index,
                                error=str(e),
                                exception=type(e).__name__,
                            )
                        )
                        # Levels the processor left open poison the chunk
                        if self._level > chunk_level:
                            self._rollback_to_level(chunk_level)
                        if stop_on_error:
                            raise
                    else:
                        succeeded += 1

                self.commit()
            except Exception as e:
                self._rollback_to_level(entry_level)

                result.processed += len(chunk)
                result.failed += len(chunk)
                result.errors.extend(chunk_errors)
                result.errors.append(
                    BatchError(
                        chunk=chunk_index,
                        error=f"Chunk processing failed: {e}",
                        exception=type(e).__name__,
                    )
                )
                self._log_error(
                    "Batch chunk processing failed", e, chunk=chunk_index, chunk_size=len(chunk)
                )
                if stop_on_error:
                    break
                continue

            result.processed += len(chunk)
            result.succeeded += succeeded
            result.failed += failed
            result.errors.extend(chunk_errors)

            if log_progress and (chunk_index + 1) % progress_interval == 0:
                self._log_event(
                    "Batch progress",
                    chunk=chunk_index + 1,
                    total_chunks=len(chunks),
                    processed=result.processed,
                    succeeded=result.succeeded,
                    failed=result.failed,
                )

        return result

    def execute_query(
        self,
        statement: str,
        params: Mapping[str, Any] | None = None,
        *,
        return_result: bool = True,
        isolation_level: IsolationLevel | str | None = None,
        max_retries: int | None = None,
    ) -> list[dict[str, Any]] | int | None:
        """Run raw SQL as its own unit of work.

        Returns the rows, or the affected row count when ``return_result`` is
        False.
        """
        return self.execute(
            lambda driver: driver.run_query(statement, params, return_rows=return_result),
            isolation_level=isolation_level,
            max_retries=max_retries,
        )

    # -- state & info ------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self._level > 0

    @property
    def transaction_level(self) -> int:
        return self._level

    @property
    def is_rolled_back(self) -> bool:
        return self._rolled_back

    @property
    def config(self) -> TransactionConfig:
        return self._config

    def get_metrics(self) -> dict[str, Any]:
        return {
            **self._metrics.model_dump(),
            "active_transaction_level": self._level,
            "is_rolled_back": self._rolled_back,
            "config": self._config.model_dump(),
        }

    def reset_metrics(self) -> None:
        self._metrics = TransactionMetrics()

    # -- internals ---------------------------------------------------------

    def _classify(self, exc: Exception, exhausted: bool = False) -> Exception:
        if isinstance(exc, StoreError) or not isinstance(exc, SQLAlchemyError):
            error = exc
        elif is_retryable_error(exc, self._config.retryable_error_codes):
            message = f"Retries exhausted: {exc}" if exhausted else str(exc)
            error = TransientStoreError(message, code=error_code(exc))
        else:
            error = PermanentStoreError(str(exc), code=error_code(exc))

        return error

    def _rollback_to_level(self, entry_level: int) -> None:
        """Undo every level opened above ``entry_level``."""
        if entry_level == 0:
            if self.is_active:
                self.rollback(force=True)
            return

        while self._level > entry_level:
            self.rollback()

    def _discard_failed_commit(self) -> None:
        # The session is unusable until rolled back
        try:
            self._driver.rollback()
        except SQLAlchemyError as e:
            self._log_error("Failed to rollback after commit failure", e)
        else:
            self._metrics.transactions_rolled_back += 1

    def _forget_savepoints_from(self, name: str) -> None:
        levels = [level for level, saved in self._savepoints.items() if saved == name]
        if not levels:
            return
        for level in [level for level in self._savepoints if level >= levels[0]]:
            del self._savepoints[level]

    def _set_isolation_level(self, level: IsolationLevel | str) -> None:
        try:
            level = IsolationLevel(level)
        except ValueError:
            raise ValueError(f"Invalid isolation level: {level}") from None

        if self._driver.set_isolation_level(level.value):
            self._log_event("Isolation level set", level=level.value)
        else:
            self._log_event("Isolation level not supported, continuing", level=level.value)

    def _set_lock_timeout(self, seconds: int) -> None:
        if self._driver.set_lock_timeout(seconds):
            self._log_event("Lock timeout set", timeout=seconds)

    def _log_event(self, message: str, **fields: Any) -> None:
        if not self._config.log_transactions:
            return
        self._logger.info(
            message,
            transaction_level=self._level,
            connection=self._driver.database_name,
            **fields,
        )

    def _log_error(self, message: str, exc: BaseException, **fields: Any) -> None:
        self._logger.error(
            "{}: {}",
            message,
            exc,
            transaction_level=self._level,
            connection=self._driver.database_name,
            error_type=type(exc).__name__,
            error_code=error_code(exc),
            **fields,
        )
