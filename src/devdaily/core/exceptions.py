"""Domain, store and runner exceptions for the DevDaily catalog."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.devdaily.entities.catalog.product.status import ProductStatus


class DevDailyError(Exception):
    """Root exception for the catalog core."""


class DomainError(DevDailyError):
    """Business rule violation. Never retried."""


class IllegalTransitionError(DomainError):
    """Raised when a status change is not in the transition table."""

    def __init__(
        self,
        source: ProductStatus,
        target: ProductStatus,
        reason: str | None = None,
    ) -> None:
        self.source = source
        self.target = target
        self.reason = reason
        message = f"Cannot transition product status from {source.label} to {target.label}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class NotFoundError(DomainError):
    """Raised when an entity cannot be found by id."""

    def __init__(self, entity_type: str, entity_id: object) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with id={entity_id!r} not found")


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id: object) -> None:
        super().__init__("Product", product_id)


class ValidationError(DomainError):
    """Invalid input for an entity field.

    Carries structured errors: ``{field: [messages]}``.
    """

    def __init__(self, errors: dict[str, list[str]] | str) -> None:
        if isinstance(errors, str):
            self.errors: dict[str, list[str]] = {"__root__": [errors]}
        else:
            self.errors = errors
        super().__init__(str(self.errors))


class StoreError(DevDailyError):
    """Failure reported by the relational store."""

    def __init__(self, message: str, code: int | str | None = None) -> None:
        self.code = code
        super().__init__(message)


class TransientStoreError(StoreError):
    """Deadlock, lock-wait timeout or serialization failure. Safe to retry."""


class PermanentStoreError(StoreError):
    """Any other store failure (constraint violation, lost connection, ...)."""


class RunnerStateError(DevDailyError):
    """Transaction runner used out of order, e.g. commit with no transaction."""


_HTTP_STATUS: list[tuple[type[Exception], int]] = [
    (IllegalTransitionError, 409),
    (NotFoundError, 404),
    (ValidationError, 422),
    (DomainError, 400),
]


def http_status_for(exc: Exception) -> int:
    """Map an exception to the status code a web boundary should answer with."""
    for exc_type, status in _HTTP_STATUS:
        if isinstance(exc, exc_type):
            return status
    return 500


def public_message(exc: Exception, environment: str) -> str:
    """Message safe to show to an end user.

    Business rule failures are shown as-is; infrastructure failures only carry
    detail outside production.
    """
    if isinstance(exc, DomainError) or environment != "production":
        return str(exc)
    return "An internal error occurred. Please try again later."
