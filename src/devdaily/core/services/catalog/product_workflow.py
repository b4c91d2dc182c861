"""Product review workflow.

Every operation is one unit of work: load the product under a row lock,
apply the status change through the entity, save it and write one audit
row, all inside a single ``TransactionRunner.execute`` call. A product that
is already in the requested status is returned untouched, with no write
and no audit row.
"""

from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal, InvalidOperation

import pydantic
from loguru import logger
from sqlmodel import Session

from src.devdaily.core.exceptions import ProductNotFoundError, ValidationError
from src.devdaily.core.services.database.driver import SessionDriver
from src.devdaily.core.services.database.transaction import BatchResult, TransactionRunner
from src.devdaily.entities.catalog.product import (
    Product,
    ProductRepository,
    ProductStatus,
    can_transition,
)
from src.devdaily.entities.core._base import utcnow
from src.devdaily.entities.core.audit_log import AuditLog, AuditLogRepository
from src.devdaily.runtime.config.config_data import ConfigData
from src.devdaily.runtime.context import get_config

Clock = Callable[[], datetime]
Change = Callable[[Product, datetime], bool]

ENTITY_TYPE = "PRODUCT"


class ProductWorkflowService:
    def __init__(
        self,
        runner: TransactionRunner,
        products: ProductRepository,
        audit: AuditLogRepository,
        clock: Clock = utcnow,
    ) -> None:
        self._runner = runner
        self._products = products
        self._audit = audit
        self._clock = clock
        self.workflow_stats = {"status_transitions": 0, "failed_transitions": 0}

    # -- authoring ---------------------------------------------------------

    def create(
        self,
        name: str,
        slug: str,
        actor_id: int,
        market_price: Decimal | str | int = "0",
        description: str | None = None,
        category_id: int | None = None,
    ) -> Product:
        """Create a draft product."""
        try:
            price = Decimal(str(market_price))
        except InvalidOperation:
            raise ValidationError({"market_price": [f"Invalid price: {market_price!r}"]}) from None

        def work(_driver) -> Product:
            if self._products.get_by_slug(slug) is not None:
                raise ValidationError({"slug": [f"Slug {slug!r} is already taken"]})

            now = self._clock()
            try:
                product = Product(
                    name=name,
                    slug=slug,
                    market_price=price,
                    description=description,
                    category_id=category_id,
                    timestamps={"created_at": now, "updated_at": now},
                )
            except pydantic.ValidationError as e:
                raise ValidationError(_field_errors(e)) from e

            saved = self._products.save(product)
            self._audit.record(
                actor_id, "CREATE", ENTITY_TYPE, saved.id, None, saved.audit_snapshot(),
                performed_at=now,
            )
            return saved

        product = self._runner.execute(work)
        logger.info("Product created", product_id=product.id, slug=product.slug, actor_id=actor_id)
        return product

    # -- status workflow ---------------------------------------------------

    def request_verification(self, product_id: int, actor_id: int) -> Product:
        return self._transition(
            "REQUEST_VERIFICATION", product_id, actor_id, lambda p, now: p.request_verification(now)
        )

    def verify(self, product_id: int, verifier_id: int, notes: str | None = None) -> Product:
        """Mark the product verified by ``verifier_id``."""
        return self._transition(
            "VERIFY", product_id, verifier_id, lambda p, now: p.verify(verifier_id, now), notes
        )

    def publish(self, product_id: int, actor_id: int, notes: str | None = None) -> Product:
        """Publish a verified product. ``published_at`` is only set the first time."""
        return self._transition(
            "PUBLISH", product_id, actor_id, lambda p, now: p.publish(now), notes
        )

    def archive(self, product_id: int, actor_id: int, reason: str | None = None) -> Product:
        return self._transition(
            "ARCHIVE", product_id, actor_id, lambda p, now: p.archive(now), reason
        )

    def restore(self, product_id: int, actor_id: int) -> Product:
        """Bring an archived product back as a draft."""
        return self._transition("RESTORE", product_id, actor_id, lambda p, now: p.restore(now))

    def restore_to_published(self, product_id: int, actor_id: int) -> Product:
        """Bring an archived product straight back to the storefront."""
        return self._transition(
            "RESTORE_TO_PUBLISHED", product_id, actor_id, lambda p, now: p.restore_to_published(now)
        )

    def revert_to_draft(self, product_id: int, actor_id: int, reason: str | None = None) -> Product:
        """Reject a pending verification and hand the product back to its author."""
        return self._transition(
            "REVERT_TO_DRAFT", product_id, actor_id, lambda p, now: p.revert_to_draft(now), reason
        )

    # -- queries -----------------------------------------------------------

    def allowed_transitions(self, product_id: int) -> list[ProductStatus]:
        status = self.get(product_id).status
        return [target for target in status.allowed_transitions() if target is not status]

    def can_transition(self, product_id: int, target: ProductStatus) -> bool:
        product = self.get(product_id)
        if target is ProductStatus.PUBLISHED and product.status is not ProductStatus.ARCHIVED:
            return product.status is ProductStatus.VERIFIED
        return can_transition(product.status, target)

    def history(self, product_id: int, limit: int = 50, offset: int = 0) -> list[AuditLog]:
        return self._audit.for_entity(ENTITY_TYPE, product_id, limit=limit, offset=offset)

    def status_counts(self) -> dict[ProductStatus, int]:
        return self._products.count_by_status()

    # -- bulk operations ---------------------------------------------------

    def bulk_request_verification(self, product_ids: Sequence[int], actor_id: int) -> BatchResult:
        return self._bulk(
            "REQUEST_VERIFICATION", product_ids, actor_id, lambda p, now: p.request_verification(now)
        )

    def bulk_verify(self, product_ids: Sequence[int], verifier_id: int) -> BatchResult:
        return self._bulk(
            "VERIFY", product_ids, verifier_id, lambda p, now: p.verify(verifier_id, now)
        )

    def bulk_publish(self, product_ids: Sequence[int], actor_id: int) -> BatchResult:
        return self._bulk("PUBLISH", product_ids, actor_id, lambda p, now: p.publish(now))

    def bulk_archive(
        self, product_ids: Sequence[int], actor_id: int, reason: str | None = None
    ) -> BatchResult:
        return self._bulk("ARCHIVE", product_ids, actor_id, lambda p, now: p.archive(now), reason)

    def _bulk(
        self,
        action: str,
        product_ids: Sequence[int],
        actor_id: int,
        change: Change,
        notes: str | None = None,
    ) -> BatchResult:
        # Each product is applied directly inside the chunk transaction. The
        # entity validates before anything is written, so a rejected product
        # leaves nothing behind in the chunk.
        def process(product_id: int, _index: int) -> None:
            with self._tracked():
                self._apply(action, product_id, actor_id, change, notes)

        result = self._runner.execute_batch(list(product_ids), process)
        logger.info(
            "Bulk {} finished",
            action,
            actor_id=actor_id,
            processed=result.processed,
            succeeded=result.succeeded,
            failed=result.failed,
        )
        return result

    # -- internals ---------------------------------------------------------

    def _transition(
        self,
        action: str,
        product_id: int,
        actor_id: int,
        change: Change,
        notes: str | None = None,
    ) -> Product:
        with self._tracked():
            return self._runner.execute(
                lambda _driver: self._apply(action, product_id, actor_id, change, notes)
            )

    def _apply(
        self,
        action: str,
        product_id: int,
        actor_id: int,
        change: Change,
        notes: str | None,
    ) -> Product:
        product = self._products.get(product_id, for_update=True)
        if product is None:
            raise ProductNotFoundError(product_id)

        previous_status = product.status
        old_values = product.audit_snapshot()
        now = self._clock()

        if not change(product, now):
            logger.debug(
                "Product already {}, nothing to do", previous_status.value, product_id=product_id
            )
            return product

        saved = self._products.save(product)
        self._audit.record(
            actor_id,
            action,
            ENTITY_TYPE,
            product_id,
            old_values,
            saved.audit_snapshot(),
            notes=notes,
            performed_at=now,
        )
        logger.info(
            "Product status changed",
            product_id=product_id,
            action=action,
            from_status=previous_status.value,
            to_status=saved.status.value,
            actor_id=actor_id,
        )
        return saved

    def get(self, product_id: int) -> Product:
        product = self._products.get(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    @contextmanager
    def _tracked(self) -> Iterator[None]:
        self.workflow_stats["status_transitions"] += 1
        try:
            yield
        except Exception:
            self.workflow_stats["failed_transitions"] += 1
            raise


def _field_errors(error: pydantic.ValidationError) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for item in error.errors():
        field = ".".join(str(part) for part in item["loc"]) or "__root__"
        errors.setdefault(field, []).append(item["msg"])
    return errors


def build_product_workflow(
    session: Session,
    clock: Clock | None = None,
    config: ConfigData | None = None,
) -> ProductWorkflowService:
    """Wire a workflow service for one unit of work over ``session``."""
    config = config or get_config()
    runner = TransactionRunner(SessionDriver(session), config.transaction)
    return ProductWorkflowService(
        runner,
        ProductRepository(session),
        AuditLogRepository(session),
        clock or utcnow,
    )
