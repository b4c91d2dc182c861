"""Entity: Product."""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from pydantic import Field

from src.devdaily.core.exceptions import IllegalTransitionError
from src.devdaily.entities.catalog.product.status import ProductStatus, ensure_transition
from src.devdaily.entities.core._base import Entity, SoftDelete, UtcDatetime, utcnow


class Product(Entity):
    """Curated affiliate product.

    Status only changes through the workflow methods below, each of which is
    checked against the transition table. Assigning ``status`` directly raises
    ``AttributeError``.

    ``last_price_check``/``last_link_check`` and ``view_count`` are
    housekeeping fields: changing them never bumps ``updated_at``.
    """

    name: str = Field(description="Product name")
    slug: str = Field(description="URL slug, unique across the catalog")
    description: str | None = Field(default=None, description="Long description")
    category_id: int | None = Field(default=None, description="Owning category")
    market_price: Decimal = Field(
        default=Decimal("0.00"), ge=0, max_digits=12, decimal_places=2
    )
    view_count: int = Field(default=0, ge=0)
    status: ProductStatus = Field(default=ProductStatus.DRAFT)
    published_at: UtcDatetime | None = None
    verified_at: UtcDatetime | None = None
    verified_by: int | None = None
    last_price_check: UtcDatetime | None = None
    last_link_check: UtcDatetime | None = None
    soft_delete: SoftDelete = Field(default_factory=SoftDelete)

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "status":
            raise AttributeError("Product status changes go through transition_to()")
        super().__setattr__(name, value)

    # -- status workflow -------------------------------------------------

    def transition_to(self, target: ProductStatus, now: datetime | None = None) -> bool:
        """Move to ``target``; return False when already there.

        A same-status call is a no-op: nothing is stamped and the caller
        should not persist or audit.
        """
        if self.status is target:
            return False

        ensure_transition(self.status, target)
        now = now or utcnow()

        super().__setattr__("status", target)
        self.mark_as_updated(now)

        if target is ProductStatus.PUBLISHED and self.published_at is None:
            self.published_at = now

        return True

    def request_verification(self, now: datetime | None = None) -> bool:
        return self.transition_to(ProductStatus.PENDING_VERIFICATION, now)

    def verify(self, admin_id: int, now: datetime | None = None) -> bool:
        if self.status is ProductStatus.VERIFIED:
            return False

        ensure_transition(self.status, ProductStatus.VERIFIED)
        now = now or utcnow()
        self.verified_at = now
        self.verified_by = admin_id
        return self.transition_to(ProductStatus.VERIFIED, now)

    def publish(self, now: datetime | None = None) -> bool:
        if self.status is ProductStatus.PUBLISHED:
            return False

        if self.status is not ProductStatus.VERIFIED:
            raise IllegalTransitionError(
                self.status,
                ProductStatus.PUBLISHED,
                "only verified products can be published",
            )
        return self.transition_to(ProductStatus.PUBLISHED, now)

    def archive(self, now: datetime | None = None) -> bool:
        now = now or utcnow()
        if not self.transition_to(ProductStatus.ARCHIVED, now):
            return False

        self.soft_delete.mark_deleted(now)
        return True

    def restore(self, now: datetime | None = None) -> bool:
        """Bring an archived product back as a draft."""
        return self._restore_to(ProductStatus.DRAFT, now)

    def restore_to_published(self, now: datetime | None = None) -> bool:
        """Bring an archived product straight back to the storefront.

        ``published_at`` keeps the value from the first publication.
        """
        return self._restore_to(ProductStatus.PUBLISHED, now)

    def _restore_to(self, target: ProductStatus, now: datetime | None) -> bool:
        # No same-status no-op here: restoring a non-archived product is an error
        if self.status is not ProductStatus.ARCHIVED:
            raise IllegalTransitionError(
                self.status, target, "only archived products can be restored"
            )

        self.transition_to(target, now)
        self.soft_delete.restore()
        return True

    def revert_to_draft(self, now: datetime | None = None) -> bool:
        """Send a product back to its author (rejected verification)."""
        if self.status is ProductStatus.ARCHIVED:
            raise IllegalTransitionError(
                self.status,
                ProductStatus.DRAFT,
                "archived products are restored, not reverted",
            )
        return self.transition_to(ProductStatus.DRAFT, now)

    # -- housekeeping ----------------------------------------------------

    def mark_price_checked(self, now: datetime | None = None) -> None:
        self.last_price_check = now or utcnow()

    def mark_links_checked(self, now: datetime | None = None) -> None:
        self.last_link_check = now or utcnow()

    def increment_view_count(self) -> None:
        self.view_count += 1

    def needs_price_update(self, now: datetime | None = None, interval_days: int = 7) -> bool:
        if self.last_price_check is None:
            return True
        return (now or utcnow()) - self.last_price_check >= timedelta(days=interval_days)

    def needs_link_validation(self, now: datetime | None = None, interval_days: int = 14) -> bool:
        if self.last_link_check is None:
            return True
        return (now or utcnow()) - self.last_link_check >= timedelta(days=interval_days)

    # -- queries ---------------------------------------------------------

    @property
    def is_deleted(self) -> bool:
        return self.soft_delete.is_deleted

    @property
    def is_live(self) -> bool:
        return self.status.is_live and not self.is_deleted

    def audit_snapshot(self) -> dict[str, Any]:
        """JSON-safe view of the product for audit old/new values."""
        data = self.model_dump(mode="json", exclude={"timestamps", "soft_delete"})
        data["updated_at"] = self.updated_at.isoformat()
        data["deleted_at"] = (
            self.soft_delete.deleted_at.isoformat() if self.is_deleted else None
        )
        return data

    def __eq__(self, other: Any) -> bool:
        """Compare products by business attributes, ignoring timestamps."""
        if not isinstance(other, Product):
            return False

        return (
            self.id == other.id
            and self.slug == other.slug
            and self.name == other.name
            and self.status == other.status
            and self.market_price == other.market_price
        )

    def __hash__(self) -> int:
        return hash((self.id, self.slug))
