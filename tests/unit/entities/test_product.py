"""Unit tests for the Product entity lifecycle methods."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from src.devdaily.core.exceptions import IllegalTransitionError
from src.devdaily.entities.catalog.product import Product, ProductStatus

T0 = datetime(2025, 1, 15, 12, 0, tzinfo=UTC)


def make(status: ProductStatus = ProductStatus.DRAFT, **fields) -> Product:
    data = {
        "name": "Standing Desk",
        "slug": "standing-desk",
        "market_price": Decimal("499.00"),
        "status": status,
        "timestamps": {"created_at": T0, "updated_at": T0},
    }
    if status is ProductStatus.ARCHIVED:
        data["soft_delete"] = {"deleted_at": T0}
    data.update(fields)
    return Product(**data)


class TestProductCreation:
    def test_defaults(self):
        product = Product(name="Desk Lamp", slug="desk-lamp")

        assert product.id is None
        assert product.status is ProductStatus.DRAFT
        assert product.market_price == Decimal("0.00")
        assert product.view_count == 0
        assert product.published_at is None
        assert not product.is_deleted
        assert product.created_at.tzinfo is not None

    def test_negative_price_rejected(self):
        with pytest.raises(PydanticValidationError):
            make(market_price=Decimal("-1"))

    def test_naive_datetimes_are_read_as_utc(self):
        product = make(published_at=datetime(2025, 1, 1, 8, 30))
        assert product.published_at == datetime(2025, 1, 1, 8, 30, tzinfo=UTC)

    def test_status_cannot_be_assigned(self):
        product = make()
        with pytest.raises(AttributeError):
            product.status = ProductStatus.PUBLISHED
        assert product.status is ProductStatus.DRAFT


class TestTransitions:
    def test_same_status_is_noop(self):
        """A same-status request stamps nothing and reports no change."""
        product = make(ProductStatus.PENDING_VERIFICATION)

        assert product.request_verification(T0 + timedelta(hours=1)) is False
        assert product.status is ProductStatus.PENDING_VERIFICATION
        assert product.updated_at == T0

    def test_transition_bumps_updated_at(self):
        product = make()
        later = T0 + timedelta(hours=1)

        assert product.request_verification(later) is True
        assert product.status is ProductStatus.PENDING_VERIFICATION
        assert product.updated_at == later

    def test_illegal_transition_leaves_product_untouched(self):
        product = make()

        with pytest.raises(IllegalTransitionError):
            product.transition_to(ProductStatus.VERIFIED, T0 + timedelta(hours=1))

        assert product.status is ProductStatus.DRAFT
        assert product.updated_at == T0

    def test_verify_stamps_verifier(self):
        product = make(ProductStatus.PENDING_VERIFICATION)
        later = T0 + timedelta(hours=2)

        assert product.verify(7, later) is True
        assert product.status is ProductStatus.VERIFIED
        assert product.verified_by == 7
        assert product.verified_at == later

    def test_verify_from_draft_stamps_nothing(self):
        product = make()

        with pytest.raises(IllegalTransitionError):
            product.verify(7, T0)

        assert product.verified_by is None
        assert product.verified_at is None

    def test_publish_stamps_published_at_once(self):
        product = make(ProductStatus.VERIFIED)
        first = T0 + timedelta(days=1)

        assert product.publish(first) is True
        assert product.published_at == first

        # Unpublish for another review round, then publish again
        product.verify(7, first + timedelta(days=1))
        product.publish(first + timedelta(days=2))

        assert product.status is ProductStatus.PUBLISHED
        assert product.published_at == first

    def test_publish_requires_verified(self):
        for status in (ProductStatus.DRAFT, ProductStatus.PENDING_VERIFICATION, ProductStatus.ARCHIVED):
            product = make(status)
            with pytest.raises(IllegalTransitionError) as exc_info:
                product.publish(T0)
            assert exc_info.value.target is ProductStatus.PUBLISHED
            assert product.published_at is None

    def test_publish_when_published_is_noop(self):
        product = make(ProductStatus.PUBLISHED, published_at=T0)
        assert product.publish(T0 + timedelta(days=1)) is False
        assert product.published_at == T0

    @pytest.mark.parametrize(
        "status",
        [s for s in ProductStatus if s is not ProductStatus.ARCHIVED],
    )
    def test_archive_from_every_status(self, status):
        product = make(status)
        later = T0 + timedelta(days=3)

        assert product.archive(later) is True
        assert product.status is ProductStatus.ARCHIVED
        assert product.soft_delete.deleted_at == later
        assert product.is_deleted
        assert not product.is_live

    def test_archive_when_archived_is_noop(self):
        product = make(ProductStatus.ARCHIVED)
        assert product.archive(T0 + timedelta(days=1)) is False
        assert product.soft_delete.deleted_at == T0


class TestRestore:
    def test_restore_to_draft(self):
        product = make(ProductStatus.ARCHIVED)

        assert product.restore(T0 + timedelta(days=1)) is True
        assert product.status is ProductStatus.DRAFT
        assert product.soft_delete.deleted_at is None

    def test_restore_to_published_keeps_first_publication(self):
        product = make(ProductStatus.ARCHIVED, published_at=T0 - timedelta(days=30))

        assert product.restore_to_published(T0 + timedelta(days=1)) is True
        assert product.status is ProductStatus.PUBLISHED
        assert product.published_at == T0 - timedelta(days=30)
        assert product.is_live

    @pytest.mark.parametrize(
        "status", [ProductStatus.DRAFT, ProductStatus.VERIFIED, ProductStatus.PUBLISHED]
    )
    def test_restore_requires_archived(self, status):
        product = make(status)
        with pytest.raises(IllegalTransitionError, match="only archived products can be restored"):
            product.restore_to_published(T0)
        assert product.status is status

    @pytest.mark.parametrize(
        "status",
        [ProductStatus.DRAFT, ProductStatus.PENDING_VERIFICATION, ProductStatus.PUBLISHED],
    )
    def test_restore_to_draft_requires_archived(self, status):
        product = make(status)
        with pytest.raises(IllegalTransitionError, match="only archived products can be restored"):
            product.restore(T0)
        assert product.status is status

    def test_revert_to_draft_from_pending_verification(self):
        product = make(ProductStatus.PENDING_VERIFICATION)
        assert product.revert_to_draft(T0 + timedelta(hours=1)) is True
        assert product.status is ProductStatus.DRAFT

    @pytest.mark.parametrize("status", [ProductStatus.VERIFIED, ProductStatus.PUBLISHED])
    def test_revert_to_draft_refused_after_verification(self, status):
        product = make(status)
        with pytest.raises(IllegalTransitionError):
            product.revert_to_draft(T0)

    def test_archived_products_are_restored_not_reverted(self):
        product = make(ProductStatus.ARCHIVED)
        with pytest.raises(IllegalTransitionError, match="restored, not reverted"):
            product.revert_to_draft(T0)


class TestHousekeeping:
    """Housekeeping fields never bump updated_at."""

    def test_price_and_link_checks(self):
        product = make(ProductStatus.PUBLISHED)
        later = T0 + timedelta(days=2)

        product.mark_price_checked(later)
        product.mark_links_checked(later)

        assert product.last_price_check == later
        assert product.last_link_check == later
        assert product.updated_at == T0

    def test_view_count(self):
        product = make(ProductStatus.PUBLISHED)
        product.increment_view_count()
        product.increment_view_count()
        assert product.view_count == 2
        assert product.updated_at == T0

    def test_needs_price_update(self):
        product = make(ProductStatus.PUBLISHED)
        assert product.needs_price_update(T0)

        product.mark_price_checked(T0)
        assert not product.needs_price_update(T0 + timedelta(days=6))
        assert product.needs_price_update(T0 + timedelta(days=7))

    def test_needs_link_validation(self):
        product = make(ProductStatus.PUBLISHED, last_link_check=T0)
        assert not product.needs_link_validation(T0 + timedelta(days=13))
        assert product.needs_link_validation(T0 + timedelta(days=14))
        assert product.needs_link_validation(T0 + timedelta(days=3), interval_days=2)


class TestSnapshotAndEquality:
    def test_audit_snapshot_is_json_safe(self):
        product = make(ProductStatus.ARCHIVED)
        snapshot = product.audit_snapshot()

        assert snapshot["status"] == "archived"
        assert snapshot["market_price"] == "499.00"
        assert snapshot["deleted_at"] == T0.isoformat()
        assert snapshot["updated_at"] == T0.isoformat()
        assert "timestamps" not in snapshot

    def test_equality_ignores_timestamps(self):
        first = make(timestamps={"created_at": T0, "updated_at": T0})
        second = make(timestamps={"created_at": T0, "updated_at": T0 + timedelta(days=1)})
        assert first == second
        assert hash(first) == hash(second)

    def test_different_status_not_equal(self):
        assert make() != make(ProductStatus.VERIFIED)
        assert make() != "standing-desk"
