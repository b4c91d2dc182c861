"""Housekeeping writes must not look like business updates."""

from datetime import timedelta

import pytest
from sqlmodel import Session, select

from src.devdaily.core.exceptions import ProductNotFoundError
from src.devdaily.core.services.catalog.product_maintenance import build_product_maintenance
from src.devdaily.entities.catalog.product import ProductStatus
from src.devdaily.entities.core.audit_log import AuditLogTable
from src.devdaily.runtime.config.config_data import ConfigData


def audit_count(session: Session) -> int:
    return len(session.exec(select(AuditLogTable)).all())


class TestHousekeepingWrites:
    def test_mark_price_checked(self, maintenance, make_product, clock, session):
        product = make_product(ProductStatus.PUBLISHED, published_at=clock.now)
        checked_at = clock.advance(days=3)

        updated = maintenance.mark_price_checked(product.id)

        assert updated.last_price_check == checked_at
        assert updated.updated_at == product.updated_at
        assert audit_count(session) == 0

    def test_mark_links_checked(self, maintenance, make_product, clock):
        product = make_product(ProductStatus.PUBLISHED, published_at=clock.now)
        checked_at = clock.advance(days=1)

        updated = maintenance.mark_links_checked(product.id)

        assert updated.last_link_check == checked_at
        assert updated.updated_at == product.updated_at

    def test_record_view(self, maintenance, make_product, product_repository, session, clock):
        product = make_product(ProductStatus.PUBLISHED, published_at=clock.now)

        maintenance.record_view(product.id)
        maintenance.record_view(product.id)

        stored = product_repository.get(product.id)
        assert stored.view_count == 2
        assert stored.updated_at == product.updated_at
        assert audit_count(session) == 0

    def test_unknown_product(self, maintenance):
        with pytest.raises(ProductNotFoundError):
            maintenance.record_view(12345)


class TestStaleQueries:
    def test_price_update_interval(self, maintenance, make_product, clock):
        fresh = make_product(
            ProductStatus.PUBLISHED, published_at=clock.now, last_price_check=clock.now - timedelta(days=6)
        )
        stale = make_product(
            ProductStatus.PUBLISHED, published_at=clock.now, last_price_check=clock.now - timedelta(days=8)
        )
        never = make_product(ProductStatus.PUBLISHED, published_at=clock.now)

        due = {p.id for p in maintenance.products_needing_price_update()}

        assert due == {stale.id, never.id}
        assert fresh.id not in due

    def test_link_validation_interval(self, maintenance, make_product, clock):
        make_product(
            ProductStatus.PUBLISHED, published_at=clock.now, last_link_check=clock.now - timedelta(days=10)
        )
        stale = make_product(
            ProductStatus.PUBLISHED, published_at=clock.now, last_link_check=clock.now - timedelta(days=15)
        )

        due = maintenance.products_needing_link_validation()

        assert [p.id for p in due] == [stale.id]

    def test_archived_products_skipped(self, maintenance, make_product):
        make_product(ProductStatus.ARCHIVED)

        assert maintenance.products_needing_price_update() == []


class TestWiring:
    def test_build_uses_catalog_config(self, session, make_product, clock):
        config = ConfigData()
        config.catalog.price_check_interval_days = 1
        product = make_product(
            ProductStatus.PUBLISHED, published_at=clock.now, last_price_check=clock.now - timedelta(days=2)
        )

        service = build_product_maintenance(session, clock=clock, config=config)

        assert [p.id for p in service.products_needing_price_update()] == [product.id]
