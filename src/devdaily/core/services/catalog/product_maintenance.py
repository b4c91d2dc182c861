"""Catalog housekeeping: price and link check stamps, view counts."""

from collections.abc import Callable
from datetime import datetime, timedelta

from loguru import logger
from sqlmodel import Session

from src.devdaily.core.exceptions import ProductNotFoundError
from src.devdaily.core.services.database.driver import SessionDriver
from src.devdaily.core.services.database.transaction import TransactionRunner
from src.devdaily.entities.catalog.product import Product, ProductRepository
from src.devdaily.entities.core._base import utcnow
from src.devdaily.runtime.config.config_data import CatalogConfig, ConfigData
from src.devdaily.runtime.context import get_config


class ProductMaintenanceService:
    """Housekeeping writes.

    None of these changes are business-significant: they never bump
    ``updated_at`` and never write an audit row.
    """

    def __init__(
        self,
        runner: TransactionRunner,
        products: ProductRepository,
        clock: Callable[[], datetime] = utcnow,
        config: CatalogConfig | None = None,
    ) -> None:
        self._runner = runner
        self._products = products
        self._clock = clock
        self._config = config or CatalogConfig()

    def mark_price_checked(self, product_id: int) -> Product:
        return self._touch(product_id, lambda p, now: p.mark_price_checked(now))

    def mark_links_checked(self, product_id: int) -> Product:
        return self._touch(product_id, lambda p, now: p.mark_links_checked(now))

    def record_view(self, product_id: int) -> Product:
        return self._touch(product_id, lambda p, _now: p.increment_view_count())

    def products_needing_price_update(self, limit: int = 100) -> list[Product]:
        cutoff = self._clock() - timedelta(days=self._config.price_check_interval_days)
        return self._products.list_price_checked_before(cutoff, limit=limit)

    def products_needing_link_validation(self, limit: int = 100) -> list[Product]:
        cutoff = self._clock() - timedelta(days=self._config.link_check_interval_days)
        return self._products.list_link_checked_before(cutoff, limit=limit)

    def _touch(self, product_id: int, change: Callable[[Product, datetime], None]) -> Product:
        def work(_driver) -> Product:
            product = self._products.get(product_id, for_update=True)
            if product is None:
                raise ProductNotFoundError(product_id)
            change(product, self._clock())
            return self._products.save(product)

        product = self._runner.execute(work)
        logger.debug("Product housekeeping saved", product_id=product_id)
        return product


def build_product_maintenance(
    session: Session,
    clock: Callable[[], datetime] | None = None,
    config: ConfigData | None = None,
) -> ProductMaintenanceService:
    config = config or get_config()
    runner = TransactionRunner(SessionDriver(session), config.transaction)
    return ProductMaintenanceService(
        runner, ProductRepository(session), clock or utcnow, config.catalog
    )
