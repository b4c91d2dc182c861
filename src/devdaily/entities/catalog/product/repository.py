"""Product repository for data access operations."""

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import func, or_
from sqlmodel import Session, col, select

from src.devdaily.entities.catalog.product.entity import Product
from src.devdaily.entities.catalog.product.status import ProductStatus
from src.devdaily.entities.catalog.product.table import ProductTable

_COLUMNS = (
    "name",
    "slug",
    "description",
    "category_id",
    "market_price",
    "view_count",
    "status",
    "published_at",
    "verified_at",
    "verified_by",
    "last_price_check",
    "last_link_check",
)


class ProductRepository:
    """Data-access layer for products.

    Write paths are expected to run inside an open TransactionRunner unit of
    work; the repository only flushes and never commits.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, product_id: int, for_update: bool = False) -> Product | None:
        statement = select(ProductTable).where(ProductTable.id == product_id)
        if for_update:
            statement = statement.with_for_update()
        row = self._session.exec(statement).first()
        if row is None:
            return None
        return self._to_entity(row)

    def get_by_slug(self, slug: str) -> Product | None:
        row = self._session.exec(select(ProductTable).where(ProductTable.slug == slug)).first()
        if row is None:
            return None
        return self._to_entity(row)

    def save(self, product: Product) -> Product:
        """Insert or update ``product`` and return the persisted state."""
        if product.id is None:
            row = ProductTable()
            self._session.add(row)
        else:
            row = self._session.get(ProductTable, product.id)
            if row is None:
                raise ValueError(f"Product with id {product.id} not found")

        for column in _COLUMNS:
            setattr(row, column, getattr(product, column))
        row.created_at = product.timestamps.created_at
        row.updated_at = product.timestamps.updated_at
        row.deleted_at = product.soft_delete.deleted_at

        self._session.flush()
        return self._to_entity(row)

    def list_by_status(
        self,
        status: ProductStatus,
        include_archived: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Product]:
        statement = select(ProductTable).where(ProductTable.status == status)
        if not include_archived:
            statement = statement.where(col(ProductTable.deleted_at).is_(None))
        statement = statement.order_by(col(ProductTable.updated_at).desc()).offset(offset).limit(limit)
        return [self._to_entity(row) for row in self._session.exec(statement).all()]

    def count_by_status(self) -> dict[ProductStatus, int]:
        statement = select(ProductTable.status, func.count()).group_by(ProductTable.status)
        counts = {status: 0 for status in ProductStatus}
        for status, count in self._session.exec(statement).all():
            counts[ProductStatus(status)] = count
        return counts

    def list_published(
        self, search: str | None = None, limit: int = 20, offset: int = 0
    ) -> list[Product]:
        """Products visible on the public storefront, newest first."""
        statement = select(ProductTable).where(
            ProductTable.status == ProductStatus.PUBLISHED,
            col(ProductTable.deleted_at).is_(None),
        )
        if search:
            pattern = f"%{search.strip()}%"
            statement = statement.where(
                or_(
                    col(ProductTable.name).ilike(pattern),
                    col(ProductTable.description).ilike(pattern),
                )
            )
        statement = statement.order_by(col(ProductTable.published_at).desc()).offset(offset).limit(limit)
        return [self._to_entity(row) for row in self._session.exec(statement).all()]

    def list_price_checked_before(self, cutoff: datetime, limit: int = 100) -> list[Product]:
        """Live products whose price was never checked or checked before ``cutoff``."""
        return self._list_stale(ProductTable.last_price_check, cutoff, limit)

    def list_link_checked_before(self, cutoff: datetime, limit: int = 100) -> list[Product]:
        """Live products whose links were never checked or checked before ``cutoff``."""
        return self._list_stale(ProductTable.last_link_check, cutoff, limit)

    def _list_stale(self, column, cutoff: datetime, limit: int) -> list[Product]:
        statement = (
            select(ProductTable)
            .where(
                ProductTable.status == ProductStatus.PUBLISHED,
                col(ProductTable.deleted_at).is_(None),
                or_(col(column).is_(None), col(column) < cutoff),
            )
            .order_by(col(column).asc())
            .limit(limit)
        )
        return [self._to_entity(row) for row in self._session.exec(statement).all()]

    def get_many(self, product_ids: Sequence[int]) -> list[Product]:
        statement = select(ProductTable).where(col(ProductTable.id).in_(product_ids))
        return [self._to_entity(row) for row in self._session.exec(statement).all()]

    @staticmethod
    def _to_entity(row: ProductTable) -> Product:
        data = {column: getattr(row, column) for column in _COLUMNS}
        data["id"] = row.id
        data["timestamps"] = {"created_at": row.created_at, "updated_at": row.updated_at}
        data["soft_delete"] = {"deleted_at": row.deleted_at}
        return Product.model_validate(data)
