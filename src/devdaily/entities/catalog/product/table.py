"""Product database table model."""

from datetime import datetime
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from src.devdaily.entities.catalog.product.status import ProductStatus
from src.devdaily.entities.core._base import EntityTable


class ProductTable(EntityTable, table=True):
    """Database persistence model for products.

    This represents how the Product entity is stored in the database. The
    entity's embedded ``Timestamps`` and ``SoftDelete`` value objects are
    flattened into columns here.
    """

    __tablename__ = "products"

    name: str = Field(max_length=255)
    slug: str = Field(max_length=255, unique=True, index=True)
    description: str | None = Field(default=None, sa_column=sa.Column(sa.Text, nullable=True))
    category_id: int | None = Field(default=None, index=True)
    market_price: Decimal = Field(
        default=Decimal("0.00"), sa_column=sa.Column(sa.Numeric(12, 2), nullable=False)
    )
    view_count: int = Field(default=0)
    status: ProductStatus = Field(
        default=ProductStatus.DRAFT,
        sa_column=sa.Column(
            sa.Enum(
                ProductStatus,
                name="product_status",
                values_callable=lambda enum_cls: [member.value for member in enum_cls],
                native_enum=False,
                validate_strings=True,
            ),
            nullable=False,
            index=True,
        ),
    )
    published_at: datetime | None = None
    verified_at: datetime | None = None
    verified_by: int | None = None
    last_price_check: datetime | None = None
    last_link_check: datetime | None = None
    deleted_at: datetime | None = Field(default=None, index=True)
