from datetime import UTC, datetime
from typing import Annotated

import sqlalchemy as sa
from pydantic import AfterValidator, BaseModel
from pydantic import Field as PydanticField
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(UTC)


def _ensure_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything we store is UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_ensure_utc)]


class Timestamps(BaseModel):
    """Creation and last business-significant update times."""

    created_at: UtcDatetime = PydanticField(default_factory=utcnow)
    updated_at: UtcDatetime = PydanticField(default_factory=utcnow)

    def touch(self, now: datetime | None = None) -> None:
        self.updated_at = now or utcnow()


class SoftDelete(BaseModel):
    """Soft deletion marker. Rows are archived, never removed."""

    deleted_at: UtcDatetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def mark_deleted(self, now: datetime | None = None) -> None:
        self.deleted_at = now or utcnow()

    def restore(self) -> None:
        self.deleted_at = None


class Entity(BaseModel):
    """Base entity with an integer surrogate identifier and timestamps.

    ``id`` stays ``None`` until the repository persists the entity.
    """

    id: int | None = PydanticField(default=None, description="Surrogate identifier")
    timestamps: Timestamps = PydanticField(default_factory=Timestamps)

    @property
    def created_at(self) -> datetime:
        return self.timestamps.created_at

    @property
    def updated_at(self) -> datetime:
        return self.timestamps.updated_at

    def mark_as_updated(self, now: datetime | None = None) -> None:
        self.timestamps.touch(now)


class EntityTable(SQLModel, table=False):
    """Base table with an autoincrement primary key and timestamps."""

    id: int | None = Field(default=None, primary_key=True)

    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    # Set explicitly from the entity: housekeeping writes must not bump it.
    updated_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now()},
    )
