"""AuditLog database table model."""

from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from src.devdaily.entities.core._base import utcnow


class AuditLogTable(SQLModel, table=True):
    """Append-only persistence model for audit records.

    Old and new values are stored as JSON text so the table stays portable
    across MySQL, PostgreSQL and SQLite.
    """

    __tablename__ = "audit_logs"

    id: int | None = Field(default=None, primary_key=True)
    admin_id: int | None = Field(default=None, index=True)
    action_type: str = Field(max_length=64)
    entity_type: str = Field(max_length=64)
    entity_id: int = Field(index=True)
    old_values: str | None = Field(default=None, sa_column=sa.Column(sa.Text, nullable=True))
    new_values: str | None = Field(default=None, sa_column=sa.Column(sa.Text, nullable=True))
    changes_summary: str | None = Field(default=None, sa_column=sa.Column(sa.Text, nullable=True))
    notes: str | None = Field(default=None, sa_column=sa.Column(sa.Text, nullable=True))
    performed_at: datetime = Field(default_factory=utcnow, nullable=False, index=True)
