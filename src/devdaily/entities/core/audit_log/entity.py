"""Entity: AuditLog."""

from typing import Any

from pydantic import BaseModel, Field

from src.devdaily.entities.core._base import UtcDatetime, utcnow


class AuditLog(BaseModel):
    """One recorded admin action against a catalog entity.

    Audit rows are append-only, so they carry a single ``performed_at``
    instead of the usual created/updated timestamps.
    """

    id: int | None = None
    admin_id: int | None = Field(default=None, description="Acting admin")
    action_type: str = Field(description="What happened, e.g. PUBLISH")
    entity_type: str = Field(description="Kind of entity, e.g. PRODUCT")
    entity_id: int
    old_values: dict[str, Any] | None = None
    new_values: dict[str, Any] | None = None
    changes_summary: str | None = None
    notes: str | None = None
    performed_at: UtcDatetime = Field(default_factory=utcnow)

    @property
    def has_old_values(self) -> bool:
        return bool(self.old_values)

    @property
    def has_new_values(self) -> bool:
        return bool(self.new_values)

    def changed_fields(self) -> list[str]:
        return diff_fields(self.old_values, self.new_values)


def diff_fields(old: dict[str, Any] | None, new: dict[str, Any] | None) -> list[str]:
    """Names of keys whose values differ between two snapshots."""
    old = old or {}
    new = new or {}
    return sorted(key for key in old.keys() | new.keys() if old.get(key) != new.get(key))


def summarize_changes(old: dict[str, Any] | None, new: dict[str, Any] | None) -> str | None:
    """Human-readable ``field: old -> new`` list, or None when nothing changed.

    ``updated_at`` is left out; it changes on every business write.
    """
    old = old or {}
    new = new or {}
    parts = [
        f"{key}: {old.get(key)!r} -> {new.get(key)!r}"
        for key in diff_fields(old, new)
        if key != "updated_at"
    ]
    return "; ".join(parts) or None
