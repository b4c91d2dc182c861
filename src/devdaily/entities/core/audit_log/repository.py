"""AuditLog repository: the audit port of the catalog core."""

import json
from datetime import datetime
from typing import Any

from sqlmodel import Session, col, select

from src.devdaily.entities.core._base import utcnow
from src.devdaily.entities.core.audit_log.entity import AuditLog, summarize_changes
from src.devdaily.entities.core.audit_log.table import AuditLogTable


class AuditLogRepository:
    """Data-access layer for audit records.

    ``record`` is called from inside the same unit of work as the mutation it
    describes, so the audit row commits or rolls back with it.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def record(
        self,
        actor_id: int | None,
        action_type: str,
        entity_type: str,
        entity_id: int,
        old_values: dict[str, Any] | None,
        new_values: dict[str, Any] | None,
        notes: str | None = None,
        performed_at: datetime | None = None,
    ) -> AuditLog:
        row = AuditLogTable(
            admin_id=actor_id,
            action_type=action_type,
            entity_type=entity_type,
            entity_id=entity_id,
            old_values=_dumps(old_values),
            new_values=_dumps(new_values),
            changes_summary=summarize_changes(old_values, new_values),
            notes=notes,
            performed_at=performed_at or utcnow(),
        )
        self._session.add(row)
        self._session.flush()
        return self._to_entity(row)

    def for_entity(
        self, entity_type: str, entity_id: int, limit: int = 50, offset: int = 0
    ) -> list[AuditLog]:
        """Audit trail of one entity, oldest first."""
        statement = (
            select(AuditLogTable)
            .where(AuditLogTable.entity_type == entity_type, AuditLogTable.entity_id == entity_id)
            .order_by(col(AuditLogTable.performed_at).asc(), col(AuditLogTable.id).asc())
            .offset(offset)
            .limit(limit)
        )
        return [self._to_entity(row) for row in self._session.exec(statement).all()]

    def by_admin(self, admin_id: int, limit: int = 50) -> list[AuditLog]:
        statement = (
            select(AuditLogTable)
            .where(AuditLogTable.admin_id == admin_id)
            .order_by(col(AuditLogTable.performed_at).desc(), col(AuditLogTable.id).desc())
            .limit(limit)
        )
        return [self._to_entity(row) for row in self._session.exec(statement).all()]

    def recent(self, limit: int = 20) -> list[AuditLog]:
        statement = (
            select(AuditLogTable)
            .order_by(col(AuditLogTable.performed_at).desc(), col(AuditLogTable.id).desc())
            .limit(limit)
        )
        return [self._to_entity(row) for row in self._session.exec(statement).all()]

    @staticmethod
    def _to_entity(row: AuditLogTable) -> AuditLog:
        return AuditLog(
            id=row.id,
            admin_id=row.admin_id,
            action_type=row.action_type,
            entity_type=row.entity_type,
            entity_id=row.entity_id,
            old_values=json.loads(row.old_values) if row.old_values else None,
            new_values=json.loads(row.new_values) if row.new_values else None,
            changes_summary=row.changes_summary,
            notes=row.notes,
            performed_at=row.performed_at,
        )


def _dumps(values: dict[str, Any] | None) -> str | None:
    if values is None:
        return None
    return json.dumps(values, default=str, sort_keys=True)
