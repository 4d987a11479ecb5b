from __future__ import annotations

from typing import Any

from sqlalchemy import select

from agrichain.extensions import db
from agrichain.models import AuditLog

SYSTEM_ACTOR = "system"


def record(
    table: str,
    action: str,
    actor: str | None,
    *,
    record_id: Any = None,
    before: dict[str, Any] | None = None,
    after: dict[str, Any] | None = None,
    source: str | None = None,
) -> AuditLog:
    """
    Append an audit entry to the current transaction.

    The row is flushed immediately so a failing audit write aborts the
    mutation it documents; it is committed or rolled back together with it.
    """
    entry = AuditLog(
        table_name=table,
        record_id=str(record_id) if record_id is not None else None,
        action=action,
        actor=actor or SYSTEM_ACTOR,
        old_value=before,
        new_value=after,
        source=source,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def list_entries(
    *,
    table: str | None = None,
    record_id: Any = None,
    action: str | None = None,
    limit: int = 200,
) -> list[AuditLog]:
    stmt = select(AuditLog)
    if table is not None:
        stmt = stmt.where(AuditLog.table_name == table)
    if record_id is not None:
        stmt = stmt.where(AuditLog.record_id == str(record_id))
    if action is not None:
        stmt = stmt.where(AuditLog.action == action)
    stmt = stmt.order_by(AuditLog.id.asc()).limit(limit)
    return list(db.session.execute(stmt).scalars().all())
