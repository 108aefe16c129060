from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable

from fastapi.encoders import jsonable_encoder
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_audit_logger
from app.models.audit_log import AuditLog

audit_logger = get_audit_logger()

# Money keeps its exact decimal text in the trail.
_AUDIT_ENCODERS = {
    Decimal: str,
    datetime: lambda v: v.isoformat(),
    date: lambda v: v.isoformat(),
}
SUMMARY_FIELD_LIMIT = 3


def serialize_for_audit(value: Any) -> Any:
    return jsonable_encoder(value, custom_encoder=_AUDIT_ENCODERS)


def model_snapshot(model: Any, *, exclude: Iterable[str] = ()) -> dict[str, Any]:
    """Column values of an ORM row, JSON-ready."""
    if model is None:
        return {}
    skip = set(exclude)
    values = {
        column.name: getattr(model, column.name)
        for column in model.__table__.columns
        if column.name not in skip
    }
    return serialize_for_audit(values)


def diff_fields(old: dict[str, Any], new: dict[str, Any]) -> dict[str, dict[str, Any]]:
    changes: dict[str, dict[str, Any]] = {}
    for key in sorted(set(old) | set(new), key=str):
        before, after = old.get(key), new.get(key)
        if isinstance(before, dict) and isinstance(after, dict):
            for sub_key, change in diff_fields(before, after).items():
                changes[f"{key}.{sub_key}"] = change
        elif before != after:
            changes[str(key)] = {"from": before, "to": after}
    return changes


def summarize(action: str, changes: dict[str, Any] | None) -> str:
    if not changes:
        return action
    fields = list(changes)
    shown = ", ".join(fields[:SUMMARY_FIELD_LIMIT])
    return f"{action}: {shown}" + ("..." if len(fields) > SUMMARY_FIELD_LIMIT else "")


def record_audit_log(
    db: AsyncSession,
    *,
    actor_id,
    action: str,
    resource_type: str,
    resource_id: str,
    old_value: Any | None = None,
    new_value: Any | None = None,
) -> AuditLog:
    """Stage an audit row on ``db``; it commits with the caller's unit of work.

    Call ``publish_audit_log`` once that commit succeeds.
    """
    before = serialize_for_audit(old_value) if old_value is not None else None
    after = serialize_for_audit(new_value) if new_value is not None else None
    changes = None
    if before is not None or after is not None:
        changes = diff_fields(before or {}, after or {}) or None

    entry = AuditLog(
        actor_id=actor_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        old_value=before,
        new_value=after,
        changes=changes,
        summary=summarize(action, changes),
    )
    db.add(entry)
    return entry


def publish_audit_log(entry: AuditLog) -> None:
    audit_logger.info(
        entry.summary,
        extra={"event": entry.action, "transaction_id": _transaction_id(entry)},
    )


def _transaction_id(entry: AuditLog) -> str | None:
    return entry.resource_id if entry.resource_type == "transaction" else None


async def list_audit_logs(
    db: AsyncSession,
    *,
    resource_type: str,
    resource_id: str,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[AuditLog], int]:
    scope = (AuditLog.resource_type == resource_type, AuditLog.resource_id == resource_id)
    count_stmt = select(func.count()).select_from(AuditLog).where(*scope)
    total = (await db.execute(count_stmt)).scalar_one()
    result = await db.execute(
        select(AuditLog)
        .where(*scope)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all()), int(total or 0)
