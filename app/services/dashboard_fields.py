from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Conflict, Forbidden, NotFound
from app.core.permissions import Role
from app.models.dashboard_field import DashboardField
from app.services.audit import model_snapshot, publish_audit_log, record_audit_log
from app.services.authz import ActorContext


def _require_admin(actor: ActorContext) -> None:
    if Role(actor.role) != Role.ADMIN:
        raise Forbidden("role not permitted", reason="role_not_permitted")


async def list_fields(db: AsyncSession) -> list[DashboardField]:
    result = await db.execute(select(DashboardField).order_by(DashboardField.name.asc()))
    return list(result.scalars().all())


async def create_field(
    db: AsyncSession,
    actor: ActorContext,
    *,
    name: str,
    description: str | None = None,
) -> DashboardField:
    _require_admin(actor)
    existing = await db.execute(
        select(DashboardField.id).where(func.lower(DashboardField.name) == name.lower())
    )
    if existing.scalar_one_or_none() is not None:
        raise Conflict("A dashboard field with this name already exists")
    field = DashboardField(name=name, description=description, created_by=actor.user_id)
    db.add(field)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        raise Conflict("A dashboard field with this name already exists") from exc
    audit_entry = record_audit_log(
        db,
        actor_id=actor.user_id,
        action="dashboard_field.created",
        resource_type="dashboard_field",
        resource_id=str(field.id),
        new_value={"name": name, "description": description},
    )
    await db.commit()
    publish_audit_log(audit_entry)
    await db.refresh(field)
    return field


async def delete_field(db: AsyncSession, actor: ActorContext, field_id: UUID) -> None:
    _require_admin(actor)
    result = await db.execute(select(DashboardField).where(DashboardField.id == field_id))
    field = result.scalar_one_or_none()
    if field is None:
        raise NotFound("Dashboard field not found")
    audit_entry = record_audit_log(
        db,
        actor_id=actor.user_id,
        action="dashboard_field.deleted",
        resource_type="dashboard_field",
        resource_id=str(field.id),
        old_value=model_snapshot(field),
    )
    await db.delete(field)
    await db.commit()
    publish_audit_log(audit_entry)
