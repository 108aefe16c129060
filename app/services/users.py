from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth_utils import constant_time_verify
from app.core.errors import Conflict, Forbidden, NotFound, Unauthorized, ValidationError
from app.core.permissions import Role
from app.core.security import get_password_hash
from app.models.user import User
from app.services.audit import publish_audit_log, record_audit_log
from app.services.authz import ActorContext

logger = logging.getLogger(__name__)


def _hash_password(password: str) -> str:
    try:
        return get_password_hash(password)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


def _require_admin(actor: ActorContext) -> None:
    if Role(actor.role) != Role.ADMIN:
        raise Forbidden("role not permitted", reason="role_not_permitted")


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    stmt = select(User).where(func.lower(User.email) == email.lower())
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_user(db: AsyncSession, user_id: UUID) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFound("User not found", details={"user_id": str(user_id)})
    return user


async def _insert_user(
    db: AsyncSession,
    *,
    email: str,
    password: str,
    full_name: str,
    role: Role | str,
    department: str | None = None,
) -> User:
    if await get_user_by_email(db, email) is not None:
        raise Conflict("A user with this email already exists")
    user = User(
        email=email.lower(),
        full_name=full_name,
        department=department,
        role=Role(role).value,
        hashed_password=_hash_password(password),
        is_active=True,
        token_version=0,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        raise Conflict("A user with this email already exists") from exc
    return user


async def register(
    db: AsyncSession,
    *,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
) -> User:
    """Self-service sign-up; new accounts always start with the basic role."""
    user = await _insert_user(
        db,
        email=email,
        password=password,
        full_name=f"{first_name.strip()} {last_name.strip()}",
        role=Role.BASIC,
    )
    audit_entry = record_audit_log(
        db,
        actor_id=user.id,
        action="user.registered",
        resource_type="user",
        resource_id=str(user.id),
        new_value={"email": user.email, "role": user.role},
    )
    await db.commit()
    publish_audit_log(audit_entry)
    await db.refresh(user)
    return user


async def create_user(
    db: AsyncSession,
    actor: ActorContext,
    *,
    email: str,
    password: str,
    full_name: str,
    role: Role | str,
    department: str | None = None,
) -> User:
    _require_admin(actor)
    user = await _insert_user(
        db,
        email=email,
        password=password,
        full_name=full_name,
        role=role,
        department=department,
    )
    audit_entry = record_audit_log(
        db,
        actor_id=actor.user_id,
        action="user.created",
        resource_type="user",
        resource_id=str(user.id),
        new_value={"email": user.email, "role": user.role, "department": department},
    )
    await db.commit()
    publish_audit_log(audit_entry)
    await db.refresh(user)
    logger.info("User %s created with role %s", user.id, user.role)
    return user


async def list_users(db: AsyncSession, actor: ActorContext) -> tuple[list[User], int]:
    _require_admin(actor)
    total = int((await db.execute(select(func.count()).select_from(User))).scalar_one() or 0)
    result = await db.execute(select(User).order_by(User.created_at.desc()))
    return list(result.scalars().all()), total


async def set_role(
    db: AsyncSession,
    actor: ActorContext,
    user_id: UUID,
    role: Role | str,
) -> User:
    """Change a user's role and end their existing sessions."""
    _require_admin(actor)
    new_role = Role(role).value
    user = await get_user(db, user_id)
    if user.id == actor.user_id and new_role != Role.ADMIN.value:
        raise ValidationError("Administrators cannot remove their own admin role")
    old_role = user.role
    if old_role == new_role:
        return user
    user.role = new_role
    user.token_version += 1
    db.add(user)
    audit_entry = record_audit_log(
        db,
        actor_id=actor.user_id,
        action="user.role_changed",
        resource_type="user",
        resource_id=str(user.id),
        old_value={"role": old_role},
        new_value={"role": new_role},
    )
    await db.commit()
    publish_audit_log(audit_entry)
    await db.refresh(user)
    return user


async def authenticate(db: AsyncSession, email: str, password: str) -> User:
    user = await get_user_by_email(db, email)
    if not constant_time_verify(user.hashed_password if user else None, password):
        raise Unauthorized("Invalid credentials")
    if not user.is_active:
        raise Unauthorized("Inactive user")
    user.last_active_at = datetime.now(timezone.utc)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def logout(db: AsyncSession, user: User) -> None:
    user.token_version += 1
    db.add(user)
    await db.commit()
