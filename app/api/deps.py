from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import set_actor_id
from app.core.errors import Unauthorized
from app.core.permissions import Role
from app.core.security import decode_token
from app.core.settings import settings
from app.db.session import get_db
from app.models import User
from app.services.authz import ActorContext, PolicyOptions, options_from_settings
from app.services.storage.adapter import StorageAdapter
from app.services.storage.service import get_storage_adapter


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/signin")


def enforce_inactivity(last_active_at: Optional[datetime], now: datetime) -> None:
    timeout = timedelta(minutes=settings.session_timeout_minutes)
    if last_active_at and now - last_active_at > timeout:
        raise Unauthorized("Session expired due to inactivity")


async def get_db_session(db: AsyncSession = Depends(get_db)) -> AsyncSession:
    return db


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    try:
        payload = decode_token(token, expected_type="access")
    except ValueError as exc:
        raise Unauthorized(str(exc)) from exc
    user_sub = payload.get("sub")
    token_version = payload.get("tv")
    if not user_sub:
        raise Unauthorized("Invalid token")

    stmt = select(User).where(User.id == user_sub)
    result = await db.execute(stmt)
    user = result.scalar_one_or_none()
    if not user:
        raise Unauthorized("User not found")

    if not user.is_active:
        raise Unauthorized("Inactive user")
    if token_version is not None and user.token_version != token_version:
        raise Unauthorized("Token revoked")

    now = datetime.now(timezone.utc)
    enforce_inactivity(user.last_active_at, now)
    user.last_active_at = now
    db.add(user)
    await db.commit()
    await db.refresh(user)
    set_actor_id(str(user.id))
    return user


async def get_actor_context(current_user: User = Depends(get_current_user)) -> ActorContext:
    """Resolve the session's actor once; the role is authoritative for the request."""
    return ActorContext(user_id=current_user.id, role=Role(current_user.role), email=current_user.email)


def get_policy_options() -> PolicyOptions:
    return options_from_settings(settings)


def get_storage() -> StorageAdapter:
    return get_storage_adapter()
