from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.db.session import get_db
from app.schemas.auth import UserOut
from app.schemas.users import UserCreateRequest, UserListResponse, UserRoleUpdateRequest
from app.services import users
from app.services.authz import ActorContext

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=UserListResponse, summary="List users (admin)")
async def list_users(
    actor: ActorContext = Depends(deps.get_actor_context),
    db: AsyncSession = Depends(get_db),
) -> UserListResponse:
    items, total = await users.list_users(db, actor)
    return UserListResponse(items=[UserOut.model_validate(item) for item in items], total=total)


@router.post("", response_model=UserOut, status_code=201, summary="Create a user (admin)")
async def create_user(
    payload: UserCreateRequest,
    actor: ActorContext = Depends(deps.get_actor_context),
    db: AsyncSession = Depends(get_db),
) -> UserOut:
    user = await users.create_user(
        db,
        actor,
        email=payload.email,
        password=payload.password,
        full_name=payload.full_name,
        role=payload.role,
        department=payload.department,
    )
    return UserOut.model_validate(user)


@router.patch("/{user_id}/role", response_model=UserOut, summary="Change a user's role (admin)")
async def update_user_role(
    user_id: UUID,
    payload: UserRoleUpdateRequest,
    actor: ActorContext = Depends(deps.get_actor_context),
    db: AsyncSession = Depends(get_db),
) -> UserOut:
    user = await users.set_role(db, actor, user_id, payload.role)
    return UserOut.model_validate(user)
