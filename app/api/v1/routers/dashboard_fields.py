from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.db.session import get_db
from app.schemas.dashboard_fields import (
    DashboardFieldCreate,
    DashboardFieldDTO,
    DashboardFieldListResponse,
)
from app.services import dashboard_fields
from app.services.authz import ActorContext

router = APIRouter(prefix="/dashboard-fields", tags=["dashboard-fields"])


@router.get("", response_model=DashboardFieldListResponse)
async def list_dashboard_fields(
    _: ActorContext = Depends(deps.get_actor_context),
    db: AsyncSession = Depends(get_db),
) -> DashboardFieldListResponse:
    fields = await dashboard_fields.list_fields(db)
    return DashboardFieldListResponse(
        items=[DashboardFieldDTO.model_validate(field) for field in fields]
    )


@router.post("", response_model=DashboardFieldDTO, status_code=201)
async def create_dashboard_field(
    payload: DashboardFieldCreate,
    actor: ActorContext = Depends(deps.get_actor_context),
    db: AsyncSession = Depends(get_db),
) -> DashboardFieldDTO:
    field = await dashboard_fields.create_field(
        db, actor, name=payload.name, description=payload.description
    )
    return DashboardFieldDTO.model_validate(field)


@router.delete("/{field_id}", status_code=204)
async def delete_dashboard_field(
    field_id: UUID,
    actor: ActorContext = Depends(deps.get_actor_context),
    db: AsyncSession = Depends(get_db),
) -> None:
    await dashboard_fields.delete_field(db, actor, field_id)
    return None
