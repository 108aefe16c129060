from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.limiter import limiter
from app.db.session import get_db
from app.schemas.reports import ReportRequest
from app.services import reports
from app.services.authz import ActorContext
from app.services.storage.adapter import StorageAdapter

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post(
    "/generate",
    response_class=Response,
    responses={200: {"content": {"application/zip": {}}}},
    summary="Build the daily FX report bundle",
)
@limiter.limit("10/minute")
async def generate_report(
    payload: ReportRequest,
    request: Request,
    actor: ActorContext = Depends(deps.get_actor_context),
    storage: StorageAdapter = Depends(deps.get_storage),
    db: AsyncSession = Depends(get_db),
) -> Response:
    filename, content = await reports.generate_report(db, actor, payload, storage)
    return Response(
        content=content,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
