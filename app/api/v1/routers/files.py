from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import FileResponse

from app.api import deps
from app.core.errors import NotFound, Unauthorized
from app.core.permissions import TransactionAction
from app.core.settings import settings
from app.schemas.transaction import FileRef
from app.services import uploads
from app.services.authz import ActorContext, PolicyOptions, ensure_allowed
from app.services.storage.adapter import (
    LocalFileSystemAdapter,
    StorageAdapter,
    verify_local_url_signature,
)

router = APIRouter(prefix="/files", tags=["files"])


@router.post("", response_model=FileRef, status_code=201, summary="Upload a supporting document")
async def upload_file(
    file: UploadFile = File(...),
    actor: ActorContext = Depends(deps.get_actor_context),
    options: PolicyOptions = Depends(deps.get_policy_options),
    storage: StorageAdapter = Depends(deps.get_storage),
) -> FileRef:
    ensure_allowed(actor, TransactionAction.CREATE, None, options)
    ref = await uploads.store_upload(
        storage,
        file,
        user_id=actor.user_id,
        max_size_bytes=settings.max_upload_size_mb * 1024 * 1024,
    )
    return FileRef(**ref)


@router.get("/content", summary="Download a file through a signed local URL")
async def download_local_content(
    key: str = Query(..., min_length=1),
    expires: int = Query(...),
    signature: str = Query(..., min_length=1),
    name: str | None = Query(default=None, max_length=255),
    storage: StorageAdapter = Depends(deps.get_storage),
) -> FileResponse:
    if not isinstance(storage, LocalFileSystemAdapter):
        raise NotFound("Local file access is not enabled")
    if not verify_local_url_signature(storage.signing_key, key, expires, signature):
        raise Unauthorized("Invalid or expired file link")
    try:
        path = storage.resolve_path(key)
    except ValueError as exc:
        raise NotFound("File not found") from exc
    if not path.is_file():
        raise NotFound("File not found")
    return FileResponse(path, filename=name or path.name)
