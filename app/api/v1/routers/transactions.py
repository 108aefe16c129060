from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.errors import NotFound
from app.core.permissions import TransactionAction
from app.core.settings import settings
from app.db.session import get_db
from app.schemas.transaction import (
    AuditLogDTO,
    AuditLogListResponse,
    FileAccessResponse,
    FinancialCorrection,
    TransactionCreate,
    TransactionDTO,
    TransactionListResponse,
    TransactionStatusFilter,
    TransactionSummary,
)
from app.services import audit, dashboard, lifecycle, transactions, uploads
from app.services.authz import ActorContext, PolicyOptions, ensure_allowed
from app.services.storage.adapter import StorageAdapter


router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.get("", response_model=TransactionListResponse, summary="List visible transactions")
async def list_transactions(
    status: TransactionStatusFilter = Query(TransactionStatusFilter.ALL),
    page: int = Query(1, ge=1),
    page_size: int | None = Query(default=None, ge=1, le=settings.max_page_size),
    actor: ActorContext = Depends(deps.get_actor_context),
    options: PolicyOptions = Depends(deps.get_policy_options),
    db: AsyncSession = Depends(get_db),
) -> TransactionListResponse:
    return await dashboard.list_transactions(
        db, actor, status=status, page=page, page_size=page_size, options=options
    )


@router.get("/summary", response_model=TransactionSummary, summary="Aggregate cards")
async def transaction_summary(
    status: TransactionStatusFilter = Query(TransactionStatusFilter.ALL),
    actor: ActorContext = Depends(deps.get_actor_context),
    options: PolicyOptions = Depends(deps.get_policy_options),
    db: AsyncSession = Depends(get_db),
) -> TransactionSummary:
    return await dashboard.summarize(db, actor, status=status, options=options)


@router.post("", response_model=TransactionDTO, status_code=201, summary="Create a transaction")
async def create_transaction(
    payload: TransactionCreate,
    actor: ActorContext = Depends(deps.get_actor_context),
    options: PolicyOptions = Depends(deps.get_policy_options),
    storage: StorageAdapter = Depends(deps.get_storage),
    db: AsyncSession = Depends(get_db),
) -> TransactionDTO:
    transaction = await lifecycle.create_transaction(
        db, actor, payload, options=options, storage=storage
    )
    return dashboard.to_dto(transaction, actor, options)


@router.get("/{transaction_id}", response_model=TransactionDTO)
async def get_transaction(
    transaction_id: UUID,
    actor: ActorContext = Depends(deps.get_actor_context),
    options: PolicyOptions = Depends(deps.get_policy_options),
    db: AsyncSession = Depends(get_db),
) -> TransactionDTO:
    return await dashboard.get_transaction(db, actor, transaction_id, options=options)


@router.post("/{transaction_id}/verify", response_model=TransactionDTO)
async def verify_transaction(
    transaction_id: UUID,
    actor: ActorContext = Depends(deps.get_actor_context),
    options: PolicyOptions = Depends(deps.get_policy_options),
    db: AsyncSession = Depends(get_db),
) -> TransactionDTO:
    transaction = await lifecycle.verify(db, actor, transaction_id, options=options)
    return dashboard.to_dto(transaction, actor, options)


@router.post("/{transaction_id}/approve", response_model=TransactionDTO)
async def approve_transaction(
    transaction_id: UUID,
    actor: ActorContext = Depends(deps.get_actor_context),
    options: PolicyOptions = Depends(deps.get_policy_options),
    db: AsyncSession = Depends(get_db),
) -> TransactionDTO:
    transaction = await lifecycle.approve(db, actor, transaction_id, options=options)
    return dashboard.to_dto(transaction, actor, options)


@router.post("/{transaction_id}/deny", response_model=TransactionDTO)
async def deny_transaction(
    transaction_id: UUID,
    actor: ActorContext = Depends(deps.get_actor_context),
    options: PolicyOptions = Depends(deps.get_policy_options),
    db: AsyncSession = Depends(get_db),
) -> TransactionDTO:
    transaction = await lifecycle.deny(db, actor, transaction_id, options=options)
    return dashboard.to_dto(transaction, actor, options)


@router.patch("/{transaction_id}/financials", response_model=TransactionDTO)
async def correct_financials(
    transaction_id: UUID,
    payload: FinancialCorrection,
    actor: ActorContext = Depends(deps.get_actor_context),
    options: PolicyOptions = Depends(deps.get_policy_options),
    db: AsyncSession = Depends(get_db),
) -> TransactionDTO:
    transaction = await lifecycle.correct_financials(
        db, actor, transaction_id, payload, options=options
    )
    return dashboard.to_dto(transaction, actor, options)


@router.get("/{transaction_id}/audit-logs", response_model=AuditLogListResponse)
async def list_transaction_audit_logs(
    transaction_id: UUID,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    actor: ActorContext = Depends(deps.get_actor_context),
    options: PolicyOptions = Depends(deps.get_policy_options),
    db: AsyncSession = Depends(get_db),
) -> AuditLogListResponse:
    transaction = await transactions.get_transaction(db, transaction_id)
    ensure_allowed(actor, TransactionAction.VIEW, transaction, options)
    entries, total = await audit.list_audit_logs(
        db,
        resource_type="transaction",
        resource_id=str(transaction_id),
        limit=limit,
        offset=offset,
    )
    return AuditLogListResponse(
        items=[AuditLogDTO.model_validate(entry) for entry in entries],
        total=total,
    )


@router.get("/{transaction_id}/files/{index}/url", response_model=FileAccessResponse)
async def get_file_access_url(
    transaction_id: UUID,
    index: int,
    actor: ActorContext = Depends(deps.get_actor_context),
    options: PolicyOptions = Depends(deps.get_policy_options),
    storage: StorageAdapter = Depends(deps.get_storage),
    db: AsyncSession = Depends(get_db),
) -> FileAccessResponse:
    transaction = await transactions.get_transaction(db, transaction_id)
    ensure_allowed(actor, TransactionAction.VIEW, transaction, options)
    files = transaction.uploaded_files or []
    if index < 0 or index >= len(files):
        raise NotFound("File not found", details={"index": index})
    expires_in = settings.signed_url_expiry_seconds
    url = uploads.access_url(storage, files[index], expires_in=expires_in)
    return FileAccessResponse(url=url, expires_in=expires_in)
