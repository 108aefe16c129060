from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ValidationError
from app.core.settings import settings
from app.schemas.transaction import (
    TransactionDTO,
    TransactionListResponse,
    TransactionStatusFilter,
    TransactionSummary,
)
from app.services import transactions
from app.services.authz import (
    ActorContext,
    PolicyOptions,
    allowed_actions,
    ensure_allowed,
    options_from_settings,
    visibility_owner,
)


def _normalize_status(status: TransactionStatusFilter | str | None) -> TransactionStatusFilter:
    if status is None:
        return TransactionStatusFilter.ALL
    try:
        return TransactionStatusFilter(status)
    except ValueError as exc:
        raise ValidationError(f"Unknown status filter: {status}") from exc


def _validate_paging(page: int, page_size: int) -> None:
    if page < 1:
        raise ValidationError("page must be >= 1")
    if page_size < 1 or page_size > settings.max_page_size:
        raise ValidationError(f"page_size must be between 1 and {settings.max_page_size}")


def to_dto(transaction: Any, actor: ActorContext, options: PolicyOptions) -> TransactionDTO:
    dto = TransactionDTO.model_validate(transaction)
    return dto.model_copy(update={"allowed_actions": allowed_actions(actor, transaction, options)})


async def list_transactions(
    db: AsyncSession,
    actor: ActorContext,
    *,
    status: TransactionStatusFilter | str | None = None,
    page: int = 1,
    page_size: int | None = None,
    options: PolicyOptions | None = None,
) -> TransactionListResponse:
    options = options or options_from_settings(settings)
    status_filter = _normalize_status(status)
    if page_size is None:
        page_size = settings.default_page_size
    _validate_paging(page, page_size)

    items, total = await transactions.list_transactions(
        db,
        status=status_filter.value,
        owner_id=visibility_owner(actor, options),
        page=page,
        page_size=page_size,
    )
    return TransactionListResponse(
        items=[to_dto(item, actor, options) for item in items],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=transactions.total_pages(total, page_size),
    )


async def summarize(
    db: AsyncSession,
    actor: ActorContext,
    *,
    status: TransactionStatusFilter | str | None = None,
    options: PolicyOptions | None = None,
) -> TransactionSummary:
    options = options or options_from_settings(settings)
    status_filter = _normalize_status(status)
    totals = await transactions.summarize_transactions(
        db,
        status=status_filter.value,
        owner_id=visibility_owner(actor, options),
    )
    return TransactionSummary(
        status=status_filter,
        count=totals["count"],
        total_amount=Decimal(totals["total_amount"] or 0),
        pending_amount=Decimal(totals["pending_amount"] or 0),
        approved_amount=Decimal(totals["approved_amount"] or 0),
        denied_amount=Decimal(totals["denied_amount"] or 0),
    )


async def get_transaction(
    db: AsyncSession,
    actor: ActorContext,
    transaction_id,
    *,
    options: PolicyOptions | None = None,
) -> TransactionDTO:
    options = options or options_from_settings(settings)
    transaction = await transactions.get_transaction(db, transaction_id)
    ensure_allowed(actor, "view", transaction, options)
    return to_dto(transaction, actor, options)
