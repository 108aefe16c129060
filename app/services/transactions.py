"""Transaction store: the only module that issues SQL against ``transactions``."""

from __future__ import annotations

import logging
import math
from typing import Any, Awaitable, Callable, TypeVar
from uuid import UUID

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Conflict, NotFound, UpstreamError, ValidationError
from app.models.transaction import Transaction

logger = logging.getLogger(__name__)

T = TypeVar("T")

READ_ATTEMPTS = 2


def _is_transient(exc: DBAPIError) -> bool:
    if isinstance(exc, OperationalError):
        return True
    return bool(getattr(exc, "connection_invalidated", False))


async def _read(db: AsyncSession, operation: Callable[[], Awaitable[T]]) -> T:
    """Run a read, retrying once on a transient database error."""
    for attempt in range(1, READ_ATTEMPTS + 1):
        try:
            return await operation()
        except DBAPIError as exc:
            if not _is_transient(exc) or attempt == READ_ATTEMPTS:
                logger.error("Transaction store read failed after %s attempt(s)", attempt)
                raise UpstreamError("Transaction store unavailable") from exc
            logger.warning("Transient store error on read; retrying once")
            await db.rollback()
    raise UpstreamError("Transaction store unavailable")


def total_pages(total: int, page_size: int) -> int:
    if page_size <= 0:
        return 0
    return math.ceil(total / page_size)


def _scope_conditions(status: str | None, owner_id: UUID | None) -> list[Any]:
    conditions: list[Any] = []
    if status and status != "all":
        conditions.append(Transaction.status == status)
    if owner_id is not None:
        conditions.append(Transaction.created_by == owner_id)
    return conditions


async def list_transactions(
    db: AsyncSession,
    *,
    status: str | None = None,
    owner_id: UUID | None = None,
    page: int = 1,
    page_size: int = 10,
) -> tuple[list[Transaction], int]:
    if page < 1:
        raise ValidationError("page must be >= 1")
    if page_size < 1:
        raise ValidationError("page_size must be >= 1")
    conditions = _scope_conditions(status, owner_id)

    async def _run() -> tuple[list[Transaction], int]:
        count_stmt = select(func.count()).select_from(Transaction).where(*conditions)
        total = int((await db.execute(count_stmt)).scalar_one() or 0)
        stmt = (
            select(Transaction)
            .where(*conditions)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all()), total

    return await _read(db, _run)


async def summarize_transactions(
    db: AsyncSession,
    *,
    status: str | None = None,
    owner_id: UUID | None = None,
) -> dict[str, Any]:
    conditions = _scope_conditions(status, owner_id)

    def _sum_for(value: str):
        return func.coalesce(
            func.sum(case((Transaction.status == value, Transaction.amount), else_=0)), 0
        )

    async def _run() -> dict[str, Any]:
        stmt = select(
            func.count(Transaction.id),
            func.coalesce(func.sum(Transaction.amount), 0),
            _sum_for("pending"),
            _sum_for("approved"),
            _sum_for("denied"),
        ).where(*conditions)
        row = (await db.execute(stmt)).one()
        return {
            "count": int(row[0] or 0),
            "total_amount": row[1],
            "pending_amount": row[2],
            "approved_amount": row[3],
            "denied_amount": row[4],
        }

    return await _read(db, _run)


async def get_transaction(db: AsyncSession, transaction_id: UUID) -> Transaction:
    async def _run() -> Transaction | None:
        result = await db.execute(select(Transaction).where(Transaction.id == transaction_id))
        return result.scalar_one_or_none()

    transaction = await _read(db, _run)
    if transaction is None:
        raise NotFound("Transaction not found", details={"transaction_id": str(transaction_id)})
    return transaction


async def list_approved_for_date(db: AsyncSession, *, day_start, day_end) -> list[Transaction]:
    async def _run() -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(
                Transaction.status == "approved",
                Transaction.created_at >= day_start,
                Transaction.created_at < day_end,
            )
            .order_by(Transaction.created_at.asc(), Transaction.id.asc())
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    return await _read(db, _run)


async def insert_transaction(db: AsyncSession, values: dict[str, Any]) -> Transaction:
    transaction = Transaction(**values)
    db.add(transaction)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        raise ValidationError("Transaction violates a data constraint") from exc
    except DBAPIError as exc:
        await db.rollback()
        raise UpstreamError("Transaction store unavailable") from exc
    return transaction


async def conditional_update(
    db: AsyncSession,
    transaction_id: UUID,
    *,
    values: dict[str, Any],
    expected_status: str = "pending",
    require_unverified: bool = False,
) -> Transaction:
    """Apply ``values`` in one statement only if the row still has the expected state.

    Zero rows updated means either the row is gone (NotFound) or another write
    got there first (Conflict). Writes are never retried.
    """
    conditions = [Transaction.id == transaction_id, Transaction.status == expected_status]
    if require_unverified:
        conditions.append(Transaction.documentation_verified.is_(False))
    stmt = (
        update(Transaction)
        .where(*conditions)
        .values(**values, updated_at=func.now())
        .returning(Transaction)
        .execution_options(synchronize_session=False, populate_existing=True)
    )
    try:
        result = await db.execute(stmt)
        updated = result.scalar_one_or_none()
    except IntegrityError as exc:
        await db.rollback()
        raise ValidationError("Transaction violates a data constraint") from exc
    except DBAPIError as exc:
        await db.rollback()
        raise UpstreamError("Transaction store unavailable") from exc

    if updated is not None:
        return updated

    current = await db.execute(
        select(Transaction.status, Transaction.documentation_verified).where(
            Transaction.id == transaction_id
        )
    )
    row = current.one_or_none()
    if row is None:
        raise NotFound("Transaction not found", details={"transaction_id": str(transaction_id)})
    raise Conflict(
        "Transaction changed since it was read; re-fetch and try again",
        details={
            "transaction_id": str(transaction_id),
            "status": row[0],
            "documentation_verified": bool(row[1]),
        },
    )
