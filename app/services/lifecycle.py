"""Transaction lifecycle: pending -> (verified) -> approved | denied.

Transitions are planned as plain data against the policy, then written with a
single conditional update so concurrent actors cannot both win.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ValidationError
from app.core.permissions import TransactionAction
from app.core.settings import settings
from app.models.transaction import MONETARY_FIELDS, Transaction
from app.schemas.transaction import FinancialCorrection, TransactionCreate
from app.services import notifications, transactions, uploads
from app.services.audit import publish_audit_log, record_audit_log
from app.services.authz import ActorContext, PolicyOptions, ensure_allowed, options_from_settings
from app.services.storage.adapter import StorageAdapter
from app.services.storage.service import get_storage_adapter

logger = logging.getLogger(__name__)

LIFECYCLE_FIELDS = (
    "status",
    "documentation_verified",
    "verified_by",
    "verified_at",
    "approved_by",
    "approved_at",
)

TRANSITION_EVENTS = {
    TransactionAction.VERIFY: "verified",
    TransactionAction.APPROVE: "approved",
    TransactionAction.DENY: "denied",
}


@dataclass(frozen=True)
class TransitionPlan:
    action: TransactionAction
    values: dict[str, Any] = field(default_factory=dict)
    require_unverified: bool = False


def _lifecycle_snapshot(transaction: Any) -> dict[str, Any]:
    return {name: getattr(transaction, name) for name in LIFECYCLE_FIELDS}


def _financial_snapshot(transaction: Any) -> dict[str, Any]:
    return {name: getattr(transaction, name) for name in MONETARY_FIELDS}


def plan_transition(
    transaction: Any,
    action: TransactionAction | str,
    actor: ActorContext,
    *,
    now: datetime,
    options: PolicyOptions,
) -> TransitionPlan:
    """Check the policy and describe the write for a lifecycle event. Pure."""
    action = TransactionAction(action)
    if action not in TRANSITION_EVENTS:
        raise ValidationError(f"'{action.value}' is not a lifecycle transition")
    ensure_allowed(actor, action, transaction, options)

    if action == TransactionAction.VERIFY:
        return TransitionPlan(
            action=action,
            values={
                "documentation_verified": True,
                "verified_by": actor.user_id,
                "verified_at": now,
            },
            require_unverified=True,
        )
    return TransitionPlan(
        action=action,
        values={
            "status": TRANSITION_EVENTS[action],
            "approved_by": actor.user_id,
            "approved_at": now,
        },
    )


async def create_transaction(
    db: AsyncSession,
    actor: ActorContext,
    payload: TransactionCreate,
    *,
    options: PolicyOptions | None = None,
    storage: StorageAdapter | None = None,
) -> Transaction:
    options = options or options_from_settings(settings)
    ensure_allowed(actor, TransactionAction.CREATE, None, options)

    values = payload.model_dump()
    if values["uploaded_files"]:
        storage = storage or get_storage_adapter()
        uploads.ensure_owned_file_refs(storage, actor.user_id, values["uploaded_files"])
    values.update(
        status="pending",
        documentation_verified=False,
        created_by=actor.user_id,
    )
    transaction = await transactions.insert_transaction(db, values)
    audit_entry = record_audit_log(
        db,
        actor_id=actor.user_id,
        action="transaction.created",
        resource_type="transaction",
        resource_id=str(transaction.id),
        new_value={**_financial_snapshot(transaction), "status": "pending"},
    )
    await db.commit()
    publish_audit_log(audit_entry)
    await db.refresh(transaction)
    logger.info(
        "Transaction %s created by %s",
        transaction.id,
        actor.user_id,
        extra={"event": "transaction.created", "transaction_id": str(transaction.id)},
    )
    await notifications.notify_transaction_event("created", transaction)
    return transaction


async def apply_transition(
    db: AsyncSession,
    actor: ActorContext,
    transaction_id: UUID,
    action: TransactionAction | str,
    *,
    options: PolicyOptions | None = None,
) -> Transaction:
    options = options or options_from_settings(settings)
    transaction = await transactions.get_transaction(db, transaction_id)
    plan = plan_transition(
        transaction,
        action,
        actor,
        now=datetime.now(timezone.utc),
        options=options,
    )
    before = _lifecycle_snapshot(transaction)

    updated = await transactions.conditional_update(
        db,
        transaction_id,
        values=plan.values,
        expected_status="pending",
        require_unverified=plan.require_unverified,
    )
    event = TRANSITION_EVENTS[plan.action]
    audit_entry = record_audit_log(
        db,
        actor_id=actor.user_id,
        action=f"transaction.{event}",
        resource_type="transaction",
        resource_id=str(transaction_id),
        old_value=before,
        new_value=_lifecycle_snapshot(updated),
    )
    await db.commit()
    publish_audit_log(audit_entry)
    logger.info(
        "Transaction %s %s by %s",
        transaction_id,
        event,
        actor.user_id,
        extra={
            "event": f"transaction.{event}",
            "transaction_id": str(transaction_id),
            "status": updated.status,
        },
    )
    await notifications.notify_transaction_event(event, updated, old_status=before["status"])
    return updated


async def verify(db: AsyncSession, actor: ActorContext, transaction_id: UUID, **kwargs) -> Transaction:
    return await apply_transition(db, actor, transaction_id, TransactionAction.VERIFY, **kwargs)


async def approve(db: AsyncSession, actor: ActorContext, transaction_id: UUID, **kwargs) -> Transaction:
    return await apply_transition(db, actor, transaction_id, TransactionAction.APPROVE, **kwargs)


async def deny(db: AsyncSession, actor: ActorContext, transaction_id: UUID, **kwargs) -> Transaction:
    return await apply_transition(db, actor, transaction_id, TransactionAction.DENY, **kwargs)


async def correct_financials(
    db: AsyncSession,
    actor: ActorContext,
    transaction_id: UUID,
    correction: FinancialCorrection,
    *,
    options: PolicyOptions | None = None,
) -> Transaction:
    options = options or options_from_settings(settings)
    changes = correction.changed_fields()
    if not changes:
        raise ValidationError("At least one financial field must be provided")

    transaction = await transactions.get_transaction(db, transaction_id)
    ensure_allowed(actor, TransactionAction.EDIT_FINANCIALS, transaction, options)
    before = _financial_snapshot(transaction)

    updated = await transactions.conditional_update(
        db,
        transaction_id,
        values=changes,
        expected_status="pending",
    )
    audit_entry = record_audit_log(
        db,
        actor_id=actor.user_id,
        action="transaction.financials_corrected",
        resource_type="transaction",
        resource_id=str(transaction_id),
        old_value=before,
        new_value=_financial_snapshot(updated),
    )
    await db.commit()
    publish_audit_log(audit_entry)
    logger.info(
        "Transaction %s financials corrected by %s: %s",
        transaction_id,
        actor.user_id,
        ", ".join(sorted(changes)),
    )
    return updated
