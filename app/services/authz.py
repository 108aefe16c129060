"""Canonical transaction policy.

Every router and service asks this module what an actor may do with a
transaction. Nothing here touches the database or the network.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable
from uuid import UUID

from app.core.errors import Forbidden, ValidationError
from app.core.permissions import (
    GLOBAL_VIEW_ROLES,
    TERMINAL_STATUSES,
    Role,
    TransactionAction,
    role_allows,
)


REASON_MESSAGES = {
    "terminal_state": "terminal state",
    "role_not_permitted": "role not permitted",
    "self_approval": "self-approval",
    "not_verified": "documentation not verified",
    "already_verified": "already verified",
    "not_visible": "transaction not visible",
}

DECISION_ACTIONS = frozenset({TransactionAction.APPROVE, TransactionAction.DENY})
MUTATING_ACTIONS = frozenset(
    {
        TransactionAction.VERIFY,
        TransactionAction.APPROVE,
        TransactionAction.DENY,
        TransactionAction.EDIT_FINANCIALS,
    }
)


@dataclass(frozen=True, slots=True)
class ActorContext:
    user_id: UUID
    role: Role
    email: str | None = None


@dataclass(frozen=True, slots=True)
class PolicyOptions:
    require_verification: bool = True
    marketing_sees_all: bool = False


def _parse_action(action: TransactionAction | str) -> TransactionAction:
    try:
        return TransactionAction(action)
    except ValueError as exc:
        raise ValidationError(f"Unknown action: {action}") from exc


def _same_actor(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return False
    return str(left) == str(right)


def can_view(actor: ActorContext, transaction: Any, options: PolicyOptions) -> bool:
    role = Role(actor.role)
    if role in GLOBAL_VIEW_ROLES:
        return True
    if role == Role.MARKETING and options.marketing_sees_all:
        return True
    return _same_actor(transaction.created_by, actor.user_id)


def visibility_owner(actor: ActorContext, options: PolicyOptions) -> UUID | None:
    """Return the creator id list queries must be restricted to, or None for all rows."""
    role = Role(actor.role)
    if role in GLOBAL_VIEW_ROLES:
        return None
    if role == Role.MARKETING and options.marketing_sees_all:
        return None
    return actor.user_id


def denial_reason(
    actor: ActorContext,
    action: TransactionAction | str,
    transaction: Any | None,
    options: PolicyOptions,
) -> str | None:
    """Return the first failing guard for the action, or None when it is allowed.

    Guards run in a fixed order: terminal state, role, self-approval, then the
    verification flag. Visibility is checked first for existing transactions.
    """
    action = _parse_action(action)

    if transaction is not None and not can_view(actor, transaction, options):
        return "not_visible"

    if transaction is not None and action in MUTATING_ACTIONS:
        if transaction.status in TERMINAL_STATUSES:
            return "terminal_state"

    if not role_allows(actor.role, action):
        return "role_not_permitted"

    if transaction is None:
        return None

    if action in DECISION_ACTIONS:
        if _same_actor(transaction.created_by, actor.user_id):
            return "self_approval"
        if options.require_verification and not transaction.documentation_verified:
            return "not_verified"

    if action == TransactionAction.VERIFY and transaction.documentation_verified:
        return "already_verified"

    return None


def ensure_allowed(
    actor: ActorContext,
    action: TransactionAction | str,
    transaction: Any | None,
    options: PolicyOptions,
) -> None:
    reason = denial_reason(actor, action, transaction, options)
    if reason is not None:
        raise Forbidden(
            REASON_MESSAGES[reason],
            reason=reason,
            details={"action": str(TransactionAction(action).value)},
        )


def allowed_actions(
    actor: ActorContext,
    transaction: Any,
    options: PolicyOptions,
    *,
    candidates: Iterable[TransactionAction] | None = None,
) -> list[str]:
    actions = candidates if candidates is not None else (
        TransactionAction.VIEW,
        TransactionAction.VERIFY,
        TransactionAction.APPROVE,
        TransactionAction.DENY,
        TransactionAction.EDIT_FINANCIALS,
    )
    return [
        action.value
        for action in actions
        if denial_reason(actor, action, transaction, options) is None
    ]


def options_from_settings(settings: Any) -> PolicyOptions:
    return PolicyOptions(
        require_verification=bool(settings.require_verification_before_decision),
        marketing_sees_all=bool(settings.marketing_sees_all),
    )
