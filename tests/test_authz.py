from uuid import uuid4

import pytest

from app.core.errors import Forbidden, ValidationError
from app.core.permissions import TERMINAL_STATUSES, Role, TransactionAction
from app.services.authz import (
    PolicyOptions,
    allowed_actions,
    can_view,
    denial_reason,
    ensure_allowed,
    visibility_owner,
)
from conftest import make_actor, make_transaction

STRICT = PolicyOptions(require_verification=True, marketing_sees_all=False)
LENIENT = PolicyOptions(require_verification=False, marketing_sees_all=True)


def test_marketing_sees_only_own_transactions_by_default():
    marketer = make_actor(Role.MARKETING)
    own = make_transaction(created_by=marketer.user_id)
    other = make_transaction()

    assert can_view(marketer, own, STRICT)
    assert not can_view(marketer, other, STRICT)
    assert can_view(marketer, other, LENIENT)
    assert visibility_owner(marketer, STRICT) == marketer.user_id
    assert visibility_owner(marketer, LENIENT) is None


@pytest.mark.parametrize("role", [Role.ADMIN, Role.TRADE, Role.TREASURY])
def test_global_roles_see_everything(role):
    actor = make_actor(role)
    assert can_view(actor, make_transaction(), STRICT)
    assert visibility_owner(actor, STRICT) is None


def test_basic_role_is_scoped_to_own_rows():
    actor = make_actor(Role.BASIC)
    assert visibility_owner(actor, STRICT) == actor.user_id
    assert denial_reason(actor, "create", None, STRICT) == "role_not_permitted"


def test_hidden_transaction_reports_not_visible_before_other_guards():
    marketer = make_actor(Role.MARKETING)
    tx = make_transaction(status="approved", approved_by=uuid4(), approved_at=None)
    assert denial_reason(marketer, "approve", tx, STRICT) == "not_visible"


def test_terminal_state_precedes_role_check():
    marketer = make_actor(Role.MARKETING)
    tx = make_transaction(created_by=marketer.user_id, status="denied")
    assert denial_reason(marketer, "approve", tx, STRICT) == "terminal_state"


def test_role_not_permitted_for_marketing_approval():
    marketer = make_actor(Role.MARKETING)
    tx = make_transaction(created_by=marketer.user_id, documentation_verified=True)
    assert denial_reason(marketer, "approve", tx, STRICT) == "role_not_permitted"


def test_treasury_cannot_decide():
    treasurer = make_actor(Role.TREASURY)
    tx = make_transaction(documentation_verified=True)
    assert denial_reason(treasurer, "approve", tx, STRICT) == "role_not_permitted"
    assert denial_reason(treasurer, "deny", tx, STRICT) == "role_not_permitted"


def test_trade_cannot_verify_or_edit():
    trader = make_actor(Role.TRADE)
    tx = make_transaction()
    assert denial_reason(trader, "verify", tx, STRICT) == "role_not_permitted"
    assert denial_reason(trader, "edit_financials", tx, STRICT) == "role_not_permitted"


def test_self_approval_blocked_even_for_admin():
    admin = make_actor(Role.ADMIN)
    tx = make_transaction(created_by=admin.user_id, documentation_verified=True)
    assert denial_reason(admin, "approve", tx, STRICT) == "self_approval"
    assert denial_reason(admin, "deny", tx, STRICT) == "self_approval"


def test_trader_cannot_decide_own_transaction():
    trader = make_actor(Role.TRADE)
    tx = make_transaction(created_by=trader.user_id, documentation_verified=True)
    assert denial_reason(trader, "approve", tx, STRICT) == "self_approval"
    assert denial_reason(trader, "deny", tx, LENIENT) == "self_approval"
    assert allowed_actions(trader, tx, STRICT) == ["view"]



def test_self_approval_compares_string_identifiers():
    admin = make_actor(Role.ADMIN)
    tx = make_transaction(created_by=str(admin.user_id), documentation_verified=True)
    assert denial_reason(admin, "approve", tx, STRICT) == "self_approval"


def test_decision_requires_verification_when_enabled():
    trader = make_actor(Role.TRADE)
    tx = make_transaction(documentation_verified=False)
    assert denial_reason(trader, "approve", tx, STRICT) == "not_verified"
    assert denial_reason(trader, "approve", tx, LENIENT) is None


def test_verify_twice_is_rejected():
    treasurer = make_actor(Role.TREASURY)
    tx = make_transaction(documentation_verified=True)
    assert denial_reason(treasurer, "verify", tx, STRICT) == "already_verified"


def test_view_of_terminal_transaction_is_allowed():
    trader = make_actor(Role.TRADE)
    tx = make_transaction(status="approved", approved_by=trader.user_id)
    assert denial_reason(trader, "view", tx, STRICT) is None


def test_unknown_action_is_a_validation_error():
    with pytest.raises(ValidationError):
        denial_reason(make_actor(Role.ADMIN), "delete", make_transaction(), STRICT)


def test_ensure_allowed_raises_forbidden_with_reason():
    admin = make_actor(Role.ADMIN)
    tx = make_transaction(created_by=admin.user_id, documentation_verified=True)

    with pytest.raises(Forbidden) as exc_info:
        ensure_allowed(admin, TransactionAction.APPROVE, tx, STRICT)

    assert exc_info.value.reason == "self_approval"
    assert exc_info.value.message == "self-approval"
    assert exc_info.value.details == {"reason": "self_approval", "action": "approve"}


def test_allowed_actions_for_pending_verified_row():
    trader = make_actor(Role.TRADE)
    tx = make_transaction(documentation_verified=True)
    assert allowed_actions(trader, tx, STRICT) == ["view", "approve", "deny"]


def test_allowed_actions_for_unverified_row_per_role():
    tx = make_transaction()
    assert allowed_actions(make_actor(Role.TRADE), tx, STRICT) == ["view"]
    assert allowed_actions(make_actor(Role.TREASURY), tx, STRICT) == [
        "view",
        "verify",
        "edit_financials",
    ]


def test_allowed_actions_for_terminal_row_is_view_only():
    admin = make_actor(Role.ADMIN)
    tx = make_transaction(status="approved", approved_by=uuid4(), documentation_verified=True)
    assert allowed_actions(admin, tx, STRICT) == ["view"]


def test_allowed_actions_for_hidden_row_is_empty():
    marketer = make_actor(Role.MARKETING)
    assert allowed_actions(marketer, make_transaction(), STRICT) == []


@pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES))
@pytest.mark.parametrize("action", ["verify", "approve", "deny", "edit_financials"])
def test_every_terminal_status_blocks_mutation(status, action):
    tx = make_transaction(status=status, approved_by=uuid4(), documentation_verified=True)
    assert denial_reason(make_actor(Role.ADMIN), action, tx, STRICT) == "terminal_state"
