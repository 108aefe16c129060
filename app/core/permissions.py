from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    MARKETING = "marketing"
    TRADE = "trade"
    TREASURY = "treasury"
    BASIC = "basic"


class TransactionAction(str, Enum):
    VIEW = "view"
    CREATE = "create"
    VERIFY = "verify"
    APPROVE = "approve"
    DENY = "deny"
    EDIT_FINANCIALS = "edit_financials"


# Role buckets: which actions a role may ever attempt. State guards are applied
# on top of this table in app.services.authz.
ROLE_ACTIONS: dict[Role, frozenset[TransactionAction]] = {
    Role.ADMIN: frozenset(TransactionAction),
    Role.MARKETING: frozenset({TransactionAction.VIEW, TransactionAction.CREATE}),
    Role.TRADE: frozenset(
        {TransactionAction.VIEW, TransactionAction.APPROVE, TransactionAction.DENY}
    ),
    Role.TREASURY: frozenset(
        {TransactionAction.VIEW, TransactionAction.VERIFY, TransactionAction.EDIT_FINANCIALS}
    ),
    Role.BASIC: frozenset({TransactionAction.VIEW}),
}

# Decided transactions; nothing may mutate them.
TERMINAL_STATUSES = frozenset({"approved", "denied"})

# Roles that see every transaction regardless of creator.
GLOBAL_VIEW_ROLES = frozenset({Role.ADMIN, Role.TRADE, Role.TREASURY})

# Roles allowed to generate the daily FX report bundle.
REPORT_ROLES = frozenset({Role.ADMIN, Role.TREASURY})


def role_allows(role: Role | str, action: TransactionAction | str) -> bool:
    try:
        role_value = Role(role)
        action_value = TransactionAction(action)
    except ValueError:
        return False
    return action_value in ROLE_ACTIONS[role_value]
