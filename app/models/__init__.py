from app.models.audit_log import AuditLog
from app.models.dashboard_field import DashboardField
from app.models.transaction import Transaction
from app.models.user import User

__all__ = [
    "AuditLog",
    "DashboardField",
    "Transaction",
    "User",
]
