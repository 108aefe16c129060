import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base
from app.models.types import EncryptedString

MONETARY_FIELDS = ("amount", "amount_requested", "cedi_balance", "loan_limit", "loan_balance")


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_transactions_amount_nonneg"),
        CheckConstraint("amount_requested >= 0", name="ck_transactions_amount_requested_nonneg"),
        CheckConstraint("cedi_balance >= 0", name="ck_transactions_cedi_balance_nonneg"),
        CheckConstraint("loan_limit >= 0", name="ck_transactions_loan_limit_nonneg"),
        CheckConstraint("loan_balance >= 0", name="ck_transactions_loan_balance_nonneg"),
        CheckConstraint("tenor IS NULL OR tenor > 0", name="ck_transactions_tenor_positive"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'denied')",
            name="ck_transactions_status",
        ),
        CheckConstraint(
            "(approved_by IS NULL) = (approved_at IS NULL)",
            name="ck_transactions_approval_pair",
        ),
        CheckConstraint(
            "(verified_by IS NULL) = (verified_at IS NULL)",
            name="ck_transactions_verification_pair",
        ),
        CheckConstraint(
            "(status = 'pending') = (approved_by IS NULL)",
            name="ck_transactions_decision_matches_status",
        ),
        CheckConstraint(
            "approved_by IS NULL OR approved_by <> created_by",
            name="ck_transactions_no_self_approval",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    customer_name = Column(String(255), nullable=False)
    customer_address = Column(String(255), nullable=True)
    sector = Column(String(100), nullable=True)
    nature_of_business = Column(String(255), nullable=True)
    contact_name = Column(String(255), nullable=True)
    contact_number = Column(EncryptedString(), nullable=True)
    purpose = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    documentation_type = Column(String(100), nullable=True)
    funding_status = Column(String(100), nullable=True)
    tenor = Column(Integer, nullable=True)

    amount = Column(Numeric(18, 2), nullable=False)
    amount_requested = Column(Numeric(18, 2), nullable=False)
    cedi_balance = Column(Numeric(18, 2), nullable=False, default=0, server_default="0")
    loan_limit = Column(Numeric(18, 2), nullable=False, default=0, server_default="0")
    loan_balance = Column(Numeric(18, 2), nullable=False, default=0, server_default="0")

    uploaded_files = Column(JSON, nullable=False, default=list)

    status = Column(String(20), nullable=False, default="pending", server_default="pending", index=True)
    documentation_verified = Column(Boolean, nullable=False, default=False, server_default="false")

    created_by = Column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
    approved_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="RESTRICT"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    verified_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="RESTRICT"), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def reviewed_by(self):
        return self.approved_by
