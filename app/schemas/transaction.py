from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class TransactionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


class TransactionStatusFilter(str, Enum):
    ALL = "all"
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


Money = Decimal


class FileRef(BaseModel):
    model_config = ConfigDict(extra="forbid")

    key: str = Field(min_length=1, max_length=512)
    file_name: str = Field(min_length=1, max_length=255)
    content_type: str | None = None
    size_bytes: int = Field(ge=0)


class TransactionCreate(BaseModel):
    """Canonical create payload; unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    customer_name: str = Field(min_length=1, max_length=255)
    customer_address: str | None = Field(default=None, max_length=255)
    sector: str | None = Field(default=None, max_length=100)
    nature_of_business: str | None = Field(default=None, max_length=255)
    contact_name: str | None = Field(default=None, max_length=255)
    contact_number: str | None = Field(default=None, max_length=50)
    purpose: str | None = Field(default=None, max_length=255)
    description: str | None = None
    documentation_type: str | None = Field(default=None, max_length=100)
    funding_status: str | None = Field(default=None, max_length=100)
    tenor: int | None = Field(default=None, gt=0, validation_alias=AliasChoices("tenor", "tenure"))

    amount: Money = Field(ge=0, max_digits=18, decimal_places=2)
    amount_requested: Money = Field(ge=0, max_digits=18, decimal_places=2)
    cedi_balance: Money = Field(default=Decimal("0"), ge=0, max_digits=18, decimal_places=2)
    loan_limit: Money = Field(default=Decimal("0"), ge=0, max_digits=18, decimal_places=2)
    loan_balance: Money = Field(default=Decimal("0"), ge=0, max_digits=18, decimal_places=2)

    uploaded_files: list[FileRef] = Field(default_factory=list, max_length=20)

    @field_validator("tenor", mode="before")
    @classmethod
    def _coerce_tenor(cls, value):
        # Legacy clients send tenure as free text such as "7" or "7 days"
        if isinstance(value, str):
            cleaned = value.strip().lower().removesuffix("days").strip()
            if not cleaned:
                return None
            if not cleaned.isdigit():
                raise ValueError("tenor must be a whole number of days")
            return int(cleaned)
        return value


class FinancialCorrection(BaseModel):
    model_config = ConfigDict(extra="forbid")

    amount: Money | None = Field(default=None, ge=0, max_digits=18, decimal_places=2)
    amount_requested: Money | None = Field(default=None, ge=0, max_digits=18, decimal_places=2)
    cedi_balance: Money | None = Field(default=None, ge=0, max_digits=18, decimal_places=2)
    loan_limit: Money | None = Field(default=None, ge=0, max_digits=18, decimal_places=2)
    loan_balance: Money | None = Field(default=None, ge=0, max_digits=18, decimal_places=2)

    @model_validator(mode="after")
    def _require_one_field(self):
        if not self.changed_fields():
            raise ValueError("At least one financial field must be provided")
        return self

    def changed_fields(self) -> dict[str, Decimal]:
        return self.model_dump(exclude_none=True)


class TransactionDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    customer_name: str
    customer_address: str | None = None
    sector: str | None = None
    nature_of_business: str | None = None
    contact_name: str | None = None
    contact_number: str | None = None
    purpose: str | None = None
    description: str | None = None
    documentation_type: str | None = None
    funding_status: str | None = None
    tenor: int | None = None
    amount: Decimal
    amount_requested: Decimal
    cedi_balance: Decimal
    loan_limit: Decimal
    loan_balance: Decimal
    uploaded_files: list[FileRef] = Field(default_factory=list)
    status: TransactionStatus
    documentation_verified: bool = False
    created_by: UUID
    created_at: datetime | None = None
    updated_at: datetime | None = None
    approved_by: UUID | None = None
    reviewed_by: UUID | None = None
    approved_at: datetime | None = None
    verified_by: UUID | None = None
    verified_at: datetime | None = None
    allowed_actions: list[str] = Field(default_factory=list)


class TransactionListResponse(BaseModel):
    items: list[TransactionDTO]
    total: int
    page: int
    page_size: int
    total_pages: int


class TransactionSummary(BaseModel):
    status: TransactionStatusFilter
    count: int
    total_amount: Decimal
    pending_amount: Decimal
    approved_amount: Decimal
    denied_amount: Decimal


class AuditLogDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    actor_id: UUID | None = None
    action: str
    resource_type: str
    resource_id: str
    old_value: dict | None = None
    new_value: dict | None = None
    changes: dict | None = None
    summary: str | None = None
    created_at: datetime | None = None


class AuditLogListResponse(BaseModel):
    items: list[AuditLogDTO]
    total: int


class FileAccessResponse(BaseModel):
    url: str
    expires_in: int
