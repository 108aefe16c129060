from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.core.permissions import Role


class SignInRequest(BaseModel):
    email: EmailStr
    password: str


class RegisterRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: UUID
    email: EmailStr
    full_name: str
    department: Optional[str] = None
    role: Role
    is_active: bool
    last_active_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class SignInResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserOut
