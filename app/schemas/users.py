from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.core.permissions import Role
from app.schemas.auth import UserOut


class UserCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    email: EmailStr
    password: str = Field(min_length=1)
    full_name: str = Field(min_length=1, max_length=255)
    department: str | None = Field(default=None, max_length=100)
    role: Role = Role.BASIC


class UserRoleUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    role: Role


class UserListResponse(BaseModel):
    items: list[UserOut]
    total: int
