import uuid
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from billdesk.models.user import UserRole
from billdesk.schemas.common import Pagination


class ProfileInfo(BaseModel):
    phone: str | None = Field(None, max_length=50)
    department: str | None = Field(None, max_length=100)
    position: str | None = Field(None, max_length=100)


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    role: UserRole = UserRole.user
    registration_number: str | None = Field(None, max_length=100)
    profile_info: ProfileInfo | None = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., max_length=128)


class UserRead(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    role: UserRole
    registration_number: str | None = None
    profile_info: dict | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserSummary(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    role: UserRole

    model_config = {"from_attributes": True}


class LoginResponse(BaseModel):
    token: str
    user: UserRead


class RoleUpdate(BaseModel):
    role: UserRole


class StatusUpdate(BaseModel):
    is_active: bool


class UserPage(BaseModel):
    items: list[UserRead]
    pagination: Pagination


class AdminCheck(BaseModel):
    admin_exists: bool
