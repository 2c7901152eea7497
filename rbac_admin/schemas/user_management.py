"""
User management schemas for admin CRUD operations.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field, field_validator

from rbac_admin.models.user import UserStatus
from rbac_admin.schemas.base import (
    BaseSchema,
    SortOrder,
    validate_email,
    validate_password_strength,
)


class UserListItem(BaseSchema):
    id: UUID
    email: str
    full_name: str
    is_active: bool
    status: UserStatus
    created_at: datetime
    last_login_at: Optional[datetime] = None


class UserDetail(UserListItem):
    roles: list[str] = Field(default_factory=list)
    updated_at: datetime


class UserCreateRequest(BaseSchema):
    email: str = Field(..., description="Unique email")
    full_name: str = Field(..., min_length=2, max_length=100)
    password: str = Field(..., min_length=8, max_length=128)
    is_active: bool = True
    status: UserStatus = UserStatus.ACTIVE
    role_keys: list[str] = Field(default_factory=list)

    @field_validator("email")
    @classmethod
    def validate_email_format(cls, value: str) -> str:
        return validate_email(value)

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return validate_password_strength(value)


class UserUpdateRequest(BaseSchema):
    # Email is the login identity and cannot change.
    email: Optional[str] = Field(default=None, description="Email cannot be updated")

    full_name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    is_active: Optional[bool] = None

    @field_validator("email")
    @classmethod
    def reject_email_update(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            raise ValueError("Email is immutable and cannot be updated")
        return value


class UserStatusUpdateRequest(BaseSchema):
    status: UserStatus


class UserPasswordResetRequest(BaseSchema):
    new_password: str = Field(..., min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return validate_password_strength(value)


class UserRolesRequest(BaseSchema):
    role_keys: list[str] = Field(default_factory=list)
    expires_at: Optional[datetime] = Field(None, description="Optional expiry for new assignments")


class UserFilters(BaseSchema):
    search: Optional[str] = Field(default=None)
    status: Optional[UserStatus] = Field(default=None)
    is_active: Optional[bool] = Field(default=None)
    sort_by: str = Field(default="created_at")
    sort_order: SortOrder = Field(default=SortOrder.DESC)

    skip: int = Field(default=0, ge=0)
    limit: int = Field(default=20, ge=1, le=100)


class UserBatchRolesRequest(BaseSchema):
    user_ids: list[UUID] = Field(..., min_length=1, max_length=100)
