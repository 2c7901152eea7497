"""
Authentication Schemas
Pydantic models for authentication requests and responses
"""

from datetime import datetime
from typing import Optional, List
from uuid import UUID
from pydantic import Field, field_validator, model_validator
from rbac_admin.models.user import UserStatus
from rbac_admin.schemas.base import (
    BaseSchema,
    validate_email,
    validate_non_empty_string,
    validate_password_strength,
)
from rbac_admin.schemas.menu import MenuTreeNode


class LoginRequest(BaseSchema):
    """Login request schema"""
    email: str = Field(..., description="User email address")
    password: str = Field(..., min_length=1, description="User password")

    @field_validator('email')
    @classmethod
    def validate_email_format(cls, v):
        return validate_email(v)

    @field_validator('password')
    @classmethod
    def validate_password_not_empty(cls, v):
        return validate_non_empty_string(v)


class RegisterRequest(BaseSchema):
    """User registration request schema"""
    email: str = Field(..., description="User email address")
    password: str = Field(..., min_length=8, max_length=128, description="User password")
    full_name: str = Field(..., min_length=2, max_length=100, description="User full name")
    confirm_password: str = Field(..., description="Password confirmation")

    @field_validator('email')
    @classmethod
    def validate_email_format(cls, v):
        return validate_email(v)

    @field_validator('full_name')
    @classmethod
    def validate_full_name(cls, v):
        return validate_non_empty_string(v)

    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        return validate_password_strength(v)

    @model_validator(mode='after')
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class RefreshTokenRequest(BaseSchema):
    """Refresh token request schema"""
    refresh_token: str = Field(..., description="Refresh token")


class TokenResponse(BaseSchema):
    """Token response schema"""
    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token")
    token_type: str = Field("bearer", description="Token type")
    expires_in: int = Field(..., description="Token expiration time in seconds")


class UserProfile(BaseSchema):
    """Current user profile with resolved access"""
    id: UUID = Field(..., description="User ID")
    email: str = Field(..., description="User email")
    full_name: str = Field(..., description="User full name")
    status: UserStatus = Field(..., description="Account status")
    roles: List[str] = Field(default_factory=list, description="Resolved role keys")
    permissions: List[str] = Field(default_factory=list, description="Resolved permission keys")
    last_login_at: Optional[datetime] = Field(None, description="Last login date")


class LoginResponse(BaseSchema):
    """Login response schema"""
    user: UserProfile = Field(..., description="User profile")
    tokens: TokenResponse = Field(..., description="Authentication tokens")


class MenuAccessCheckRequest(BaseSchema):
    """Either a menu path or a permission key to test for the current user"""
    path: Optional[str] = Field(None, max_length=255)
    permission: Optional[str] = Field(None, max_length=100)


class MenuAccessCheckResponse(BaseSchema):
    allowed: bool
    path: Optional[str] = None
    permission: Optional[str] = None


class PermissionCheckRequest(BaseSchema):
    user_id: UUID
    permission_key: str = Field(..., min_length=1, max_length=100)


class PermissionCheckResponse(BaseSchema):
    user_id: UUID
    permission_key: str
    allowed: bool


class CurrentUserMenus(BaseSchema):
    menus: List[MenuTreeNode] = Field(default_factory=list)
