"""
Role schemas
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from pydantic import Field

from rbac_admin.schemas.base import BaseResponseSchema, BaseSchema

ROLE_KEY_PATTERN = r"^[a-zA-Z0-9_]+$"


class RoleResponse(BaseResponseSchema):
    role_key: str
    name: str
    description: Optional[str] = None
    is_active: bool
    is_system: bool
    is_default: bool
    sort_order: int


class RoleCreateRequest(BaseSchema):
    role_key: str = Field(..., min_length=1, max_length=50, pattern=ROLE_KEY_PATTERN)
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=255)
    is_active: bool = True
    is_default: bool = False
    sort_order: int = 0


class RoleUpdateRequest(BaseSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=255)
    is_active: Optional[bool] = None
    is_default: Optional[bool] = None
    sort_order: Optional[int] = None


class RoleFilters(BaseSchema):
    search: Optional[str] = None
    is_active: Optional[bool] = None
    skip: int = Field(default=0, ge=0)
    limit: int = Field(default=20, ge=1, le=100)


class RolePermissionsRequest(BaseSchema):
    permission_keys: list[str] = Field(default_factory=list)


class RoleMenusRequest(BaseSchema):
    menu_ids: list[UUID] = Field(default_factory=list)

