"""
Permission schemas
"""

from __future__ import annotations

from typing import Optional

from pydantic import Field

from rbac_admin.models.permission import PermissionType
from rbac_admin.schemas.base import BaseResponseSchema, BaseSchema

PERMISSION_KEY_PATTERN = r"^[a-zA-Z0-9_:.-]+$"


class PermissionResponse(BaseResponseSchema):
    permission_key: str
    name: str
    type: PermissionType
    description: Optional[str] = None


class PermissionCreateRequest(BaseSchema):
    permission_key: str = Field(..., min_length=1, max_length=100, pattern=PERMISSION_KEY_PATTERN)
    name: str = Field(..., min_length=1, max_length=100)
    type: PermissionType = PermissionType.API
    description: Optional[str] = Field(None, max_length=255)


class PermissionUpdateRequest(BaseSchema):
    """The key is immutable; only descriptive fields change"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    type: Optional[PermissionType] = None
    description: Optional[str] = Field(None, max_length=255)


class PermissionFilters(BaseSchema):
    search: Optional[str] = None
    type: Optional[PermissionType] = None
    skip: int = Field(default=0, ge=0)
    limit: int = Field(default=50, ge=1, le=200)
