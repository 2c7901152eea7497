"""
Menu schemas
"""

from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from pydantic import Field

from rbac_admin.schemas.base import BaseResponseSchema, BaseSchema


class MenuResponse(BaseResponseSchema):
    name: str
    path: Optional[str] = None
    icon: Optional[str] = None
    permission_key: Optional[str] = None
    parent_id: Optional[UUID] = None
    sort_order: int
    is_visible: bool
    is_enabled: bool
    meta: dict[str, Any] = Field(default_factory=dict)


class MenuTreeNode(BaseSchema):
    id: UUID
    name: str
    path: Optional[str] = None
    icon: Optional[str] = None
    permission_key: Optional[str] = None
    parent_id: Optional[UUID] = None
    sort_order: int = 0
    is_visible: bool = True
    is_enabled: bool = True
    meta: dict[str, Any] = Field(default_factory=dict)
    children: list["MenuTreeNode"] = Field(default_factory=list)


class MenuCreateRequest(BaseSchema):
    name: str = Field(..., min_length=1, max_length=50)
    path: Optional[str] = Field(None, max_length=255)
    icon: Optional[str] = Field(None, max_length=50)
    permission_key: Optional[str] = Field(None, max_length=100)
    parent_id: Optional[UUID] = None
    sort_order: int = 0
    is_visible: bool = True
    is_enabled: bool = True
    meta: dict[str, Any] = Field(default_factory=dict)


class MenuUpdateRequest(BaseSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    path: Optional[str] = Field(None, max_length=255)
    icon: Optional[str] = Field(None, max_length=50)
    permission_key: Optional[str] = Field(None, max_length=100)
    parent_id: Optional[UUID] = None
    sort_order: Optional[int] = None
    is_visible: Optional[bool] = None
    is_enabled: Optional[bool] = None
    meta: Optional[dict[str, Any]] = None


class MenuSortItem(BaseSchema):
    id: UUID
    sort_order: int
    parent_id: Optional[UUID] = None


class MenuSortRequest(BaseSchema):
    items: list[MenuSortItem] = Field(..., min_length=1)


class MenuStats(BaseSchema):
    total: int
    visible: int
    hidden: int
    enabled: int
    disabled: int


MenuTreeNode.model_rebuild()
