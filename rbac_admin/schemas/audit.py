"""
Audit log schemas
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import Field

from rbac_admin.schemas.base import BaseSchema


class AuditLogResponse(BaseSchema):
    id: UUID
    actor_id: Optional[str] = None
    actor_type: str
    action: str
    target_type: Optional[str] = None
    target_key: Optional[str] = None
    before: Optional[dict[str, Any]] = None
    after: Optional[dict[str, Any]] = None
    details: Optional[dict[str, Any]] = None
    status: str
    error_message: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: datetime


class MenuLogResponse(BaseSchema):
    id: UUID
    menu_id: UUID
    action: str
    operator_id: Optional[str] = None
    operator_type: str
    before_change: Optional[dict[str, Any]] = None
    after_change: Optional[dict[str, Any]] = None
    created_at: datetime


class AuditLogFilters(BaseSchema):
    actor_id: Optional[str] = None
    action: Optional[str] = None
    target_type: Optional[str] = None
    status: Optional[str] = None
    skip: int = Field(default=0, ge=0)
    limit: int = Field(default=50, ge=1, le=200)
