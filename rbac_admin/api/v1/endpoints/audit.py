"""Read-only audit trail endpoints."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_admin.core.context import SessionContext
from rbac_admin.core.database import get_db
from rbac_admin.core.deps import require_permissions
from rbac_admin.core.rbac import AUDIT_READ_PERMISSION
from rbac_admin.schemas.audit import AuditLogFilters, AuditLogResponse, MenuLogResponse
from rbac_admin.schemas.base import ApiResponse, PaginatedResponse
from rbac_admin.services.audit import audit_service

router = APIRouter()


@router.get("/audit-logs", response_model=ApiResponse[PaginatedResponse[AuditLogResponse]])
async def list_audit_logs(
    actor_id: Optional[str] = Query(default=None),
    action: Optional[str] = Query(default=None),
    target_type: Optional[str] = Query(default=None),
    status: Optional[str] = Query(default=None, pattern="^(SUCCESS|FAILURE)$"),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    context: SessionContext = Depends(require_permissions([AUDIT_READ_PERMISSION])),
    db: AsyncSession = Depends(get_db),
):
    """Newest entries first."""
    filters = AuditLogFilters(
        actor_id=actor_id,
        action=action,
        target_type=target_type,
        status=status,
        skip=skip,
        limit=limit,
    )
    items, total = await audit_service.list_audit_logs(db, filters)
    return ApiResponse.ok(PaginatedResponse.create(items=items, total=total, skip=skip, limit=limit))


@router.get("/menu-logs", response_model=ApiResponse[PaginatedResponse[MenuLogResponse]])
async def list_menu_logs(
    menu_id: Optional[UUID] = Query(default=None),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    context: SessionContext = Depends(require_permissions([AUDIT_READ_PERMISSION])),
    db: AsyncSession = Depends(get_db),
):
    items, total = await audit_service.list_menu_logs(db, menu_id, skip, limit)
    return ApiResponse.ok(PaginatedResponse.create(items=items, total=total, skip=skip, limit=limit))
