"""Permission management endpoints (permission-gated)."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_admin.core.context import SessionContext
from rbac_admin.core.database import get_db
from rbac_admin.core.deps import require_permissions
from rbac_admin.core.rbac import permission_for
from rbac_admin.models.permission import PermissionType
from rbac_admin.schemas.base import ApiResponse, PaginatedResponse
from rbac_admin.schemas.permission import (
    PermissionCreateRequest,
    PermissionFilters,
    PermissionResponse,
    PermissionUpdateRequest,
)
from rbac_admin.services.permission import permission_service

router = APIRouter()

PERMISSION_READ = permission_for("permission", "read")
PERMISSION_WRITE = permission_for("permission", "write")


@router.get("/", response_model=ApiResponse[PaginatedResponse[PermissionResponse]])
async def list_permissions(
    search: Optional[str] = Query(default=None),
    type: Optional[PermissionType] = Query(default=None),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    context: SessionContext = Depends(require_permissions([PERMISSION_READ])),
    db: AsyncSession = Depends(get_db),
):
    filters = PermissionFilters(search=search, type=type, skip=skip, limit=limit)
    items, total = await permission_service.list_permissions(db, filters)
    return ApiResponse.ok(PaginatedResponse.create(items=items, total=total, skip=skip, limit=limit))


@router.get("/{permission_id}", response_model=ApiResponse[PermissionResponse])
async def get_permission(
    permission_id: UUID,
    context: SessionContext = Depends(require_permissions([PERMISSION_READ])),
    db: AsyncSession = Depends(get_db),
):
    return ApiResponse.ok(await permission_service.get_permission(db, permission_id))


@router.post("/", response_model=ApiResponse[PermissionResponse], status_code=status.HTTP_201_CREATED)
async def create_permission(
    payload: PermissionCreateRequest,
    context: SessionContext = Depends(require_permissions([PERMISSION_WRITE])),
    db: AsyncSession = Depends(get_db),
):
    return ApiResponse.ok(
        await permission_service.create_permission(db, payload, context),
        message="Permission created",
    )


@router.patch("/{permission_id}", response_model=ApiResponse[PermissionResponse])
async def update_permission(
    permission_id: UUID,
    payload: PermissionUpdateRequest,
    context: SessionContext = Depends(require_permissions([PERMISSION_WRITE])),
    db: AsyncSession = Depends(get_db),
):
    """Update name, type or description; the key itself never changes."""
    return ApiResponse.ok(await permission_service.update_permission(db, permission_id, payload, context))


@router.delete("/{permission_id}", response_model=ApiResponse[None])
async def delete_permission(
    permission_id: UUID,
    context: SessionContext = Depends(require_permissions([PERMISSION_WRITE])),
    db: AsyncSession = Depends(get_db),
):
    await permission_service.delete_permission(db, permission_id, context)
    return ApiResponse.ok(message="Permission deleted")
