"""Role management endpoints (permission-gated)."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_admin.core.context import SessionContext
from rbac_admin.core.database import get_db
from rbac_admin.core.deps import require_permissions
from rbac_admin.core.rbac import permission_for
from rbac_admin.schemas.base import ApiResponse, PaginatedResponse
from rbac_admin.schemas.menu import MenuResponse
from rbac_admin.schemas.permission import PermissionResponse
from rbac_admin.schemas.role import (
    RoleCreateRequest,
    RoleFilters,
    RoleMenusRequest,
    RolePermissionsRequest,
    RoleResponse,
    RoleUpdateRequest,
)
from rbac_admin.services.role import role_service

router = APIRouter()

ROLE_READ = permission_for("role", "read")
ROLE_WRITE = permission_for("role", "write")


@router.get("/", response_model=ApiResponse[PaginatedResponse[RoleResponse]])
async def list_roles(
    search: Optional[str] = Query(default=None),
    is_active: Optional[bool] = Query(default=None),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    context: SessionContext = Depends(require_permissions([ROLE_READ])),
    db: AsyncSession = Depends(get_db),
):
    filters = RoleFilters(search=search, is_active=is_active, skip=skip, limit=limit)
    items, total = await role_service.list_roles(db, filters)
    return ApiResponse.ok(PaginatedResponse.create(items=items, total=total, skip=skip, limit=limit))


@router.get("/{role_id}", response_model=ApiResponse[RoleResponse])
async def get_role(
    role_id: UUID,
    context: SessionContext = Depends(require_permissions([ROLE_READ])),
    db: AsyncSession = Depends(get_db),
):
    return ApiResponse.ok(await role_service.get_role(db, role_id))


@router.post("/", response_model=ApiResponse[RoleResponse], status_code=status.HTTP_201_CREATED)
async def create_role(
    payload: RoleCreateRequest,
    context: SessionContext = Depends(require_permissions([ROLE_WRITE])),
    db: AsyncSession = Depends(get_db),
):
    return ApiResponse.ok(await role_service.create_role(db, payload, context), message="Role created")


@router.patch("/{role_id}", response_model=ApiResponse[RoleResponse])
async def update_role(
    role_id: UUID,
    payload: RoleUpdateRequest,
    context: SessionContext = Depends(require_permissions([ROLE_WRITE])),
    db: AsyncSession = Depends(get_db),
):
    return ApiResponse.ok(await role_service.update_role(db, role_id, payload, context))


@router.delete("/{role_id}", response_model=ApiResponse[None])
async def delete_role(
    role_id: UUID,
    context: SessionContext = Depends(require_permissions([ROLE_WRITE])),
    db: AsyncSession = Depends(get_db),
):
    """Refused for system roles and roles still assigned to a user."""
    await role_service.delete_role(db, role_id, context)
    return ApiResponse.ok(message="Role deleted")


@router.get("/{role_id}/permissions", response_model=ApiResponse[list[PermissionResponse]])
async def get_role_permissions(
    role_id: UUID,
    context: SessionContext = Depends(require_permissions([ROLE_READ])),
    db: AsyncSession = Depends(get_db),
):
    permissions = await role_service.get_role_permissions(db, role_id)
    return ApiResponse.ok([PermissionResponse.model_validate(p) for p in permissions])


@router.post("/{role_id}/permissions", response_model=ApiResponse[list[PermissionResponse]])
async def assign_role_permissions(
    role_id: UUID,
    payload: RolePermissionsRequest,
    context: SessionContext = Depends(require_permissions([ROLE_WRITE])),
    db: AsyncSession = Depends(get_db),
):
    permissions = await role_service.assign_permissions(db, role_id, payload, context)
    return ApiResponse.ok([PermissionResponse.model_validate(p) for p in permissions])


@router.put("/{role_id}/permissions", response_model=ApiResponse[list[PermissionResponse]])
async def replace_role_permissions(
    role_id: UUID,
    payload: RolePermissionsRequest,
    context: SessionContext = Depends(require_permissions([ROLE_WRITE])),
    db: AsyncSession = Depends(get_db),
):
    permissions = await role_service.replace_permissions(db, role_id, payload, context)
    return ApiResponse.ok([PermissionResponse.model_validate(p) for p in permissions])


@router.post("/{role_id}/permissions/remove", response_model=ApiResponse[list[PermissionResponse]])
async def unassign_role_permissions(
    role_id: UUID,
    payload: RolePermissionsRequest,
    context: SessionContext = Depends(require_permissions([ROLE_WRITE])),
    db: AsyncSession = Depends(get_db),
):
    permissions = await role_service.unassign_permissions(db, role_id, payload, context)
    return ApiResponse.ok([PermissionResponse.model_validate(p) for p in permissions])


@router.get("/{role_id}/menus", response_model=ApiResponse[list[MenuResponse]])
async def get_role_menus(
    role_id: UUID,
    context: SessionContext = Depends(require_permissions([ROLE_READ])),
    db: AsyncSession = Depends(get_db),
):
    menus = await role_service.get_role_menus(db, role_id)
    return ApiResponse.ok([MenuResponse.model_validate(m) for m in menus])


@router.put("/{role_id}/menus", response_model=ApiResponse[list[MenuResponse]])
async def replace_role_menus(
    role_id: UUID,
    payload: RoleMenusRequest,
    context: SessionContext = Depends(require_permissions([ROLE_WRITE])),
    db: AsyncSession = Depends(get_db),
):
    menus = await role_service.replace_menus(db, role_id, payload, context)
    return ApiResponse.ok([MenuResponse.model_validate(m) for m in menus])
