"""User management endpoints (permission-gated)."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_admin.core.context import SessionContext
from rbac_admin.core.database import get_db
from rbac_admin.core.deps import require_permissions
from rbac_admin.core.permission_resolver import permission_resolver
from rbac_admin.core.rbac import permission_for
from rbac_admin.models.user import UserStatus
from rbac_admin.schemas.auth import UserProfile
from rbac_admin.schemas.base import ApiResponse, PaginatedResponse, SortOrder
from rbac_admin.schemas.role import RoleResponse
from rbac_admin.schemas.user_management import (
    UserBatchRolesRequest,
    UserCreateRequest,
    UserDetail,
    UserFilters,
    UserListItem,
    UserPasswordResetRequest,
    UserRolesRequest,
    UserStatusUpdateRequest,
    UserUpdateRequest,
)
from rbac_admin.services.user import user_service

logger = structlog.get_logger()
router = APIRouter()

USER_READ = permission_for("user", "read")
USER_WRITE = permission_for("user", "write")


@router.get("/", response_model=ApiResponse[PaginatedResponse[UserListItem]])
async def list_users(
    search: Optional[str] = Query(default=None),
    status_filter: Optional[UserStatus] = Query(default=None, alias="status"),
    is_active: Optional[bool] = Query(default=None),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    sort_by: str = Query(default="created_at"),
    sort_order: SortOrder = Query(default=SortOrder.DESC),
    context: SessionContext = Depends(require_permissions([USER_READ])),
    db: AsyncSession = Depends(get_db),
):
    """List users with pagination and filters."""
    filters = UserFilters(
        search=search,
        status=status_filter,
        is_active=is_active,
        skip=skip,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    items, total = await user_service.list_users(db, filters)
    return ApiResponse.ok(PaginatedResponse.create(items=items, total=total, skip=skip, limit=limit))


@router.post("/batch-roles", response_model=ApiResponse[dict[str, list[RoleResponse]]])
async def get_batch_user_roles(
    payload: UserBatchRolesRequest,
    context: SessionContext = Depends(require_permissions([USER_READ])),
    db: AsyncSession = Depends(get_db),
):
    """Live roles of several users at once, keyed by user id."""
    roles_by_user = await user_service.get_batch_user_roles(db, payload.user_ids)
    return ApiResponse.ok({
        str(user_id): [RoleResponse.model_validate(role) for role in roles]
        for user_id, roles in roles_by_user.items()
    })


@router.get("/{user_id}", response_model=ApiResponse[UserDetail])
async def get_user(
    user_id: UUID,
    context: SessionContext = Depends(require_permissions([USER_READ])),
    db: AsyncSession = Depends(get_db),
):
    return ApiResponse.ok(await user_service.get_user(db, user_id))


@router.post("/", response_model=ApiResponse[UserDetail], status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreateRequest,
    context: SessionContext = Depends(require_permissions([USER_WRITE])),
    db: AsyncSession = Depends(get_db),
):
    return ApiResponse.ok(await user_service.create_user(db, user_data, context), message="User created")


@router.patch("/{user_id}", response_model=ApiResponse[UserDetail])
async def update_user(
    user_id: UUID,
    user_data: UserUpdateRequest,
    context: SessionContext = Depends(require_permissions([USER_WRITE])),
    db: AsyncSession = Depends(get_db),
):
    """Update a user (email immutable)."""
    return ApiResponse.ok(await user_service.update_user(db, user_id, user_data, context))


@router.patch("/{user_id}/status", response_model=ApiResponse[UserDetail])
async def update_user_status(
    user_id: UUID,
    payload: UserStatusUpdateRequest,
    context: SessionContext = Depends(require_permissions([USER_WRITE])),
    db: AsyncSession = Depends(get_db),
):
    return ApiResponse.ok(await user_service.update_status(db, user_id, payload.status, context))


@router.post("/{user_id}/reset-password", response_model=ApiResponse[None])
async def reset_user_password(
    user_id: UUID,
    payload: UserPasswordResetRequest,
    context: SessionContext = Depends(require_permissions([USER_WRITE])),
    db: AsyncSession = Depends(get_db),
):
    """Set a new password and revoke the user's open sessions."""
    await user_service.reset_password(db, user_id, payload.new_password, context)
    return ApiResponse.ok(message="Password reset")


@router.delete("/{user_id}", response_model=ApiResponse[None])
async def delete_user(
    user_id: UUID,
    context: SessionContext = Depends(require_permissions([USER_WRITE])),
    db: AsyncSession = Depends(get_db),
):
    await user_service.delete_user(db, user_id, context)
    return ApiResponse.ok(message="User deleted")


@router.get("/{user_id}/roles", response_model=ApiResponse[list[RoleResponse]])
async def get_user_roles(
    user_id: UUID,
    context: SessionContext = Depends(require_permissions([USER_READ])),
    db: AsyncSession = Depends(get_db),
):
    roles = await user_service.get_user_roles(db, user_id)
    return ApiResponse.ok([RoleResponse.model_validate(role) for role in roles])


@router.post("/{user_id}/roles", response_model=ApiResponse[list[RoleResponse]])
async def assign_user_roles(
    user_id: UUID,
    payload: UserRolesRequest,
    context: SessionContext = Depends(require_permissions([USER_WRITE])),
    db: AsyncSession = Depends(get_db),
):
    """Grant roles in addition to those already held."""
    roles = await user_service.assign_roles(db, user_id, payload, context)
    return ApiResponse.ok([RoleResponse.model_validate(role) for role in roles])


@router.put("/{user_id}/roles", response_model=ApiResponse[list[RoleResponse]])
async def replace_user_roles(
    user_id: UUID,
    payload: UserRolesRequest,
    context: SessionContext = Depends(require_permissions([USER_WRITE])),
    db: AsyncSession = Depends(get_db),
):
    roles = await user_service.replace_roles(db, user_id, payload, context)
    return ApiResponse.ok([RoleResponse.model_validate(role) for role in roles])


@router.post("/{user_id}/roles/remove", response_model=ApiResponse[list[RoleResponse]])
async def unassign_user_roles(
    user_id: UUID,
    payload: UserRolesRequest,
    context: SessionContext = Depends(require_permissions([USER_WRITE])),
    db: AsyncSession = Depends(get_db),
):
    roles = await user_service.unassign_roles(db, user_id, payload, context)
    return ApiResponse.ok([RoleResponse.model_validate(role) for role in roles])


@router.get("/{user_id}/permissions", response_model=ApiResponse[UserProfile])
async def get_user_permissions(
    user_id: UUID,
    context: SessionContext = Depends(require_permissions([USER_READ])),
    db: AsyncSession = Depends(get_db),
):
    """Effective roles and permissions of any user."""
    user = await user_service.get_user(db, user_id)
    resolved = await permission_resolver.resolve_permissions(db, user_id)
    return ApiResponse.ok(UserProfile(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        status=user.status,
        roles=sorted(resolved.roles),
        permissions=sorted(resolved.permissions),
        last_login_at=user.last_login_at,
    ))
