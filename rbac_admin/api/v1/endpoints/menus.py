"""Menu tree administration endpoints (permission-gated)."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_admin.core.context import SessionContext
from rbac_admin.core.database import get_db
from rbac_admin.core.deps import require_permissions
from rbac_admin.core.rbac import permission_for
from rbac_admin.schemas.base import ApiResponse
from rbac_admin.schemas.menu import (
    MenuCreateRequest,
    MenuResponse,
    MenuSortRequest,
    MenuStats,
    MenuTreeNode,
    MenuUpdateRequest,
)
from rbac_admin.services.menu import menu_service

router = APIRouter()

MENU_READ = permission_for("menu", "read")
MENU_WRITE = permission_for("menu", "write")


@router.get("/tree", response_model=ApiResponse[list[MenuTreeNode]])
async def get_menu_tree(
    context: SessionContext = Depends(require_permissions([MENU_READ])),
    db: AsyncSession = Depends(get_db),
):
    """Full tree including hidden and disabled menus."""
    nodes = await menu_service.get_tree(db)
    return ApiResponse.ok([MenuTreeNode.model_validate(node) for node in nodes])


@router.get("/stats", response_model=ApiResponse[MenuStats])
async def get_menu_stats(
    context: SessionContext = Depends(require_permissions([MENU_READ])),
    db: AsyncSession = Depends(get_db),
):
    return ApiResponse.ok(await menu_service.get_stats(db))


@router.get("/", response_model=ApiResponse[list[MenuResponse]])
async def list_menus(
    context: SessionContext = Depends(require_permissions([MENU_READ])),
    db: AsyncSession = Depends(get_db),
):
    return ApiResponse.ok(await menu_service.list_menus(db))


@router.put("/sort", response_model=ApiResponse[list[MenuResponse]])
async def update_menu_sort(
    payload: MenuSortRequest,
    context: SessionContext = Depends(require_permissions([MENU_WRITE])),
    db: AsyncSession = Depends(get_db),
):
    """Reorder and re-parent several menus at once."""
    return ApiResponse.ok(await menu_service.update_sort(db, payload, context))


@router.get("/{menu_id}", response_model=ApiResponse[MenuResponse])
async def get_menu(
    menu_id: UUID,
    context: SessionContext = Depends(require_permissions([MENU_READ])),
    db: AsyncSession = Depends(get_db),
):
    return ApiResponse.ok(await menu_service.get_menu(db, menu_id))


@router.post("/", response_model=ApiResponse[MenuResponse], status_code=status.HTTP_201_CREATED)
async def create_menu(
    payload: MenuCreateRequest,
    context: SessionContext = Depends(require_permissions([MENU_WRITE])),
    db: AsyncSession = Depends(get_db),
):
    return ApiResponse.ok(await menu_service.create_menu(db, payload, context), message="Menu created")


@router.patch("/{menu_id}", response_model=ApiResponse[MenuResponse])
async def update_menu(
    menu_id: UUID,
    payload: MenuUpdateRequest,
    context: SessionContext = Depends(require_permissions([MENU_WRITE])),
    db: AsyncSession = Depends(get_db),
):
    return ApiResponse.ok(await menu_service.update_menu(db, menu_id, payload, context))


@router.delete("/{menu_id}", response_model=ApiResponse[None])
async def delete_menu(
    menu_id: UUID,
    context: SessionContext = Depends(require_permissions([MENU_WRITE])),
    db: AsyncSession = Depends(get_db),
):
    await menu_service.delete_menu(db, menu_id, context)
    return ApiResponse.ok(message="Menu deleted")
