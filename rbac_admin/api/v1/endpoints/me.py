"""Current-user endpoints: profile, visible menus and access checks."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_admin.core.context import SessionContext
from rbac_admin.core.database import get_db
from rbac_admin.core.deps import get_session_context
from rbac_admin.schemas.auth import (
    CurrentUserMenus,
    MenuAccessCheckRequest,
    MenuAccessCheckResponse,
    UserProfile,
)
from rbac_admin.schemas.base import ApiResponse
from rbac_admin.schemas.menu import MenuTreeNode
from rbac_admin.services.menu import menu_service
from rbac_admin.services.user import user_service

router = APIRouter()


@router.get("", response_model=ApiResponse[UserProfile])
async def read_me(
    context: SessionContext = Depends(get_session_context),
    db: AsyncSession = Depends(get_db),
):
    return ApiResponse.ok(await user_service.get_profile(db, context))


@router.get("/menus", response_model=ApiResponse[CurrentUserMenus])
async def read_my_menus(
    context: SessionContext = Depends(get_session_context),
    db: AsyncSession = Depends(get_db),
):
    """Menu forest resolved from the caller's active roles."""
    nodes = await menu_service.get_user_menus(db, context)
    return ApiResponse.ok(CurrentUserMenus(menus=[MenuTreeNode.model_validate(n) for n in nodes]))


@router.post("/menus/check", response_model=ApiResponse[MenuAccessCheckResponse])
async def check_my_menu_access(
    payload: MenuAccessCheckRequest,
    context: SessionContext = Depends(get_session_context),
    db: AsyncSession = Depends(get_db),
):
    return ApiResponse.ok(await menu_service.check_menu_access(db, context, payload))
