"""Authorization gate endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_admin.core.context import SessionContext
from rbac_admin.core.database import get_db
from rbac_admin.core.deps import get_session_context
from rbac_admin.core.exceptions import PermissionDeniedError
from rbac_admin.core.permission_resolver import permission_resolver
from rbac_admin.core.rbac import permission_for
from rbac_admin.schemas.auth import PermissionCheckRequest, PermissionCheckResponse
from rbac_admin.schemas.base import ApiResponse

router = APIRouter()

USER_READ = permission_for("user", "read")


@router.post("", response_model=ApiResponse[PermissionCheckResponse])
async def check_permission(
    payload: PermissionCheckRequest,
    context: SessionContext = Depends(get_session_context),
    db: AsyncSession = Depends(get_db),
):
    """
    True iff the key is literally in the user's resolved permission set.

    Any caller may check itself; checking someone else needs user read access.
    """
    if payload.user_id != context.user_id:
        if not await permission_resolver.check_permission(db, context.user_id, USER_READ):
            raise PermissionDeniedError(f"Permission required: {USER_READ}")

    allowed = await permission_resolver.check_permission(db, payload.user_id, payload.permission_key)
    return ApiResponse.ok(PermissionCheckResponse(
        user_id=payload.user_id,
        permission_key=payload.permission_key,
        allowed=allowed,
    ))
