"""
FastAPI Dependencies
Authentication and authorization dependencies
"""

from typing import Optional
from fastapi import Depends, Request, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from rbac_admin.core.context import SessionContext
from rbac_admin.core.database import get_db
from rbac_admin.core.exceptions import AuthenticationError, PermissionDeniedError
from rbac_admin.core.logging import bind_request_context
from rbac_admin.core.permission_resolver import permission_resolver
from rbac_admin.services.session import session_manager

logger = structlog.get_logger()

# Security schemes
security = HTTPBearer(auto_error=False)


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


async def get_session_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security)
) -> SessionContext:
    """
    Resolve the bearer token to a live session

    Raises:
        AuthenticationError: If the token is missing or invalid, or its session is gone
    """
    if not credentials:
        logger.info("Missing authentication credentials")
        raise AuthenticationError("Not authenticated")

    context = await session_manager.validate(db, credentials.credentials, ip_address=client_ip(request))
    bind_request_context(user_id=str(context.user_id))
    return context


def require_permissions(required_permissions: list[str]):
    """
    Dependency factory for permission-gated routes

    Every listed key must be a literal member of the caller's resolved
    permission set.
    """
    async def permission_checker(
        db: AsyncSession = Depends(get_db),
        context: SessionContext = Depends(get_session_context)
    ) -> SessionContext:
        resolved = await permission_resolver.resolve_permissions(db, context.user_id)

        missing = [key for key in required_permissions if not resolved.has_permission(key)]
        if missing:
            logger.warning(
                "User lacks required permission",
                user_id=str(context.user_id),
                required=required_permissions,
                missing=missing,
            )
            raise PermissionDeniedError(f"Permission required: {missing[0]}")

        logger.debug("Permission check passed", user_id=str(context.user_id), permissions=required_permissions)
        return context

    return permission_checker
