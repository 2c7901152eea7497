"""
Authentication Endpoints
Login, token refresh and logout backed by server-side sessions
"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from rbac_admin.core.context import SessionContext
from rbac_admin.core.database import get_db
from rbac_admin.core.deps import client_ip, get_session_context
from rbac_admin.schemas.auth import (
    LoginRequest,
    LoginResponse,
    RefreshTokenRequest,
    RegisterRequest,
    TokenResponse,
)
from rbac_admin.schemas.base import ApiResponse
from rbac_admin.services.session import session_manager
from rbac_admin.services.user import user_service

logger = structlog.get_logger()
router = APIRouter()


@router.post("/login", response_model=ApiResponse[LoginResponse])
async def login(
    credentials: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """
    Authenticate with email and password

    Opens a server-side session and returns an access/refresh token pair
    bound to it, together with the caller's resolved roles and permissions.
    """
    issued = await session_manager.login(
        db,
        credentials.email,
        credentials.password,
        user_agent=request.headers.get("user-agent"),
        ip_address=client_ip(request),
    )
    profile = await user_service.get_profile(db, issued.context)
    return ApiResponse.ok(LoginResponse(user=profile, tokens=issued.tokens), message="Login successful")


@router.post("/register", response_model=ApiResponse[LoginResponse], status_code=status.HTTP_201_CREATED)
async def register(
    register_data: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """
    Public sign-up

    Creates an active account holding the default roles, then logs it in.
    Disabled with REGISTRATION_ENABLED=false.
    """
    ip_address = client_ip(request)
    await user_service.register(db, register_data, ip_address=ip_address)
    issued = await session_manager.login(
        db,
        register_data.email,
        register_data.password,
        user_agent=request.headers.get("user-agent"),
        ip_address=ip_address,
    )
    profile = await user_service.get_profile(db, issued.context)
    return ApiResponse.ok(LoginResponse(user=profile, tokens=issued.tokens), message="Registration successful")


@router.post("/refresh", response_model=ApiResponse[TokenResponse])
async def refresh_token(
    payload: RefreshTokenRequest,
    db: AsyncSession = Depends(get_db)
):
    """Rotate the token pair of a live session"""
    tokens = await session_manager.refresh(db, payload.refresh_token)
    return ApiResponse.ok(tokens)


@router.post("/logout", response_model=ApiResponse[None])
async def logout(
    context: SessionContext = Depends(get_session_context),
    db: AsyncSession = Depends(get_db)
):
    """Revoke the current session; its tokens stop working immediately"""
    await session_manager.revoke(db, context)
    return ApiResponse.ok(message="Logout successful")
