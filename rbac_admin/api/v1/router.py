"""
API v1 Router
Main router for all API v1 endpoints
"""

from fastapi import APIRouter
from rbac_admin.api.v1.endpoints import auth, me, users, roles, permissions, menus, audit, check, health

api_router = APIRouter()

# Authentication endpoints
api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["authentication"]
)

# Current user
api_router.include_router(
    me.router,
    prefix="/me",
    tags=["me"]
)

# RBAC administration
api_router.include_router(
    users.router,
    prefix="/users",
    tags=["users"]
)

api_router.include_router(
    roles.router,
    prefix="/roles",
    tags=["roles"]
)

api_router.include_router(
    permissions.router,
    prefix="/permissions",
    tags=["permissions"]
)

api_router.include_router(
    menus.router,
    prefix="/menus",
    tags=["menus"]
)

# Audit trail
api_router.include_router(
    audit.router,
    tags=["audit"]
)

# Authorization gate
api_router.include_router(
    check.router,
    prefix="/check",
    tags=["authorization"]
)

# Health and monitoring endpoints
api_router.include_router(
    health.router,
    prefix="/health",
    tags=["health"]
)
