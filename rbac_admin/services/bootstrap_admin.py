"""
Bootstrap admin creation service.

Seeds the permission keys the admin API is gated on, a protected admin role
holding all of them, and a first administrator. Safe to run on every start.
"""

from __future__ import annotations

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_admin.core.config import settings
from rbac_admin.core.rbac import ALL_RBAC_PERMISSIONS
from rbac_admin.core.security import get_password_hash
from rbac_admin.models.permission import Permission, PermissionType
from rbac_admin.models.role import Role
from rbac_admin.models.user import User, UserStatus
from rbac_admin.repositories.assignment import role_permission_repository, user_role_repository
from rbac_admin.repositories.permission import permission_repository
from rbac_admin.repositories.role import role_repository
from rbac_admin.repositories.user import user_repository

logger = structlog.get_logger()


def _permission_name(key: str) -> str:
    _, resource, level = key.split(":")
    return f"{resource.capitalize()} {level}"


async def _ensure_permissions(db: AsyncSession) -> list[Permission]:
    existing = {p.permission_key: p for p in await permission_repository.get_by_keys(db, ALL_RBAC_PERMISSIONS)}
    for key in ALL_RBAC_PERMISSIONS:
        if key not in existing:
            permission = Permission(permission_key=key, name=_permission_name(key), type=PermissionType.API)
            db.add(permission)
            existing[key] = permission
            logger.info("Bootstrap permission created", permission_key=key)
    await db.flush()
    return list(existing.values())


async def _ensure_admin_role(db: AsyncSession, permissions: list[Permission]) -> Role:
    role_key = settings.BOOTSTRAP_ADMIN_ROLE_KEY
    role = await role_repository.get_by_key(db, role_key)
    if role is None:
        role = Role(
            role_key=role_key,
            name="Administrator",
            description="Full access to the RBAC administration API",
            is_active=True,
            is_system=True,
        )
        db.add(role)
        await db.flush()
        logger.info("Bootstrap admin role created", role_key=role_key)

    await role_permission_repository.add(db, role.id, [p.id for p in permissions])
    return role


async def ensure_bootstrap_admin_exists(db: AsyncSession) -> None:
    permissions = await _ensure_permissions(db)
    role = await _ensure_admin_role(db, permissions)

    admin_email = settings.BOOTSTRAP_ADMIN_EMAIL.lower().strip()
    user = await user_repository.get_by_email(db, admin_email, include_deleted=True)
    if user is not None and user.is_deleted:
        # A deleted admin stays deleted; its email cannot be reused.
        logger.warning("Bootstrap admin was deleted, skipping user seeding", email=admin_email, user_id=str(user.id))
        await db.commit()
        return

    if user:
        logger.info("Bootstrap admin already exists", email=admin_email, user_id=str(user.id))
    else:
        user = User(
            email=admin_email,
            full_name=settings.BOOTSTRAP_ADMIN_FULL_NAME,
            hashed_password=get_password_hash(settings.BOOTSTRAP_ADMIN_PASSWORD),
            is_active=True,
            status=UserStatus.ACTIVE,
        )
        db.add(user)
        await db.flush()
        logger.info("Bootstrap admin created", email=admin_email, user_id=str(user.id))

    await user_role_repository.add(db, user.id, [role.id])
    await db.commit()
