"""
Permission resolver seam.

The database-backed resolver is the only implementation. Every call
re-queries the store; nothing is cached between checks.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Optional
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_admin.core.rbac import ResolvedPermissions, build_menu_forest, union_role_grants
from rbac_admin.models.assignment import UserRole
from rbac_admin.models.role import Role
from rbac_admin.models.user import User
from rbac_admin.repositories.assignment import role_menu_repository, role_permission_repository
from rbac_admin.repositories.role import live_assignment

logger = structlog.get_logger()


class PermissionResolver(ABC):
    @abstractmethod
    async def resolve_permissions(self, db: AsyncSession, user_id: UUID) -> ResolvedPermissions:
        raise NotImplementedError

    async def check_permission(self, db: AsyncSession, user_id: UUID, permission_key: str) -> bool:
        resolved = await self.resolve_permissions(db, user_id)
        return resolved.has_permission(permission_key)

    async def check_all(self, db: AsyncSession, user_id: UUID, permission_keys: Iterable[str]) -> bool:
        resolved = await self.resolve_permissions(db, user_id)
        return resolved.has_all(permission_keys)


class DBPermissionResolver(PermissionResolver):
    async def _load_user(self, db: AsyncSession, user_id: UUID) -> Optional[User]:
        result = await db.execute(select(User).where(User.id == user_id, User.active()))
        return result.scalar_one_or_none()

    async def _active_roles(self, db: AsyncSession, user_id: UUID) -> list[Role]:
        query = (
            select(Role)
            .join(UserRole, UserRole.role_id == Role.id)
            .where(
                UserRole.user_id == user_id,
                live_assignment(),
                Role.is_active.is_(True),
                Role.active(),
            )
        )
        return list((await db.execute(query)).scalars().unique().all())

    async def resolve_permissions(self, db: AsyncSession, user_id: UUID) -> ResolvedPermissions:
        """
        Effective roles, permissions and menu tree of a user.

        Unknown, soft-deleted or disabled users, and users without a live
        role assignment, resolve to the empty set.
        """
        user = await self._load_user(db, user_id)
        if user is None or not user.can_authenticate:
            logger.debug("Resolving for unavailable user", user_id=str(user_id))
            return ResolvedPermissions.empty()

        roles = await self._active_roles(db, user.id)
        if not roles:
            return ResolvedPermissions.empty()

        role_ids = [role.id for role in roles]
        grants = await role_permission_repository.keys_by_role(db, role_ids)
        menus = await role_menu_repository.menus_for_roles(db, role_ids, visible_only=True)

        resolved = ResolvedPermissions(
            roles=frozenset(role.role_key for role in roles),
            permissions=union_role_grants(grants),
            menus=tuple(build_menu_forest(menus, visible_only=True)),
        )
        logger.debug(
            "Permissions resolved",
            user_id=str(user_id),
            roles=sorted(resolved.roles),
            permission_count=len(resolved.permissions),
        )
        return resolved


permission_resolver = DBPermissionResolver()
