"""
Association Repositories
Bulk reads and delete-then-insert writes for the join tables.
"""

from __future__ import annotations

from typing import Iterable
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_admin.models.assignment import RoleMenu, RolePermission, UserRole
from rbac_admin.models.menu import Menu
from rbac_admin.models.permission import Permission
from rbac_admin.models.role import Role
from rbac_admin.repositories.role import live_assignment


class UserRoleRepository:
    async def list_roles_for_user(self, db: AsyncSession, user_id: UUID, live_only: bool = True) -> list[Role]:
        query = (
            select(Role)
            .join(UserRole, UserRole.role_id == Role.id)
            .where(UserRole.user_id == user_id, Role.active())
            .order_by(Role.sort_order.asc(), Role.role_key.asc())
        )
        if live_only:
            query = query.where(live_assignment(), Role.is_active.is_(True))
        return list((await db.execute(query)).scalars().all())

    async def roles_by_user(self, db: AsyncSession, user_ids: Iterable[UUID]) -> dict[UUID, list[Role]]:
        """Live roles of every given user, fetched in one query"""
        ids = list(dict.fromkeys(user_ids))
        roles: dict[UUID, list[Role]] = {user_id: [] for user_id in ids}
        if not ids:
            return roles
        query = (
            select(UserRole.user_id, Role)
            .join(Role, Role.id == UserRole.role_id)
            .where(
                UserRole.user_id.in_(ids),
                live_assignment(),
                Role.is_active.is_(True),
                Role.active(),
            )
            .order_by(Role.sort_order.asc(), Role.role_key.asc())
        )
        for user_id, role in (await db.execute(query)).all():
            roles[user_id].append(role)
        return roles

    async def get_pairs(self, db: AsyncSession, user_id: UUID) -> dict[UUID, UserRole]:
        result = await db.execute(select(UserRole).where(UserRole.user_id == user_id))
        return {row.role_id: row for row in result.scalars().all()}

    async def add(
        self,
        db: AsyncSession,
        user_id: UUID,
        role_ids: Iterable[UUID],
        expires_at=None,
    ) -> int:
        """Additive: existing pairs are re-activated, new pairs inserted"""
        existing = await self.get_pairs(db, user_id)
        added = 0
        for role_id in dict.fromkeys(role_ids):
            row = existing.get(role_id)
            if row is None:
                db.add(UserRole(user_id=user_id, role_id=role_id, is_active=True, expires_at=expires_at))
                added += 1
            else:
                if not row.is_active:
                    added += 1
                row.is_active = True
                row.expires_at = expires_at
        await db.flush()
        return added

    async def remove(self, db: AsyncSession, user_id: UUID, role_ids: Iterable[UUID]) -> int:
        ids = list(role_ids)
        if not ids:
            return 0
        result = await db.execute(
            delete(UserRole).where(UserRole.user_id == user_id, UserRole.role_id.in_(ids))
        )
        return result.rowcount or 0

    async def replace(self, db: AsyncSession, user_id: UUID, role_ids: Iterable[UUID], expires_at=None) -> None:
        await db.execute(delete(UserRole).where(UserRole.user_id == user_id))
        db.add_all(
            UserRole(user_id=user_id, role_id=role_id, is_active=True, expires_at=expires_at)
            for role_id in dict.fromkeys(role_ids)
        )
        await db.flush()

    async def remove_inactive_for_role(self, db: AsyncSession, role_id: UUID) -> int:
        result = await db.execute(
            delete(UserRole)
            .where(UserRole.role_id == role_id, ~live_assignment())
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0


class RolePermissionRepository:
    async def list_permissions(self, db: AsyncSession, role_id: UUID) -> list[Permission]:
        query = (
            select(Permission)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(RolePermission.role_id == role_id)
            .order_by(Permission.permission_key.asc())
        )
        return list((await db.execute(query)).scalars().all())

    async def keys_by_role(self, db: AsyncSession, role_ids: Iterable[UUID]) -> dict[UUID, set[str]]:
        """Permission keys of every given role, fetched in one query"""
        ids = list(role_ids)
        grants: dict[UUID, set[str]] = {role_id: set() for role_id in ids}
        if not ids:
            return grants
        query = (
            select(RolePermission.role_id, Permission.permission_key)
            .join(Permission, Permission.id == RolePermission.permission_id)
            .where(RolePermission.role_id.in_(ids))
        )
        for role_id, key in (await db.execute(query)).all():
            grants[role_id].add(key)
        return grants

    async def add(self, db: AsyncSession, role_id: UUID, permission_ids: Iterable[UUID]) -> int:
        existing = set(
            (await db.execute(
                select(RolePermission.permission_id).where(RolePermission.role_id == role_id)
            )).scalars().all()
        )
        new_ids = [pid for pid in dict.fromkeys(permission_ids) if pid not in existing]
        db.add_all(RolePermission(role_id=role_id, permission_id=pid) for pid in new_ids)
        await db.flush()
        return len(new_ids)

    async def remove(self, db: AsyncSession, role_id: UUID, permission_ids: Iterable[UUID]) -> int:
        ids = list(permission_ids)
        if not ids:
            return 0
        result = await db.execute(
            delete(RolePermission).where(
                RolePermission.role_id == role_id, RolePermission.permission_id.in_(ids)
            )
        )
        return result.rowcount or 0

    async def replace(self, db: AsyncSession, role_id: UUID, permission_ids: Iterable[UUID]) -> None:
        await db.execute(delete(RolePermission).where(RolePermission.role_id == role_id))
        db.add_all(
            RolePermission(role_id=role_id, permission_id=pid) for pid in dict.fromkeys(permission_ids)
        )
        await db.flush()

    async def remove_for_role(self, db: AsyncSession, role_id: UUID) -> int:
        result = await db.execute(delete(RolePermission).where(RolePermission.role_id == role_id))
        return result.rowcount or 0

    async def remove_for_permission(self, db: AsyncSession, permission_id: UUID) -> int:
        result = await db.execute(delete(RolePermission).where(RolePermission.permission_id == permission_id))
        return result.rowcount or 0


class RoleMenuRepository:
    async def list_menus(self, db: AsyncSession, role_id: UUID) -> list[Menu]:
        query = (
            select(Menu)
            .join(RoleMenu, RoleMenu.menu_id == Menu.id)
            .where(RoleMenu.role_id == role_id, Menu.active())
            .order_by(Menu.sort_order.asc(), Menu.name.asc())
        )
        return list((await db.execute(query)).scalars().all())

    async def menus_for_roles(
        self,
        db: AsyncSession,
        role_ids: Iterable[UUID],
        visible_only: bool = True,
    ) -> list[Menu]:
        """Distinct non-deleted menus linked to any of the roles"""
        ids = list(role_ids)
        if not ids:
            return []
        query = (
            select(Menu)
            .where(
                Menu.id.in_(select(RoleMenu.menu_id).where(RoleMenu.role_id.in_(ids))),
                Menu.active(),
            )
        )
        if visible_only:
            query = query.where(Menu.is_visible.is_(True), Menu.is_enabled.is_(True))
        return list((await db.execute(query)).scalars().all())

    async def replace(self, db: AsyncSession, role_id: UUID, menu_ids: Iterable[UUID]) -> None:
        await db.execute(delete(RoleMenu).where(RoleMenu.role_id == role_id))
        db.add_all(RoleMenu(role_id=role_id, menu_id=mid) for mid in dict.fromkeys(menu_ids))
        await db.flush()

    async def remove_for_role(self, db: AsyncSession, role_id: UUID) -> int:
        result = await db.execute(delete(RoleMenu).where(RoleMenu.role_id == role_id))
        return result.rowcount or 0

    async def remove_for_menu(self, db: AsyncSession, menu_id: UUID) -> int:
        result = await db.execute(delete(RoleMenu).where(RoleMenu.menu_id == menu_id))
        return result.rowcount or 0


user_role_repository = UserRoleRepository()
role_permission_repository = RolePermissionRepository()
role_menu_repository = RoleMenuRepository()
