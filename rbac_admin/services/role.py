"""
Role Service
Role CRUD plus the permission and menu sets each role grants.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_admin.core.context import SessionContext
from rbac_admin.core.exceptions import ConflictError, NotFoundError
from rbac_admin.core.rbac import normalize_keys
from rbac_admin.models.menu import Menu
from rbac_admin.models.permission import Permission
from rbac_admin.models.role import Role
from rbac_admin.repositories.assignment import (
    role_menu_repository,
    role_permission_repository,
    user_role_repository,
)
from rbac_admin.repositories.menu import menu_repository
from rbac_admin.repositories.permission import permission_repository
from rbac_admin.repositories.role import role_repository
from rbac_admin.schemas.role import (
    RoleCreateRequest,
    RoleFilters,
    RoleMenusRequest,
    RolePermissionsRequest,
    RoleResponse,
    RoleUpdateRequest,
)
from rbac_admin.services.audit import audit_service

logger = structlog.get_logger()


class RoleService:
    async def _get_or_404(self, db: AsyncSession, role_id: UUID) -> Role:
        role = await role_repository.get(db, id=role_id)
        if not role:
            raise NotFoundError("Role not found")
        return role

    async def _permissions_from_keys(self, db: AsyncSession, keys: list[str]) -> list[Permission]:
        """Every requested key must exist; nothing is granted otherwise"""
        keys = normalize_keys(keys)
        permissions = await permission_repository.get_by_keys(db, keys)
        missing = sorted(set(keys) - {p.permission_key for p in permissions})
        if missing:
            raise NotFoundError(
                f"Permissions not found: {', '.join(missing)}",
                details={"missing": missing},
            )
        return permissions

    async def _permission_keys(self, db: AsyncSession, role_id: UUID) -> list[str]:
        return [p.permission_key for p in await role_permission_repository.list_permissions(db, role_id)]

    async def _to_response(self, db: AsyncSession, role: Role) -> RoleResponse:
        await db.refresh(role)
        return RoleResponse.model_validate(role)

    async def list_roles(self, db: AsyncSession, filters: RoleFilters) -> tuple[list[RoleResponse], int]:
        roles, total = await role_repository.get_multi(
            db,
            skip=filters.skip,
            limit=filters.limit,
            filters={"is_active": filters.is_active},
            search=filters.search,
            search_fields=["role_key", "name"],
            order_by="sort_order",
        )
        return [RoleResponse.model_validate(role) for role in roles], total

    async def get_role(self, db: AsyncSession, role_id: UUID) -> RoleResponse:
        return RoleResponse.model_validate(await self._get_or_404(db, role_id))

    async def create_role(
        self, db: AsyncSession, data: RoleCreateRequest, actor: Optional[SessionContext] = None
    ) -> RoleResponse:
        async with audit_service.audited(db, actor, "ROLE_CREATE", "role", data.role_key) as event:
            if await role_repository.get_by_key(db, data.role_key, include_deleted=True):
                raise ConflictError(f"Role key already exists: {data.role_key}")

            role = await role_repository.create(db, obj_in=data)
            event.after = role.snapshot()

        logger.info("Role created", role_key=role.role_key, role_id=str(role.id))
        return await self._to_response(db, role)

    async def update_role(
        self, db: AsyncSession, role_id: UUID, data: RoleUpdateRequest, actor: Optional[SessionContext] = None
    ) -> RoleResponse:
        async with audit_service.audited(db, actor, "ROLE_UPDATE", "role", str(role_id)) as event:
            role = await self._get_or_404(db, role_id)
            event.target_key = role.role_key
            event.before = role.snapshot()
            await role_repository.update(db, db_obj=role, obj_in=data)
            event.after = role.snapshot()

        logger.info("Role updated", role_key=role.role_key)
        return await self._to_response(db, role)

    async def delete_role(
        self, db: AsyncSession, role_id: UUID, actor: Optional[SessionContext] = None
    ) -> None:
        """
        Soft-delete a role and drop the rows that link to it.

        System roles and roles still held by a live assignment are refused.
        """
        async with audit_service.audited(db, actor, "ROLE_DELETE", "role", str(role_id)) as event:
            role = await self._get_or_404(db, role_id)
            event.target_key = role.role_key
            event.before = role.snapshot()

            if role.is_system:
                raise ConflictError("System roles cannot be deleted")

            in_use = await role_repository.count_active_assignments(db, role.id)
            if in_use:
                raise ConflictError(
                    f"Role is assigned to {in_use} user(s) and cannot be deleted",
                    details={"active_assignments": in_use},
                )

            await role_repository.remove(db, db_obj=role)
            event.details = {
                "removed_permissions": await role_permission_repository.remove_for_role(db, role.id),
                "removed_menus": await role_menu_repository.remove_for_role(db, role.id),
                "removed_assignments": await user_role_repository.remove_inactive_for_role(db, role.id),
            }

        logger.info("Role deleted", role_key=role.role_key, **event.details)

    async def get_role_permissions(self, db: AsyncSession, role_id: UUID) -> list[Permission]:
        await self._get_or_404(db, role_id)
        return await role_permission_repository.list_permissions(db, role_id)

    async def assign_permissions(
        self, db: AsyncSession, role_id: UUID, data: RolePermissionsRequest, actor: Optional[SessionContext] = None
    ) -> list[Permission]:
        """Additive grant"""
        async with audit_service.audited(db, actor, "ROLE_PERMISSION_ASSIGN", "role_permission", str(role_id)) as event:
            role = await self._get_or_404(db, role_id)
            event.target_key = role.role_key
            permissions = await self._permissions_from_keys(db, data.permission_keys)
            event.before = {"permissions": await self._permission_keys(db, role.id)}
            added = await role_permission_repository.add(db, role.id, [p.id for p in permissions])
            event.after = {"permissions": await self._permission_keys(db, role.id)}
            event.details = {"added": added}

        logger.info("Role permissions assigned", role_key=role.role_key, added=added)
        return await role_permission_repository.list_permissions(db, role_id)

    async def unassign_permissions(
        self, db: AsyncSession, role_id: UUID, data: RolePermissionsRequest, actor: Optional[SessionContext] = None
    ) -> list[Permission]:
        async with audit_service.audited(db, actor, "ROLE_PERMISSION_UNASSIGN", "role_permission", str(role_id)) as event:
            role = await self._get_or_404(db, role_id)
            event.target_key = role.role_key
            permissions = await self._permissions_from_keys(db, data.permission_keys)
            event.before = {"permissions": await self._permission_keys(db, role.id)}
            removed = await role_permission_repository.remove(db, role.id, [p.id for p in permissions])
            event.after = {"permissions": await self._permission_keys(db, role.id)}
            event.details = {"removed": removed}

        logger.info("Role permissions unassigned", role_key=role.role_key, removed=removed)
        return await role_permission_repository.list_permissions(db, role_id)

    async def replace_permissions(
        self, db: AsyncSession, role_id: UUID, data: RolePermissionsRequest, actor: Optional[SessionContext] = None
    ) -> list[Permission]:
        """Atomic delete-then-insert; readers see the old or the new set"""
        async with audit_service.audited(db, actor, "ROLE_PERMISSION_REPLACE", "role_permission", str(role_id)) as event:
            role = await self._get_or_404(db, role_id)
            event.target_key = role.role_key
            permissions = await self._permissions_from_keys(db, data.permission_keys)
            event.before = {"permissions": await self._permission_keys(db, role.id)}
            await role_permission_repository.replace(db, role.id, [p.id for p in permissions])
            event.after = {"permissions": sorted(p.permission_key for p in permissions)}

        logger.info("Role permissions replaced", role_key=role.role_key, count=len(permissions))
        return await role_permission_repository.list_permissions(db, role_id)

    async def get_role_menus(self, db: AsyncSession, role_id: UUID) -> list[Menu]:
        await self._get_or_404(db, role_id)
        return await role_menu_repository.list_menus(db, role_id)

    async def replace_menus(
        self, db: AsyncSession, role_id: UUID, data: RoleMenusRequest, actor: Optional[SessionContext] = None
    ) -> list[Menu]:
        async with audit_service.audited(db, actor, "ROLE_MENU_REPLACE", "role_menu", str(role_id)) as event:
            role = await self._get_or_404(db, role_id)
            event.target_key = role.role_key

            menu_ids = list(dict.fromkeys(data.menu_ids))
            menus = await menu_repository.get_many(db, menu_ids)
            missing = sorted(str(mid) for mid in set(menu_ids) - {menu.id for menu in menus})
            if missing:
                raise NotFoundError("Menus not found", details={"missing": missing})

            event.before = {"menus": [str(m.id) for m in await role_menu_repository.list_menus(db, role.id)]}
            await role_menu_repository.replace(db, role.id, menu_ids)
            event.after = {"menus": [str(mid) for mid in menu_ids]}

        logger.info("Role menus replaced", role_key=role.role_key, count=len(menu_ids))
        return await role_menu_repository.list_menus(db, role_id)


role_service = RoleService()
