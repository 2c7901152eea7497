"""
Permission Service
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_admin.core.context import SessionContext
from rbac_admin.core.exceptions import ConflictError, NotFoundError
from rbac_admin.models.permission import Permission
from rbac_admin.repositories.assignment import role_permission_repository
from rbac_admin.repositories.permission import permission_repository
from rbac_admin.schemas.permission import (
    PermissionCreateRequest,
    PermissionFilters,
    PermissionResponse,
    PermissionUpdateRequest,
)
from rbac_admin.services.audit import audit_service

logger = structlog.get_logger()


class PermissionService:
    async def _get_or_404(self, db: AsyncSession, permission_id: UUID) -> Permission:
        permission = await permission_repository.get(db, id=permission_id)
        if not permission:
            raise NotFoundError("Permission not found")
        return permission

    async def list_permissions(
        self, db: AsyncSession, filters: PermissionFilters
    ) -> tuple[list[PermissionResponse], int]:
        permissions, total = await permission_repository.get_multi(
            db,
            skip=filters.skip,
            limit=filters.limit,
            filters={"type": filters.type},
            search=filters.search,
            search_fields=["permission_key", "name"],
            order_by="permission_key",
        )
        return [PermissionResponse.model_validate(p) for p in permissions], total

    async def get_permission(self, db: AsyncSession, permission_id: UUID) -> PermissionResponse:
        return PermissionResponse.model_validate(await self._get_or_404(db, permission_id))

    async def create_permission(
        self, db: AsyncSession, data: PermissionCreateRequest, actor: Optional[SessionContext] = None
    ) -> PermissionResponse:
        async with audit_service.audited(db, actor, "PERMISSION_CREATE", "permission", data.permission_key) as event:
            if await permission_repository.get_by_key(db, data.permission_key):
                raise ConflictError(f"Permission key already exists: {data.permission_key}")

            permission = await permission_repository.create(db, obj_in=data)
            event.after = permission.snapshot()

        logger.info("Permission created", permission_key=permission.permission_key)
        await db.refresh(permission)
        return PermissionResponse.model_validate(permission)

    async def update_permission(
        self,
        db: AsyncSession,
        permission_id: UUID,
        data: PermissionUpdateRequest,
        actor: Optional[SessionContext] = None,
    ) -> PermissionResponse:
        async with audit_service.audited(db, actor, "PERMISSION_UPDATE", "permission", str(permission_id)) as event:
            permission = await self._get_or_404(db, permission_id)
            event.target_key = permission.permission_key
            event.before = permission.snapshot()
            await permission_repository.update(db, db_obj=permission, obj_in=data)
            event.after = permission.snapshot()

        logger.info("Permission updated", permission_key=permission.permission_key)
        await db.refresh(permission)
        return PermissionResponse.model_validate(permission)

    async def delete_permission(
        self, db: AsyncSession, permission_id: UUID, actor: Optional[SessionContext] = None
    ) -> None:
        """Hard delete; the role links go in the same transaction"""
        async with audit_service.audited(db, actor, "PERMISSION_DELETE", "permission", str(permission_id)) as event:
            permission = await self._get_or_404(db, permission_id)
            event.target_key = permission.permission_key
            event.before = permission.snapshot()

            removed = await role_permission_repository.remove_for_permission(db, permission.id)
            await permission_repository.remove(db, db_obj=permission)
            event.details = {"removed_role_links": removed}

        logger.info("Permission deleted", permission_key=event.target_key, removed_role_links=removed)


permission_service = PermissionService()
