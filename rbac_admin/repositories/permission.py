"""
Permission Repository
"""

from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_admin.models.permission import Permission
from rbac_admin.repositories.base import CRUDBase
from rbac_admin.schemas.permission import PermissionCreateRequest, PermissionUpdateRequest


class PermissionRepository(CRUDBase[Permission, PermissionCreateRequest, PermissionUpdateRequest]):
    async def get_by_key(self, db: AsyncSession, permission_key: str) -> Optional[Permission]:
        result = await db.execute(select(Permission).where(Permission.permission_key == permission_key))
        return result.scalar_one_or_none()

    async def get_by_keys(self, db: AsyncSession, permission_keys: Iterable[str]) -> list[Permission]:
        keys = list(permission_keys)
        if not keys:
            return []
        result = await db.execute(select(Permission).where(Permission.permission_key.in_(keys)))
        return list(result.scalars().all())


permission_repository = PermissionRepository(Permission)
