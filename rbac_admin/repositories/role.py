"""
Role Repository
"""

from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_admin.models.assignment import UserRole
from rbac_admin.models.base import utcnow
from rbac_admin.models.role import Role
from rbac_admin.repositories.base import CRUDBase
from rbac_admin.schemas.role import RoleCreateRequest, RoleUpdateRequest


def live_assignment():
    """Predicate for a UserRole row that currently grants its role"""
    now = utcnow()
    return (UserRole.is_active.is_(True)) & (
        UserRole.expires_at.is_(None) | (UserRole.expires_at > now)
    )


class RoleRepository(CRUDBase[Role, RoleCreateRequest, RoleUpdateRequest]):
    async def get_by_key(self, db: AsyncSession, role_key: str, include_deleted: bool = False) -> Optional[Role]:
        query = select(Role).where(Role.role_key == role_key)
        if not include_deleted:
            query = query.where(Role.active())
        return (await db.execute(query)).scalar_one_or_none()

    async def get_by_keys(self, db: AsyncSession, role_keys: Iterable[str]) -> list[Role]:
        keys = list(role_keys)
        if not keys:
            return []
        result = await db.execute(select(Role).where(Role.role_key.in_(keys), Role.active()))
        return list(result.scalars().all())

    async def get_defaults(self, db: AsyncSession) -> list[Role]:
        """Active roles granted to every self-registered user"""
        query = (
            select(Role)
            .where(Role.is_default.is_(True), Role.is_active.is_(True), Role.active())
            .order_by(Role.sort_order.asc(), Role.role_key.asc())
        )
        return list((await db.execute(query)).scalars().all())

    async def count_active_assignments(self, db: AsyncSession, role_id) -> int:
        query = select(func.count(UserRole.id)).where(UserRole.role_id == role_id, live_assignment())
        return (await db.execute(query)).scalar() or 0


role_repository = RoleRepository(Role)
