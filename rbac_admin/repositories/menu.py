"""
Menu Repository
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_admin.models.menu import Menu
from rbac_admin.repositories.base import CRUDBase
from rbac_admin.schemas.menu import MenuCreateRequest, MenuUpdateRequest


class MenuRepository(CRUDBase[Menu, MenuCreateRequest, MenuUpdateRequest]):
    async def list_all(self, db: AsyncSession) -> list[Menu]:
        """Every non-deleted menu, in sibling order"""
        query = select(Menu).where(Menu.active()).order_by(Menu.sort_order.asc(), Menu.name.asc())
        return list((await db.execute(query)).scalars().all())

    async def parent_index(self, db: AsyncSession) -> dict[UUID, Optional[UUID]]:
        """``{menu_id: parent_id}`` for every non-deleted menu, in one query"""
        result = await db.execute(select(Menu.id, Menu.parent_id).where(Menu.active()))
        return {menu_id: parent_id for menu_id, parent_id in result.all()}

    async def count_children(self, db: AsyncSession, menu_id: UUID) -> int:
        query = select(func.count(Menu.id)).where(Menu.parent_id == menu_id, Menu.active())
        return (await db.execute(query)).scalar() or 0

    async def stats(self, db: AsyncSession) -> dict[str, int]:
        query = select(
            func.count(Menu.id),
            func.coalesce(func.sum(case((Menu.is_visible.is_(True), 1), else_=0)), 0),
            func.coalesce(func.sum(case((Menu.is_enabled.is_(True), 1), else_=0)), 0),
        ).where(Menu.active())
        total, visible, enabled = (await db.execute(query)).one()
        return {
            "total": int(total),
            "visible": int(visible),
            "hidden": int(total) - int(visible),
            "enabled": int(enabled),
            "disabled": int(total) - int(enabled),
        }


menu_repository = MenuRepository(Menu)
