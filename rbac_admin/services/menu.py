"""
Menu Service
Menu tree administration with parent-loop protection and change logs.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_admin.core.context import SessionContext
from rbac_admin.core.exceptions import ConflictError, NotFoundError, ValidationError
from rbac_admin.core.permission_resolver import permission_resolver
from rbac_admin.core.rbac import MenuNode, build_menu_forest, would_create_cycle
from rbac_admin.models.menu import Menu
from rbac_admin.repositories.assignment import role_menu_repository
from rbac_admin.repositories.menu import menu_repository
from rbac_admin.schemas.auth import MenuAccessCheckRequest, MenuAccessCheckResponse
from rbac_admin.schemas.menu import (
    MenuCreateRequest,
    MenuResponse,
    MenuSortRequest,
    MenuStats,
    MenuUpdateRequest,
)
from rbac_admin.services.audit import audit_service

logger = structlog.get_logger()


class MenuService:
    async def _get_or_404(self, db: AsyncSession, menu_id: UUID) -> Menu:
        menu = await menu_repository.get(db, id=menu_id)
        if not menu:
            raise NotFoundError("Menu not found")
        return menu

    async def _ensure_parent(self, db: AsyncSession, parent_id: Optional[UUID]) -> None:
        if parent_id is not None and await menu_repository.get(db, id=parent_id) is None:
            raise NotFoundError("Parent menu not found")

    async def _guard_reparent(
        self,
        db: AsyncSession,
        menu_id: UUID,
        parent_id: Optional[UUID],
        parent_index: Optional[dict] = None,
    ) -> dict:
        await self._ensure_parent(db, parent_id)
        if parent_index is None:
            parent_index = await menu_repository.parent_index(db)
        if would_create_cycle(menu_id, parent_id, parent_index):
            logger.warning("Menu re-parent rejected", menu_id=str(menu_id), parent_id=str(parent_id))
            raise ConflictError("A menu cannot be moved under itself or one of its descendants")
        return parent_index

    async def get_tree(self, db: AsyncSession) -> list[MenuNode]:
        """Admin view: every non-deleted menu, hidden and disabled included"""
        menus = await menu_repository.list_all(db)
        return build_menu_forest(menus, visible_only=False)

    async def list_menus(self, db: AsyncSession) -> list[MenuResponse]:
        return [MenuResponse.model_validate(menu) for menu in await menu_repository.list_all(db)]

    async def get_menu(self, db: AsyncSession, menu_id: UUID) -> MenuResponse:
        return MenuResponse.model_validate(await self._get_or_404(db, menu_id))

    async def get_stats(self, db: AsyncSession) -> MenuStats:
        return MenuStats(**await menu_repository.stats(db))

    async def create_menu(
        self, db: AsyncSession, data: MenuCreateRequest, actor: Optional[SessionContext] = None
    ) -> MenuResponse:
        async with audit_service.audited(db, actor, "MENU_CREATE", "menu", data.path or data.name) as event:
            await self._ensure_parent(db, data.parent_id)
            menu = await menu_repository.create(db, obj_in=data)
            event.after = menu.snapshot()
            await audit_service.record_menu_change(db, actor, menu.id, "CREATE", after=event.after)

        logger.info("Menu created", menu_id=str(menu.id), name=menu.name)
        await db.refresh(menu)
        return MenuResponse.model_validate(menu)

    async def update_menu(
        self, db: AsyncSession, menu_id: UUID, data: MenuUpdateRequest, actor: Optional[SessionContext] = None
    ) -> MenuResponse:
        async with audit_service.audited(db, actor, "MENU_UPDATE", "menu", str(menu_id)) as event:
            menu = await self._get_or_404(db, menu_id)
            updates = data.model_dump(exclude_unset=True)
            if "parent_id" in updates and updates["parent_id"] != menu.parent_id:
                await self._guard_reparent(db, menu.id, updates["parent_id"])

            event.before = menu.snapshot()
            await menu_repository.update(db, db_obj=menu, obj_in=updates)
            event.after = menu.snapshot()
            await audit_service.record_menu_change(db, actor, menu.id, "UPDATE", event.before, event.after)

        logger.info("Menu updated", menu_id=str(menu_id), fields=sorted(updates))
        await db.refresh(menu)
        return MenuResponse.model_validate(menu)

    async def update_sort(
        self, db: AsyncSession, data: MenuSortRequest, actor: Optional[SessionContext] = None
    ) -> list[MenuResponse]:
        """
        Apply a batch of order/parent changes in one transaction.

        Each re-parent is checked against the index as updated by the moves
        before it, so a batch cannot assemble a loop piecewise.
        """
        async with audit_service.audited(db, actor, "MENU_SORT", "menu") as event:
            parent_index = await menu_repository.parent_index(db)
            menus = {menu.id: menu for menu in await menu_repository.get_many(db, [i.id for i in data.items])}
            missing = sorted(str(item.id) for item in data.items if item.id not in menus)
            if missing:
                raise NotFoundError("Menus not found", details={"missing": missing})

            changed = []
            for item in data.items:
                menu = menus[item.id]
                before = menu.snapshot()
                if item.parent_id != menu.parent_id:
                    await self._guard_reparent(db, menu.id, item.parent_id, parent_index)
                    parent_index[menu.id] = item.parent_id
                    menu.parent_id = item.parent_id
                menu.sort_order = item.sort_order
                await audit_service.record_menu_change(db, actor, menu.id, "UPDATE", before, menu.snapshot())
                changed.append(menu)

            await db.flush()
            event.details = {"items": [
                {"id": str(m.id), "sort_order": m.sort_order, "parent_id": str(m.parent_id) if m.parent_id else None}
                for m in changed
            ]}

        logger.info("Menu order updated", count=len(changed))
        for menu in changed:
            await db.refresh(menu)
        return [MenuResponse.model_validate(menu) for menu in changed]

    async def delete_menu(
        self, db: AsyncSession, menu_id: UUID, actor: Optional[SessionContext] = None
    ) -> None:
        async with audit_service.audited(db, actor, "MENU_DELETE", "menu", str(menu_id)) as event:
            menu = await self._get_or_404(db, menu_id)
            event.target_key = menu.path or menu.name

            children = await menu_repository.count_children(db, menu.id)
            if children:
                raise ConflictError(
                    "Menu has child menus and cannot be deleted",
                    details={"children": children},
                )

            event.before = menu.snapshot()
            await menu_repository.remove(db, db_obj=menu)
            event.details = {"removed_role_links": await role_menu_repository.remove_for_menu(db, menu.id)}
            await audit_service.record_menu_change(db, actor, menu.id, "DELETE", before=event.before)

        logger.info("Menu deleted", menu_id=str(menu_id))

    async def get_user_menus(self, db: AsyncSession, context: SessionContext) -> list[MenuNode]:
        resolved = await permission_resolver.resolve_permissions(db, context.user_id)
        return list(resolved.menus)

    async def check_menu_access(
        self, db: AsyncSession, context: SessionContext, data: MenuAccessCheckRequest
    ) -> MenuAccessCheckResponse:
        if not data.path and not data.permission:
            raise ValidationError("Either path or permission is required")

        resolved = await permission_resolver.resolve_permissions(db, context.user_id)
        allowed = True
        if data.path:
            allowed = allowed and resolved.has_menu_path(data.path)
        if data.permission:
            allowed = allowed and resolved.has_permission(data.permission)
        return MenuAccessCheckResponse(allowed=allowed, path=data.path, permission=data.permission)


menu_service = MenuService()
