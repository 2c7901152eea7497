"""
Audit Repositories
Append and read-only access to AuditLog and MenuLog.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_admin.models.audit_log import AuditLog, MenuLog


class AuditLogRepository:
    async def append(self, db: AsyncSession, **values) -> AuditLog:
        entry = AuditLog(**values)
        db.add(entry)
        await db.flush()
        return entry

    async def filter_logs(
        self,
        db: AsyncSession,
        *,
        actor_id: Optional[str] = None,
        action: Optional[str] = None,
        target_type: Optional[str] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[AuditLog], int]:
        query = select(AuditLog)
        if actor_id:
            query = query.where(AuditLog.actor_id == actor_id)
        if action:
            query = query.where(AuditLog.action == action)
        if target_type:
            query = query.where(AuditLog.target_type == target_type)
        if status:
            query = query.where(AuditLog.status == status)

        total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
        query = query.order_by(AuditLog.created_at.desc()).offset(skip).limit(limit)
        return list((await db.execute(query)).scalars().all()), total


class MenuLogRepository:
    async def append(self, db: AsyncSession, **values) -> MenuLog:
        entry = MenuLog(**values)
        db.add(entry)
        await db.flush()
        return entry

    async def filter_logs(
        self,
        db: AsyncSession,
        *,
        menu_id: Optional[UUID] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[MenuLog], int]:
        query = select(MenuLog)
        if menu_id:
            query = query.where(MenuLog.menu_id == menu_id)

        total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
        query = query.order_by(MenuLog.created_at.desc()).offset(skip).limit(limit)
        return list((await db.execute(query)).scalars().all()), total


audit_log_repository = AuditLogRepository()
menu_log_repository = MenuLogRepository()
