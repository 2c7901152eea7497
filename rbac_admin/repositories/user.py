"""
User Repository
Database operations for user management.
"""

from __future__ import annotations

from typing import Optional

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_admin.models.user import User, UserStatus
from rbac_admin.repositories.base import CRUDBase
from rbac_admin.schemas.user_management import UserCreateRequest, UserUpdateRequest

logger = structlog.get_logger()

SORTABLE_FIELDS = {"created_at", "email", "full_name", "last_login_at", "status"}


class UserRepository(CRUDBase[User, UserCreateRequest, UserUpdateRequest]):
    async def get_by_email(self, db: AsyncSession, email: str, include_deleted: bool = False) -> Optional[User]:
        query = select(User).where(User.email == email.lower().strip())
        if not include_deleted:
            query = query.where(User.active())

        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def filter_users(
        self,
        db: AsyncSession,
        *,
        search: Optional[str],
        status: Optional[UserStatus],
        is_active: Optional[bool],
        skip: int,
        limit: int,
        sort_by: str,
        sort_order: str,
    ) -> tuple[list[User], int]:
        query = select(User).where(User.active())

        if search:
            like = f"%{search.strip()}%"
            query = query.where(or_(User.email.ilike(like), User.full_name.ilike(like)))

        if status is not None:
            query = query.where(User.status == status)

        if is_active is not None:
            query = query.where(User.is_active == is_active)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await db.execute(count_query)).scalar() or 0

        sort_column = getattr(User, sort_by) if sort_by in SORTABLE_FIELDS else User.created_at
        if sort_order.lower() == "asc":
            query = query.order_by(sort_column.asc())
        else:
            query = query.order_by(sort_column.desc())

        query = query.offset(skip).limit(limit)
        result = await db.execute(query)

        return list(result.scalars().all()), total


user_repository = UserRepository(User)
