"""
User Session Repository
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_admin.models.base import utcnow
from rbac_admin.models.session import UserSession


class UserSessionRepository:
    async def create(
        self,
        db: AsyncSession,
        *,
        user_id: UUID,
        expires_at: datetime,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> UserSession:
        record = UserSession(
            user_id=user_id,
            expires_at=expires_at,
            refresh_generation=0,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        db.add(record)
        await db.flush()
        return record

    async def get_live(self, db: AsyncSession, session_id: UUID) -> Optional[UserSession]:
        """The session if it is neither revoked nor expired"""
        query = select(UserSession).where(
            UserSession.id == session_id,
            UserSession.revoked_at.is_(None),
            UserSession.expires_at > utcnow(),
        ).execution_options(populate_existing=True)
        return (await db.execute(query)).scalar_one_or_none()

    async def rotate(self, db: AsyncSession, session_id: UUID, generation: int, expires_at: datetime) -> bool:
        """Advance the refresh generation if it still equals ``generation``"""
        result = await db.execute(
            update(UserSession)
            .where(UserSession.id == session_id, UserSession.refresh_generation == generation)
            .values(refresh_generation=generation + 1, expires_at=expires_at)
        )
        return result.rowcount == 1

    async def revoke(self, db: AsyncSession, session_id: UUID) -> bool:
        result = await db.execute(
            update(UserSession)
            .where(UserSession.id == session_id, UserSession.revoked_at.is_(None))
            .values(revoked_at=utcnow())
        )
        return bool(result.rowcount)

    async def revoke_all_for_user(self, db: AsyncSession, user_id: UUID) -> int:
        result = await db.execute(
            update(UserSession)
            .where(UserSession.user_id == user_id, UserSession.revoked_at.is_(None))
            .values(revoked_at=utcnow())
        )
        return result.rowcount or 0


user_session_repository = UserSessionRepository()
