"""
Session Service
Server-side sessions backing the JWTs handed out at login.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_admin.core.config import settings
from rbac_admin.core.context import SessionContext
from rbac_admin.core.exceptions import AuthenticationError
from rbac_admin.core.security import (
    create_access_token,
    create_refresh_token,
    verify_password,
    verify_token,
)
from rbac_admin.models.base import utcnow
from rbac_admin.models.session import UserSession
from rbac_admin.models.user import User
from rbac_admin.repositories.session import user_session_repository
from rbac_admin.repositories.user import user_repository
from rbac_admin.schemas.auth import TokenResponse
from rbac_admin.services.audit import audit_service

logger = structlog.get_logger()


@dataclass(frozen=True)
class IssuedSession:
    user: User
    context: SessionContext
    tokens: TokenResponse


def _parse_uuid(value: Optional[str], what: str) -> UUID:
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise AuthenticationError(f"Invalid token: malformed {what}")


class SessionManager:
    def _tokens_for(self, user_id: UUID, session_id: UUID, generation: int = 0) -> TokenResponse:
        return TokenResponse(
            access_token=create_access_token(user_id, session_id),
            refresh_token=create_refresh_token(user_id, session_id, generation=generation),
            token_type="bearer",
            expires_in=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        )

    def _session_lifetime(self) -> timedelta:
        return timedelta(days=settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS)

    async def authenticate(self, db: AsyncSession, email: str, password: str) -> User:
        user = await user_repository.get_by_email(db, email)
        if user is None or not verify_password(password, user.hashed_password):
            raise AuthenticationError("Incorrect email or password")
        if not user.can_authenticate:
            raise AuthenticationError("Account is disabled")
        return user

    async def login(
        self,
        db: AsyncSession,
        email: str,
        password: str,
        *,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> IssuedSession:
        async with audit_service.audited(db, None, "LOGIN", "session", email) as event:
            event.ip_address = ip_address
            user = await self.authenticate(db, email, password)
            issued = await self.issue(db, user, user_agent=user_agent, ip_address=ip_address)
            event.actor_id = str(user.id)
            event.actor_type = "USER"
            event.details = {"session_id": str(issued.context.session_id)}

        logger.info("User logged in", user_id=str(user.id), session_id=str(issued.context.session_id))
        return issued

    async def issue(
        self,
        db: AsyncSession,
        user: User,
        *,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> IssuedSession:
        """Open a session for an authenticated user; the caller commits"""
        record = await user_session_repository.create(
            db,
            user_id=user.id,
            expires_at=utcnow() + self._session_lifetime(),
            user_agent=(user_agent or "")[:255] or None,
            ip_address=ip_address,
        )
        user.last_login_at = utcnow()
        await db.flush()

        context = SessionContext(
            user_id=user.id,
            session_id=record.id,
            email=user.email,
            ip_address=ip_address,
        )
        tokens = self._tokens_for(user.id, record.id, record.refresh_generation)
        return IssuedSession(user=user, context=context, tokens=tokens)

    async def _live_session(
        self, db: AsyncSession, token: str, token_type: str
    ) -> tuple[SessionContext, UserSession]:
        result = verify_token(token, token_type=token_type)
        user_id = _parse_uuid(result.subject, "subject")
        session_id = _parse_uuid(result.session_id, "session")

        session = await user_session_repository.get_live(db, session_id)
        if session is None or session.user_id != user_id:
            logger.info("Session not live", session_id=str(session_id))
            raise AuthenticationError("Session expired or revoked")

        if token_type == "refresh" and result.claims.get("gen") != session.refresh_generation:
            logger.warning(
                "Stale refresh token presented",
                session_id=str(session_id),
                token_generation=result.claims.get("gen"),
                session_generation=session.refresh_generation,
            )
            raise AuthenticationError("Refresh token already used")

        user = await user_repository.get(db, id=user_id)
        if user is None or not user.can_authenticate:
            raise AuthenticationError("User not found or inactive")

        return SessionContext(user_id=user.id, session_id=session.id, email=user.email), session

    async def validate(self, db: AsyncSession, token: str, ip_address: Optional[str] = None) -> SessionContext:
        """Resolve an access token to the caller it was issued to"""
        context, _ = await self._live_session(db, token, "access")
        if ip_address:
            context = SessionContext(
                user_id=context.user_id,
                session_id=context.session_id,
                email=context.email,
                ip_address=ip_address,
            )
        return context

    async def refresh(self, db: AsyncSession, refresh_token: str) -> TokenResponse:
        """
        Rotate both tokens of a live session and slide its expiry.

        Each refresh token is single use: rotating advances the session's
        refresh generation, so the consumed token no longer matches.
        """
        context, session = await self._live_session(db, refresh_token, "refresh")
        generation = session.refresh_generation
        rotated = await user_session_repository.rotate(
            db, context.session_id, generation, utcnow() + self._session_lifetime()
        )
        if not rotated:
            await db.rollback()
            raise AuthenticationError("Refresh token already used")
        await db.commit()
        logger.info("Session refreshed", user_id=str(context.user_id), session_id=str(context.session_id))
        return self._tokens_for(context.user_id, context.session_id, generation + 1)

    async def revoke(self, db: AsyncSession, context: SessionContext) -> bool:
        async with audit_service.audited(db, context, "LOGOUT", "session", str(context.session_id)):
            revoked = await user_session_repository.revoke(db, context.session_id)
        logger.info("Session revoked", user_id=str(context.user_id), session_id=str(context.session_id))
        return revoked


session_manager = SessionManager()
