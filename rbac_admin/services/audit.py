"""
Audit Service
Records every mutation, successful or not, through a pluggable sink.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_admin.core.context import SessionContext
from rbac_admin.core.exceptions import AppError
from rbac_admin.models.audit_log import ActorType, AuditStatus
from rbac_admin.repositories.audit import audit_log_repository, menu_log_repository
from rbac_admin.schemas.audit import AuditLogFilters, AuditLogResponse, MenuLogResponse

logger = structlog.get_logger()


@dataclass
class AuditEvent:
    action: str
    target_type: str
    target_key: Optional[str] = None
    actor_id: Optional[str] = None
    actor_type: str = ActorType.USER.value
    before: Optional[dict[str, Any]] = None
    after: Optional[dict[str, Any]] = None
    details: dict[str, Any] = field(default_factory=dict)
    status: str = AuditStatus.SUCCESS.value
    error_message: Optional[str] = None
    ip_address: Optional[str] = None

    @classmethod
    def for_actor(cls, actor: Optional[SessionContext], **values) -> "AuditEvent":
        if actor is None:
            return cls(actor_type=ActorType.SYSTEM.value, **values)
        return cls(actor_id=actor.actor_id, ip_address=actor.ip_address, **values)


class AuditSink(ABC):
    @abstractmethod
    async def record(self, db: AsyncSession, event: AuditEvent) -> None:
        raise NotImplementedError


class DatabaseAuditSink(AuditSink):
    """Appends one AuditLog row per event inside the caller's transaction"""

    async def record(self, db: AsyncSession, event: AuditEvent) -> None:
        await audit_log_repository.append(
            db,
            actor_id=event.actor_id,
            actor_type=event.actor_type,
            action=event.action,
            target_type=event.target_type,
            target_key=event.target_key,
            before=event.before,
            after=event.after,
            details=event.details or None,
            status=event.status,
            error_message=event.error_message,
            ip_address=event.ip_address,
        )


class AuditService:
    def __init__(self, sink: Optional[AuditSink] = None) -> None:
        self.sink = sink or DatabaseAuditSink()

    @asynccontextmanager
    async def audited(
        self,
        db: AsyncSession,
        actor: Optional[SessionContext],
        action: str,
        target_type: str,
        target_key: Optional[str] = None,
    ) -> AsyncIterator[AuditEvent]:
        """
        Wrap one mutating operation.

        On success the event is recorded and the transaction committed once.
        On an AppError the partial work is rolled back, the failure is
        recorded and committed on its own, and the error propagates.
        """
        event = AuditEvent.for_actor(actor, action=action, target_type=target_type, target_key=target_key)
        try:
            yield event
        except AppError as exc:
            await db.rollback()
            event.status = AuditStatus.FAILURE.value
            event.error_message = exc.message
            event.after = None
            await self.sink.record(db, event)
            await db.commit()
            logger.info(
                "Mutation rejected",
                action=action,
                target_type=target_type,
                target_key=event.target_key,
                error=exc.message,
            )
            raise

        await self.sink.record(db, event)
        await db.commit()
        logger.info("Mutation recorded", action=action, target_type=target_type, target_key=event.target_key)

    async def record_menu_change(
        self,
        db: AsyncSession,
        actor: Optional[SessionContext],
        menu_id: UUID,
        action: str,
        before: Optional[dict[str, Any]] = None,
        after: Optional[dict[str, Any]] = None,
    ) -> None:
        await menu_log_repository.append(
            db,
            menu_id=menu_id,
            action=action,
            operator_id=actor.actor_id if actor else None,
            operator_type=ActorType.USER.value if actor else ActorType.SYSTEM.value,
            before_change=before,
            after_change=after,
        )

    async def list_audit_logs(
        self, db: AsyncSession, filters: AuditLogFilters
    ) -> tuple[list[AuditLogResponse], int]:
        rows, total = await audit_log_repository.filter_logs(
            db,
            actor_id=filters.actor_id,
            action=filters.action,
            target_type=filters.target_type,
            status=filters.status,
            skip=filters.skip,
            limit=filters.limit,
        )
        return [AuditLogResponse.model_validate(row) for row in rows], total

    async def list_menu_logs(
        self,
        db: AsyncSession,
        menu_id: Optional[UUID],
        skip: int,
        limit: int,
    ) -> tuple[list[MenuLogResponse], int]:
        rows, total = await menu_log_repository.filter_logs(db, menu_id=menu_id, skip=skip, limit=limit)
        return [MenuLogResponse.model_validate(row) for row in rows], total


audit_service = AuditService()
