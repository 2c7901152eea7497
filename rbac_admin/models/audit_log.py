"""
Audit Log Models
Append-only records of mutations; rows are never updated
"""

import enum

from sqlalchemy import Column, String, Text, DateTime, JSON, Uuid, Index
from sqlalchemy.sql import func
from rbac_admin.core.database import Base
from rbac_admin.models.base import UUIDMixin


class AuditStatus(str, enum.Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


class ActorType(str, enum.Enum):
    USER = "USER"
    SERVICE = "SERVICE"
    SYSTEM = "SYSTEM"


class AuditLog(Base, UUIDMixin):
    """Audit trail entry for a mutating operation"""
    __tablename__ = "audit_logs"

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    actor_id = Column(String(36), nullable=True, index=True)
    actor_type = Column(String(10), nullable=False, default=ActorType.USER.value, index=True)
    action = Column(String(50), nullable=False, index=True)
    target_type = Column(String(20), nullable=True, index=True)
    target_key = Column(String(255), nullable=True, index=True)

    before = Column(JSON, nullable=True)
    after = Column(JSON, nullable=True)
    details = Column(JSON, nullable=True)

    status = Column(String(10), nullable=False, index=True)
    error_message = Column(Text, nullable=True)
    ip_address = Column(String(50), nullable=True)

    __table_args__ = (
        Index('ix_audit_target', 'target_type', 'target_key'),
    )

    def __repr__(self):
        return f"<AuditLog(action='{self.action}', status='{self.status}')>"


class MenuLog(Base, UUIDMixin):
    """Before/after snapshot of a single menu change"""
    __tablename__ = "menu_logs"

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    menu_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    action = Column(String(20), nullable=False, index=True)
    operator_id = Column(String(36), nullable=True, index=True)
    operator_type = Column(String(10), nullable=False, default=ActorType.USER.value)
    before_change = Column(JSON, nullable=True)
    after_change = Column(JSON, nullable=True)
