"""
Base Model Classes
Common fields and functionality for all models
"""

from sqlalchemy import Column, DateTime, Boolean, Uuid, false
from sqlalchemy.sql import func
from rbac_admin.core.database import Base
import uuid
from datetime import datetime, timezone


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps"""
    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )


class UUIDMixin:
    """Mixin for UUID primary key"""
    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False
    )


class SoftDeleteMixin:
    """Mixin for soft delete functionality"""
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    is_deleted = Column(Boolean, default=False, server_default=false(), nullable=False, index=True)

    @classmethod
    def active(cls):
        """The single "not soft-deleted" predicate applied at the data-access boundary"""
        return cls.is_deleted.is_(False)

    def mark_deleted(self, when) -> None:
        self.is_deleted = True
        self.deleted_at = when


class BaseModel(Base, UUIDMixin, TimestampMixin):
    """Base model with common fields"""
    __abstract__ = True


class SoftDeleteModel(BaseModel, SoftDeleteMixin):
    """Base model with soft delete capability"""
    __abstract__ = True


def is_soft_deletable(model) -> bool:
    return hasattr(model, "is_deleted") and hasattr(model, "active")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
