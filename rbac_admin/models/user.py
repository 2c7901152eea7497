"""
User Model
User authentication and profile management
"""

import enum

from sqlalchemy import Column, String, Boolean, DateTime, Enum, Index
from rbac_admin.models.base import SoftDeleteModel


class UserStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"
    BANNED = "BANNED"


class User(SoftDeleteModel):
    """User identity record; never physically deleted"""
    __tablename__ = "users"

    # Basic user information
    email = Column(String(254), nullable=False, unique=True, index=True)
    full_name = Column(String(100), nullable=False)
    hashed_password = Column(String(128), nullable=False)

    # Account status
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    status = Column(
        Enum(UserStatus, name="userstatus", native_enum=False, length=20),
        default=UserStatus.ACTIVE,
        nullable=False,
        index=True,
    )

    # Activity tracking
    last_login_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index('ix_user_email_active', 'email', 'is_active'),
    )

    def __repr__(self):
        return f"<User(email='{self.email}', status='{self.status}')>"

    @property
    def can_authenticate(self) -> bool:
        """Active flag set, not soft-deleted and in ACTIVE status"""
        return bool(self.is_active) and not self.is_deleted and self.status == UserStatus.ACTIVE
