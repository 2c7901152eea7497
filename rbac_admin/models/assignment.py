"""
Association Models
UserRole, RolePermission and RoleMenu join records
"""

from sqlalchemy import Column, Boolean, DateTime, ForeignKey, Uuid, UniqueConstraint
from rbac_admin.models.base import BaseModel


class UserRole(BaseModel):
    """A role assigned to a user; counts only while active and unexpired"""
    __tablename__ = "user_roles"

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    role_id = Column(Uuid(as_uuid=True), ForeignKey("roles.id"), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint('user_id', 'role_id', name='uq_user_role'),
    )


class RolePermission(BaseModel):
    __tablename__ = "role_permissions"

    role_id = Column(Uuid(as_uuid=True), ForeignKey("roles.id"), nullable=False, index=True)
    permission_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("permissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        UniqueConstraint('role_id', 'permission_id', name='uq_role_permission'),
    )


class RoleMenu(BaseModel):
    __tablename__ = "role_menus"

    role_id = Column(Uuid(as_uuid=True), ForeignKey("roles.id"), nullable=False, index=True)
    menu_id = Column(Uuid(as_uuid=True), ForeignKey("menus.id"), nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint('role_id', 'menu_id', name='uq_role_menu'),
    )
