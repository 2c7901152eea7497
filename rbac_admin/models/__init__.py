"""
SQLAlchemy Models Package
RBAC Admin Database Models
"""

from rbac_admin.models.user import User, UserStatus
from rbac_admin.models.role import Role
from rbac_admin.models.permission import Permission, PermissionType
from rbac_admin.models.menu import Menu
from rbac_admin.models.assignment import UserRole, RolePermission, RoleMenu
from rbac_admin.models.audit_log import AuditLog, MenuLog, AuditStatus, ActorType
from rbac_admin.models.session import UserSession

__all__ = [
    "User",
    "UserStatus",
    "Role",
    "Permission",
    "PermissionType",
    "Menu",
    "UserRole",
    "RolePermission",
    "RoleMenu",
    "AuditLog",
    "MenuLog",
    "AuditStatus",
    "ActorType",
    "UserSession",
]
