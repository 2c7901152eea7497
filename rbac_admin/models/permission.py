"""
Permission Model
Atomic capabilities identified by a hierarchical string key
"""

import enum

from sqlalchemy import Column, String, Enum
from rbac_admin.models.base import BaseModel


class PermissionType(str, enum.Enum):
    MENU = "MENU"
    BUTTON = "BUTTON"
    API = "API"


class Permission(BaseModel):
    """Permission model (hard-deleted together with its role links)"""
    __tablename__ = "permissions"

    permission_key = Column(String(100), nullable=False, unique=True, index=True)
    name = Column(String(100), nullable=False)
    type = Column(
        Enum(PermissionType, name="permissiontype", native_enum=False, length=20),
        default=PermissionType.API,
        nullable=False,
        index=True,
    )
    description = Column(String(255), nullable=True)

    def __repr__(self):
        return f"<Permission(permission_key='{self.permission_key}')>"

    def snapshot(self) -> dict:
        return {
            "id": str(self.id) if self.id else None,
            "permission_key": self.permission_key,
            "name": self.name,
            "type": self.type.value if isinstance(self.type, PermissionType) else self.type,
            "description": self.description,
        }
