"""
Role Model
Named permission bundles assignable to users
"""

from sqlalchemy import Column, String, Boolean, Integer
from rbac_admin.models.base import SoftDeleteModel


class Role(SoftDeleteModel):
    """Role model; system roles are protected from deletion"""
    __tablename__ = "roles"

    role_key = Column(String(50), nullable=False, unique=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String(255), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False, index=True)
    is_system = Column(Boolean, default=False, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)

    def __repr__(self):
        return f"<Role(role_key='{self.role_key}', name='{self.name}')>"

    def snapshot(self) -> dict:
        return {
            "id": str(self.id) if self.id else None,
            "role_key": self.role_key,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "is_system": self.is_system,
            "is_default": self.is_default,
            "sort_order": self.sort_order,
        }
