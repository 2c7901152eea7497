"""
Menu Model
Navigation nodes arranged in a parent/child tree
"""

from sqlalchemy import Column, String, Boolean, Integer, ForeignKey, JSON, Uuid, Index
from rbac_admin.models.base import SoftDeleteModel


class Menu(SoftDeleteModel):
    """Menu node, optionally gated by a permission key"""
    __tablename__ = "menus"

    name = Column(String(50), nullable=False)
    path = Column(String(255), nullable=True, index=True)
    icon = Column(String(50), nullable=True)
    permission_key = Column(String(100), nullable=True, index=True)
    parent_id = Column(Uuid(as_uuid=True), ForeignKey("menus.id"), nullable=True, index=True)
    sort_order = Column(Integer, default=0, nullable=False)

    is_visible = Column(Boolean, default=True, nullable=False)
    is_enabled = Column(Boolean, default=True, nullable=False)
    meta = Column(JSON, default=dict, nullable=False)

    __table_args__ = (
        Index('ix_menu_parent_sort', 'parent_id', 'sort_order'),
    )

    def __repr__(self):
        return f"<Menu(name='{self.name}', path='{self.path}')>"

    def snapshot(self) -> dict:
        return {
            "id": str(self.id) if self.id else None,
            "name": self.name,
            "path": self.path,
            "icon": self.icon,
            "permission_key": self.permission_key,
            "parent_id": str(self.parent_id) if self.parent_id else None,
            "sort_order": self.sort_order,
            "is_visible": self.is_visible,
            "is_enabled": self.is_enabled,
            "meta": dict(self.meta or {}),
        }
