"""
User Session Model
Server-side login sessions; a token is honoured only while its session lives
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Uuid
from rbac_admin.models.base import BaseModel


class UserSession(BaseModel):
    __tablename__ = "user_sessions"

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    # Bumped on every refresh; only the newest refresh token matches it
    refresh_generation = Column(Integer, default=0, server_default="0", nullable=False)
    user_agent = Column(String(255), nullable=True)
    ip_address = Column(String(50), nullable=True)

    def __repr__(self):
        return f"<UserSession(user_id='{self.user_id}', revoked={self.revoked_at is not None})>"
