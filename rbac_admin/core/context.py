"""
Authenticated caller context.

Built once per request from a live session and passed explicitly into
authorization and audit calls.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID


@dataclass(frozen=True)
class SessionContext:
    user_id: UUID
    session_id: UUID
    email: str
    ip_address: Optional[str] = None

    @property
    def actor_id(self) -> str:
        return str(self.user_id)
