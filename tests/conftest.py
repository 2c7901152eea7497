"""
Shared fixtures: an isolated in-memory SQLite store per test and helpers to
seed users, roles, permissions and menus directly.
"""

import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime
from typing import Iterable, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import rbac_admin.models  # noqa: F401
from rbac_admin.core.context import SessionContext
from rbac_admin.core.database import Base
from rbac_admin.core.security import get_password_hash
from rbac_admin.models import (
    Menu,
    Permission,
    PermissionType,
    Role,
    RoleMenu,
    RolePermission,
    User,
    UserRole,
    UserStatus,
)

TEST_PASSWORD = "Passw0rd!"
_password_hash: Optional[str] = None


def password_hash() -> str:
    # bcrypt is slow; hash the shared test password once per run
    global _password_hash
    if _password_hash is None:
        _password_hash = get_password_hash(TEST_PASSWORD)
    return _password_hash


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


class Seeder:
    """Writes fixtures straight through the ORM, bypassing services and audit"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def user(
        self,
        email: str = "user@example.com",
        *,
        is_active: bool = True,
        status: UserStatus = UserStatus.ACTIVE,
    ) -> User:
        user = User(
            email=email,
            full_name=email.split("@")[0].title(),
            hashed_password=password_hash(),
            is_active=is_active,
            status=status,
        )
        self.db.add(user)
        await self.db.commit()
        return user

    async def permission(self, key: str, type: PermissionType = PermissionType.MENU) -> Permission:
        permission = Permission(permission_key=key, name=key, type=type)
        self.db.add(permission)
        await self.db.commit()
        return permission

    async def role(
        self,
        role_key: str,
        permissions: Iterable[str] = (),
        *,
        is_active: bool = True,
        is_system: bool = False,
        is_default: bool = False,
    ) -> Role:
        role = Role(
            role_key=role_key,
            name=role_key.title(),
            is_active=is_active,
            is_system=is_system,
            is_default=is_default,
        )
        self.db.add(role)
        await self.db.flush()
        for key in permissions:
            permission = Permission(permission_key=key, name=key, type=PermissionType.MENU)
            existing = await self._permission_by_key(key)
            if existing is None:
                self.db.add(permission)
                await self.db.flush()
            else:
                permission = existing
            self.db.add(RolePermission(role_id=role.id, permission_id=permission.id))
        await self.db.commit()
        return role

    async def _permission_by_key(self, key: str) -> Optional[Permission]:
        from sqlalchemy import select

        result = await self.db.execute(select(Permission).where(Permission.permission_key == key))
        return result.scalar_one_or_none()

    async def menu(
        self,
        name: str,
        *,
        path: Optional[str] = None,
        parent: Optional[Menu] = None,
        sort_order: int = 0,
        is_visible: bool = True,
        is_enabled: bool = True,
    ) -> Menu:
        menu = Menu(
            name=name,
            path=path or f"/{name.lower()}",
            parent_id=parent.id if parent else None,
            sort_order=sort_order,
            is_visible=is_visible,
            is_enabled=is_enabled,
            meta={},
        )
        self.db.add(menu)
        await self.db.commit()
        return menu

    async def assign(
        self,
        user: User,
        role: Role,
        *,
        is_active: bool = True,
        expires_at: Optional[datetime] = None,
    ) -> UserRole:
        link = UserRole(user_id=user.id, role_id=role.id, is_active=is_active, expires_at=expires_at)
        self.db.add(link)
        await self.db.commit()
        return link

    async def link_menus(self, role: Role, *menus: Menu) -> None:
        self.db.add_all(RoleMenu(role_id=role.id, menu_id=menu.id) for menu in menus)
        await self.db.commit()


@pytest.fixture
def seed(db):
    return Seeder(db)


@pytest_asyncio.fixture
async def admin_context(seed):
    """An operator acting through the services, as the HTTP layer would pass it"""
    from uuid import uuid4

    operator = await seed.user("operator@example.com")
    return SessionContext(user_id=operator.id, session_id=uuid4(), email=operator.email)


@pytest.fixture
def user_password():
    return TEST_PASSWORD
