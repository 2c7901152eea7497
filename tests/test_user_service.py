"""
User administration and role assignment.
"""

from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy import select

from rbac_admin.core.config import settings
from rbac_admin.core.exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from rbac_admin.core.permission_resolver import permission_resolver
from rbac_admin.core.security import verify_password
from rbac_admin.models import AuditLog, User, UserSession, UserStatus
from rbac_admin.models.base import utcnow
from rbac_admin.schemas.auth import RegisterRequest
from rbac_admin.schemas.user_management import (
    UserCreateRequest,
    UserFilters,
    UserRolesRequest,
    UserUpdateRequest,
)
from rbac_admin.services.bootstrap_admin import ensure_bootstrap_admin_exists
from rbac_admin.services.session import session_manager
from rbac_admin.services.user import user_service


def _create_request(**overrides):
    data = {
        "email": "New.User@Example.com",
        "full_name": "New User",
        "password": "Sup3rSecret",
    }
    data.update(overrides)
    return UserCreateRequest(**data)


# ==================== Create / update ====================

@pytest.mark.asyncio
async def test_create_user_with_roles(db, seed, admin_context):
    await seed.role("VIEWER", ["menu:user"])

    detail = await user_service.create_user(db, _create_request(role_keys=["VIEWER"]), admin_context)

    assert detail.email == "new.user@example.com"
    assert detail.roles == ["VIEWER"]
    assert detail.status == UserStatus.ACTIVE
    assert await permission_resolver.check_permission(db, detail.id, "menu:user")

    stored = await db.get(User, detail.id)
    assert verify_password("Sup3rSecret", stored.hashed_password)


@pytest.mark.asyncio
async def test_create_user_with_unknown_role_creates_nothing(db, admin_context):
    with pytest.raises(NotFoundError):
        await user_service.create_user(db, _create_request(role_keys=["NOPE"]), admin_context)

    users = (await db.execute(select(User).where(User.email == "new.user@example.com"))).scalars().all()
    assert users == []


@pytest.mark.asyncio
async def test_duplicate_email_conflicts(db, seed, admin_context):
    await seed.user("new.user@example.com")

    with pytest.raises(ConflictError):
        await user_service.create_user(db, _create_request(), admin_context)


@pytest.mark.asyncio
async def test_email_of_deleted_user_still_conflicts(db, seed, admin_context):
    user = await seed.user("new.user@example.com")
    await user_service.delete_user(db, user.id, admin_context)

    with pytest.raises(ConflictError):
        await user_service.create_user(db, _create_request(), admin_context)


@pytest.mark.asyncio
async def test_update_user(db, seed, admin_context):
    user = await seed.user()

    detail = await user_service.update_user(db, user.id, UserUpdateRequest(full_name="Renamed"), admin_context)

    assert detail.full_name == "Renamed"


@pytest.mark.asyncio
async def test_cannot_deactivate_self(db, admin_context):
    with pytest.raises(ValidationError):
        await user_service.update_user(
            db, admin_context.user_id, UserUpdateRequest(is_active=False), admin_context
        )


def test_email_cannot_be_updated():
    with pytest.raises(ValueError):
        UserUpdateRequest(email="other@example.com")


def test_weak_password_is_rejected():
    with pytest.raises(ValueError):
        _create_request(password="alllowercase1")


@pytest.mark.asyncio
async def test_list_users_filters(db, seed, admin_context):
    await seed.user("alice@example.com")
    await seed.user("bob@example.com", status=UserStatus.SUSPENDED)

    users, total = await user_service.list_users(db, UserFilters(search="alice"))
    assert total == 1
    assert users[0].email == "alice@example.com"

    users, total = await user_service.list_users(db, UserFilters(status=UserStatus.SUSPENDED))
    assert [u.email for u in users] == ["bob@example.com"]


@pytest.mark.asyncio
async def test_get_missing_user(db):
    with pytest.raises(NotFoundError):
        await user_service.get_user(db, uuid4())


# ==================== Status, password, deletion ====================

async def _open_session(db, user):
    issued = await session_manager.issue(db, user)
    await db.commit()
    return issued


@pytest.mark.asyncio
async def test_suspending_user_revokes_sessions(db, seed, admin_context):
    user = await seed.user()
    issued = await _open_session(db, user)

    detail = await user_service.update_status(db, user.id, UserStatus.SUSPENDED, admin_context)

    assert detail.status == UserStatus.SUSPENDED
    session = await db.get(UserSession, issued.context.session_id, populate_existing=True)
    assert session.revoked_at is not None


@pytest.mark.asyncio
async def test_reset_password(db, seed, admin_context):
    user = await seed.user()
    issued = await _open_session(db, user)

    await user_service.reset_password(db, user.id, "N3wPassword", admin_context)

    stored = await db.get(User, user.id, populate_existing=True)
    assert verify_password("N3wPassword", stored.hashed_password)
    session = await db.get(UserSession, issued.context.session_id, populate_existing=True)
    assert session.revoked_at is not None


@pytest.mark.asyncio
async def test_delete_user_is_soft(db, seed, admin_context):
    user = await seed.user()
    role = await seed.role("VIEWER", ["menu:user"])
    await seed.assign(user, role)

    await user_service.delete_user(db, user.id, admin_context)

    stored = await db.get(User, user.id, populate_existing=True)
    assert stored.is_deleted is True
    assert stored.is_active is False
    assert (await permission_resolver.resolve_permissions(db, user.id)).is_empty
    with pytest.raises(NotFoundError):
        await user_service.get_user(db, user.id)


@pytest.mark.asyncio
async def test_cannot_delete_self(db, admin_context):
    with pytest.raises(ValidationError):
        await user_service.delete_user(db, admin_context.user_id, admin_context)


@pytest.mark.asyncio
async def test_bootstrap_after_admin_deleted_does_not_recreate(db, admin_context):
    await ensure_bootstrap_admin_exists(db)
    admin_email = settings.BOOTSTRAP_ADMIN_EMAIL.lower()
    admin_id = (await db.execute(select(User.id).where(User.email == admin_email))).scalar_one()

    await user_service.delete_user(db, admin_id, admin_context)
    await ensure_bootstrap_admin_exists(db)

    rows = (await db.execute(select(User).where(User.email == admin_email))).scalars().all()
    assert [row.id for row in rows] == [admin_id]
    assert rows[0].is_deleted is True


# ==================== Role assignment ====================

@pytest.mark.asyncio
async def test_assign_roles_is_additive_and_idempotent(db, seed, admin_context):
    user = await seed.user()
    await seed.role("VIEWER")
    await seed.role("EDITOR")

    await user_service.assign_roles(db, user.id, UserRolesRequest(role_keys=["VIEWER"]), admin_context)
    roles = await user_service.assign_roles(
        db, user.id, UserRolesRequest(role_keys=["EDITOR", "VIEWER", "EDITOR"]), admin_context
    )

    assert sorted(r.role_key for r in roles) == ["EDITOR", "VIEWER"]


@pytest.mark.asyncio
async def test_assign_roles_with_expiry(db, seed, admin_context):
    user = await seed.user()
    await seed.role("TEMP", ["content:edit"])

    await user_service.assign_roles(
        db,
        user.id,
        UserRolesRequest(role_keys=["TEMP"], expires_at=utcnow() - timedelta(seconds=1)),
        admin_context,
    )

    assert await user_service.get_user_roles(db, user.id) == []
    assert not await permission_resolver.check_permission(db, user.id, "content:edit")


@pytest.mark.asyncio
async def test_reassigning_reactivates_assignment(db, seed, admin_context):
    user = await seed.user()
    role = await seed.role("VIEWER", ["menu:user"])
    await seed.assign(user, role, is_active=False)

    roles = await user_service.assign_roles(db, user.id, UserRolesRequest(role_keys=["VIEWER"]), admin_context)

    assert [r.role_key for r in roles] == ["VIEWER"]


@pytest.mark.asyncio
async def test_unassign_roles(db, seed, admin_context):
    user = await seed.user()
    viewer = await seed.role("VIEWER")
    editor = await seed.role("EDITOR")
    await seed.assign(user, viewer)
    await seed.assign(user, editor)

    roles = await user_service.unassign_roles(db, user.id, UserRolesRequest(role_keys=["EDITOR"]), admin_context)

    assert [r.role_key for r in roles] == ["VIEWER"]


@pytest.mark.asyncio
async def test_replace_roles(db, seed, admin_context):
    user = await seed.user()
    viewer = await seed.role("VIEWER")
    await seed.role("EDITOR")
    await seed.assign(user, viewer)

    roles = await user_service.replace_roles(db, user.id, UserRolesRequest(role_keys=["EDITOR"]), admin_context)

    assert [r.role_key for r in roles] == ["EDITOR"]


@pytest.mark.asyncio
async def test_profile_reports_resolved_roles_and_permissions(db, seed, admin_context):
    role = await seed.role("VIEWER", ["menu:user", "menu:audit"])
    await seed.assign(await db.get(User, admin_context.user_id), role)

    profile = await user_service.get_profile(db, admin_context)

    assert profile.roles == ["VIEWER"]
    assert profile.permissions == ["menu:audit", "menu:user"]


@pytest.mark.asyncio
async def test_batch_user_roles(db, seed):
    alice = await seed.user("alice@example.com")
    bob = await seed.user("bob@example.com")
    viewer = await seed.role("VIEWER")
    editor = await seed.role("EDITOR")
    await seed.assign(alice, viewer)
    await seed.assign(alice, editor)
    await seed.assign(bob, editor, expires_at=utcnow() - timedelta(days=1))
    unknown = uuid4()

    roles = await user_service.get_batch_user_roles(db, [alice.id, bob.id, unknown])

    assert {user_id: [r.role_key for r in found] for user_id, found in roles.items()} == {
        alice.id: ["EDITOR", "VIEWER"],
        bob.id: [],
        unknown: [],
    }


# ==================== Registration ====================

def _register_request(**overrides):
    data = {
        "email": "Self.Signup@Example.com",
        "full_name": "Self Signup",
        "password": "Sup3rSecret",
        "confirm_password": "Sup3rSecret",
    }
    data.update(overrides)
    return RegisterRequest(**data)


@pytest.mark.asyncio
async def test_register_grants_active_default_roles(db, seed):
    await seed.role("MEMBER", ["menu:home"], is_default=True)
    await seed.role("RETIRED", ["menu:old"], is_default=True, is_active=False)
    await seed.role("EDITOR", ["menu:edit"])

    user = await user_service.register(db, _register_request(), ip_address="10.0.0.9")

    assert user.email == "self.signup@example.com"
    assert user.status == UserStatus.ACTIVE
    resolved = await permission_resolver.resolve_permissions(db, user.id)
    assert resolved.roles == {"MEMBER"}
    assert resolved.permissions == {"menu:home"}

    audit = (await db.execute(select(AuditLog).where(AuditLog.action == "USER_REGISTER"))).scalars().one()
    assert (audit.status, audit.actor_id, audit.ip_address) == ("SUCCESS", str(user.id), "10.0.0.9")


@pytest.mark.asyncio
async def test_register_with_taken_email_conflicts(db, seed):
    await seed.user("self.signup@example.com")

    with pytest.raises(ConflictError):
        await user_service.register(db, _register_request())


@pytest.mark.asyncio
async def test_register_when_disabled(db, monkeypatch):
    monkeypatch.setattr(settings, "REGISTRATION_ENABLED", False)

    with pytest.raises(PermissionDeniedError, match="registration is disabled"):
        await user_service.register(db, _register_request())

    assert (await db.execute(select(User))).scalars().all() == []
    audit = (await db.execute(select(AuditLog).where(AuditLog.action == "USER_REGISTER"))).scalars().one()
    assert audit.status == "FAILURE"


def test_register_requires_matching_passwords():
    with pytest.raises(ValueError, match="Passwords do not match"):
        _register_request(confirm_password="Different1")
