"""
Login, token validation against server-side sessions, refresh and logout.
"""

from uuid import uuid4

import pytest
from sqlalchemy import select

from rbac_admin.core.exceptions import AuthenticationError
from rbac_admin.core.security import create_access_token
from rbac_admin.models import AuditLog, UserSession, UserStatus
from rbac_admin.services.session import session_manager


@pytest.mark.asyncio
async def test_login_issues_tokens_bound_to_a_session(db, seed, user_password):
    user = await seed.user("alice@example.com")

    issued = await session_manager.login(db, "Alice@Example.com", user_password, ip_address="10.0.0.1")

    assert issued.user.id == user.id
    assert issued.tokens.token_type == "bearer"
    context = await session_manager.validate(db, issued.tokens.access_token)
    assert context.user_id == user.id
    assert context.session_id == issued.context.session_id

    logins = (await db.execute(select(AuditLog).where(AuditLog.action == "LOGIN"))).scalars().all()
    assert [(row.status, row.actor_id) for row in logins] == [("SUCCESS", str(user.id))]


@pytest.mark.asyncio
async def test_bad_password_is_rejected_and_audited(db, seed):
    await seed.user("alice@example.com")

    with pytest.raises(AuthenticationError, match="Incorrect email or password"):
        await session_manager.login(db, "alice@example.com", "wrong-password")

    failures = (await db.execute(select(AuditLog).where(AuditLog.status == "FAILURE"))).scalars().all()
    assert [row.action for row in failures] == ["LOGIN"]


@pytest.mark.asyncio
async def test_unknown_email_is_rejected(db, user_password):
    with pytest.raises(AuthenticationError):
        await session_manager.login(db, "nobody@example.com", user_password)


@pytest.mark.asyncio
async def test_disabled_account_cannot_log_in(db, seed, user_password):
    await seed.user("alice@example.com", status=UserStatus.BANNED)

    with pytest.raises(AuthenticationError, match="Account is disabled"):
        await session_manager.login(db, "alice@example.com", user_password)


@pytest.mark.asyncio
async def test_refresh_token_is_not_an_access_token(db, seed, user_password):
    await seed.user("alice@example.com")
    issued = await session_manager.login(db, "alice@example.com", user_password)

    with pytest.raises(AuthenticationError, match="Invalid token type"):
        await session_manager.validate(db, issued.tokens.refresh_token)


@pytest.mark.asyncio
async def test_refresh_rotates_tokens(db, seed, user_password):
    user = await seed.user("alice@example.com")
    issued = await session_manager.login(db, "alice@example.com", user_password)

    tokens = await session_manager.refresh(db, issued.tokens.refresh_token)

    context = await session_manager.validate(db, tokens.access_token)
    assert context.user_id == user.id
    assert context.session_id == issued.context.session_id


@pytest.mark.asyncio
async def test_consumed_refresh_token_cannot_be_replayed(db, seed, user_password):
    await seed.user("alice@example.com")
    issued = await session_manager.login(db, "alice@example.com", user_password)

    await session_manager.refresh(db, issued.tokens.refresh_token)

    with pytest.raises(AuthenticationError, match="Refresh token already used"):
        await session_manager.refresh(db, issued.tokens.refresh_token)


@pytest.mark.asyncio
async def test_each_rotated_refresh_token_is_usable_once(db, seed, user_password):
    user = await seed.user("alice@example.com")
    issued = await session_manager.login(db, "alice@example.com", user_password)

    second = await session_manager.refresh(db, issued.tokens.refresh_token)
    third = await session_manager.refresh(db, second.refresh_token)

    with pytest.raises(AuthenticationError):
        await session_manager.refresh(db, second.refresh_token)
    context = await session_manager.validate(db, third.access_token)
    assert context.user_id == user.id
    stored = await db.get(UserSession, issued.context.session_id, populate_existing=True)
    assert stored.refresh_generation == 2


@pytest.mark.asyncio
async def test_logout_revokes_the_session(db, seed, user_password):
    await seed.user("alice@example.com")
    issued = await session_manager.login(db, "alice@example.com", user_password)

    assert await session_manager.revoke(db, issued.context)

    with pytest.raises(AuthenticationError, match="Session expired or revoked"):
        await session_manager.validate(db, issued.tokens.access_token)
    with pytest.raises(AuthenticationError):
        await session_manager.refresh(db, issued.tokens.refresh_token)


@pytest.mark.asyncio
async def test_token_for_a_session_that_never_existed(db, seed):
    user = await seed.user("alice@example.com")
    token = create_access_token(user.id, uuid4())

    with pytest.raises(AuthenticationError):
        await session_manager.validate(db, token)


@pytest.mark.asyncio
async def test_suspended_user_token_stops_working(db, seed, user_password):
    user = await seed.user("alice@example.com")
    issued = await session_manager.login(db, "alice@example.com", user_password)

    user.status = UserStatus.SUSPENDED
    await db.commit()

    with pytest.raises(AuthenticationError):
        await session_manager.validate(db, issued.tokens.access_token)
