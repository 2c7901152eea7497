"""
HTTP surface: envelope shape, authentication, permission gates and the
authorization check endpoint.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from rbac_admin.core.config import settings
from rbac_admin.core.database import get_db
from rbac_admin.main import app
from rbac_admin.services.bootstrap_admin import ensure_bootstrap_admin_exists

API = settings.API_PREFIX


# ==================== Fixtures ====================

@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    async with session_factory() as session:
        await ensure_bootstrap_admin_exists(session)

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


async def _login(client, email, password):
    response = await client.post(f"{API}/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["data"]


def _auth(tokens):
    return {"Authorization": f"Bearer {tokens['access_token']}"}


@pytest_asyncio.fixture
async def admin(client):
    data = await _login(client, settings.BOOTSTRAP_ADMIN_EMAIL, settings.BOOTSTRAP_ADMIN_PASSWORD)
    return _auth(data["tokens"])


@pytest_asyncio.fixture
async def plain_user(client, admin):
    response = await client.post(
        f"{API}/users/",
        json={"email": "plain@example.com", "full_name": "Plain User", "password": "Plain1234"},
        headers=admin,
    )
    assert response.status_code == 201, response.text
    user_id = response.json()["data"]["id"]
    data = await _login(client, "plain@example.com", "Plain1234")
    return user_id, _auth(data["tokens"])


# ==================== Authentication ====================

@pytest.mark.asyncio
async def test_login_returns_resolved_profile(client):
    data = await _login(client, settings.BOOTSTRAP_ADMIN_EMAIL, settings.BOOTSTRAP_ADMIN_PASSWORD)

    assert data["user"]["roles"] == [settings.BOOTSTRAP_ADMIN_ROLE_KEY]
    assert "system:role:write" in data["user"]["permissions"]
    assert data["tokens"]["token_type"] == "bearer"


@pytest.mark.asyncio
async def test_login_with_bad_password(client):
    response = await client.post(
        f"{API}/auth/login",
        json={"email": settings.BOOTSTRAP_ADMIN_EMAIL, "password": "wrong"},
    )

    assert response.status_code == 401
    assert response.json()["code"] == 401
    assert response.headers["www-authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_missing_token_is_401(client):
    response = await client.get(f"{API}/users/")

    assert response.status_code == 401
    body = response.json()
    assert body["code"] == 401
    assert body["data"] is None


@pytest.mark.asyncio
async def test_logout_invalidates_token(client, admin):
    response = await client.post(f"{API}/auth/logout", headers=admin)
    assert response.json()["code"] == 0

    response = await client.get(f"{API}/me", headers=admin)
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_refresh(client):
    data = await _login(client, settings.BOOTSTRAP_ADMIN_EMAIL, settings.BOOTSTRAP_ADMIN_PASSWORD)

    response = await client.post(f"{API}/auth/refresh", json={"refresh_token": data["tokens"]["refresh_token"]})

    assert response.json()["code"] == 0
    response = await client.get(f"{API}/me", headers=_auth(response.json()["data"]))
    assert response.json()["data"]["email"] == settings.BOOTSTRAP_ADMIN_EMAIL


@pytest.mark.asyncio
async def test_refresh_token_is_single_use(client):
    data = await _login(client, settings.BOOTSTRAP_ADMIN_EMAIL, settings.BOOTSTRAP_ADMIN_PASSWORD)
    body = {"refresh_token": data["tokens"]["refresh_token"]}

    assert (await client.post(f"{API}/auth/refresh", json=body)).json()["code"] == 0

    replay = await client.post(f"{API}/auth/refresh", json=body)
    assert replay.status_code == 401
    assert replay.json()["message"] == "Refresh token already used"


@pytest.mark.asyncio
async def test_register_then_use_session(client):
    response = await client.post(
        f"{API}/auth/register",
        json={
            "email": "Signup@Example.com",
            "full_name": "Sign Up",
            "password": "Signup123",
            "confirm_password": "Signup123",
        },
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["user"]["email"] == "signup@example.com"
    assert data["user"]["roles"] == []
    me = await client.get(f"{API}/me", headers=_auth(data["tokens"]))
    assert me.json()["data"]["email"] == "signup@example.com"

    again = await client.post(
        f"{API}/auth/register",
        json={
            "email": "signup@example.com",
            "full_name": "Sign Up",
            "password": "Signup123",
            "confirm_password": "Signup123",
        },
    )
    assert again.status_code == 409

# ==================== Permission gates ====================

@pytest.mark.asyncio
async def test_success_envelope(client, admin):
    response = await client.get(f"{API}/roles/", headers=admin)

    assert response.status_code == 200
    body = response.json()
    assert body["code"] == 0
    assert body["data"]["total"] == 1
    assert body["data"]["items"][0]["role_key"] == settings.BOOTSTRAP_ADMIN_ROLE_KEY


@pytest.mark.asyncio
async def test_user_without_permission_is_forbidden(client, plain_user):
    _, headers = plain_user

    response = await client.get(f"{API}/roles/", headers=headers)

    assert response.status_code == 403
    assert response.json()["code"] == 403
    assert "system:role:read" in response.json()["message"]


@pytest.mark.asyncio
async def test_grant_takes_effect_on_next_request(client, admin, plain_user):
    user_id, headers = plain_user
    role = (await client.post(
        f"{API}/roles/", json={"role_key": "role_reader", "name": "Role reader"}, headers=admin
    )).json()["data"]
    await client.post(
        f"{API}/roles/{role['id']}/permissions", json={"permission_keys": ["system:role:read"]}, headers=admin
    )
    await client.post(f"{API}/users/{user_id}/roles", json={"role_keys": ["role_reader"]}, headers=admin)

    assert (await client.get(f"{API}/roles/", headers=headers)).status_code == 200

    await client.post(f"{API}/users/{user_id}/roles/remove", json={"role_keys": ["role_reader"]}, headers=admin)

    assert (await client.get(f"{API}/roles/", headers=headers)).status_code == 403


@pytest.mark.asyncio
async def test_request_validation_is_422(client, admin):
    response = await client.post(f"{API}/roles/", json={"role_key": "bad key", "name": "Bad"}, headers=admin)

    assert response.status_code == 422
    assert response.json()["code"] == 422
    assert response.json()["message"].startswith("role_key")


@pytest.mark.asyncio
async def test_deleting_role_in_use_is_409(client, admin):
    roles = (await client.get(f"{API}/roles/", headers=admin)).json()["data"]["items"]
    admin_role = roles[0]

    response = await client.delete(f"{API}/roles/{admin_role['id']}", headers=admin)

    assert response.status_code == 409
    assert response.json()["code"] == 409


@pytest.mark.asyncio
async def test_batch_user_roles(client, admin, plain_user):
    user_id, headers = plain_user
    me = (await client.get(f"{API}/me", headers=admin)).json()["data"]

    response = await client.post(
        f"{API}/users/batch-roles", json={"user_ids": [me["id"], user_id]}, headers=admin
    )

    roles = response.json()["data"]
    assert [r["role_key"] for r in roles[me["id"]]] == [settings.BOOTSTRAP_ADMIN_ROLE_KEY]
    assert roles[user_id] == []

    denied = await client.post(f"{API}/users/batch-roles", json={"user_ids": [user_id]}, headers=headers)
    assert denied.status_code == 403

# ==================== Menus ====================

@pytest.mark.asyncio
async def test_menu_cycle_is_409(client, admin):
    a = (await client.post(f"{API}/menus/", json={"name": "A", "path": "/a"}, headers=admin)).json()["data"]
    b = (await client.post(
        f"{API}/menus/", json={"name": "B", "path": "/a/b", "parent_id": a["id"]}, headers=admin
    )).json()["data"]

    response = await client.patch(f"{API}/menus/{a['id']}", json={"parent_id": b["id"]}, headers=admin)

    assert response.status_code == 409
    assert response.json()["code"] == 409

    tree = (await client.get(f"{API}/menus/tree", headers=admin)).json()["data"]
    assert [node["name"] for node in tree] == ["A"]
    assert [node["name"] for node in tree[0]["children"]] == ["B"]


@pytest.mark.asyncio
async def test_my_menus_follow_role_links(client, admin):
    menu = (await client.post(f"{API}/menus/", json={"name": "Users", "path": "/users"}, headers=admin)).json()["data"]
    roles = (await client.get(f"{API}/roles/", headers=admin)).json()["data"]["items"]
    await client.put(f"{API}/roles/{roles[0]['id']}/menus", json={"menu_ids": [menu["id"]]}, headers=admin)

    menus = (await client.get(f"{API}/me/menus", headers=admin)).json()["data"]["menus"]
    assert [m["path"] for m in menus] == ["/users"]

    check = await client.post(f"{API}/me/menus/check", json={"path": "/users"}, headers=admin)
    assert check.json()["data"]["allowed"] is True


# ==================== Authorization check ====================

@pytest.mark.asyncio
async def test_check_endpoint(client, admin, plain_user):
    user_id, headers = plain_user

    response = await client.post(
        f"{API}/check", json={"user_id": user_id, "permission_key": "system:role:read"}, headers=admin
    )
    assert response.json()["data"]["allowed"] is False

    response = await client.post(
        f"{API}/check", json={"user_id": user_id, "permission_key": "system:role:read"}, headers=headers
    )
    assert response.json()["code"] == 0


@pytest.mark.asyncio
async def test_checking_someone_else_needs_user_read(client, admin, plain_user):
    _, headers = plain_user
    me = (await client.get(f"{API}/me", headers=admin)).json()["data"]

    response = await client.post(
        f"{API}/check", json={"user_id": me["id"], "permission_key": "system:role:read"}, headers=headers
    )

    assert response.status_code == 403


# ==================== Audit ====================

@pytest.mark.asyncio
async def test_audit_log_records_failures(client, admin):
    await client.post(f"{API}/roles/", json={"role_key": "dup", "name": "Dup"}, headers=admin)
    await client.post(f"{API}/roles/", json={"role_key": "dup", "name": "Dup"}, headers=admin)

    response = await client.get(
        f"{API}/audit-logs", params={"action": "ROLE_CREATE", "status": "FAILURE"}, headers=admin
    )

    items = response.json()["data"]["items"]
    assert len(items) == 1
    assert items[0]["target_key"] == "dup"


# ==================== Middleware ====================

@pytest.mark.asyncio
async def test_health_and_response_headers(client):
    response = await client.get(f"{API}/health", headers={"X-Request-ID": "req-123"})

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "healthy"
    assert response.headers["x-request-id"] == "req-123"
    assert response.headers["x-content-type-options"] == "nosniff"
