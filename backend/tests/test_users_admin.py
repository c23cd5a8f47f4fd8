"""
Integration tests for admin user management.
"""

import pytest

from backend.app.models.enums import UserRole


@pytest.mark.asyncio
async def test_list_users_paginates(client, admin_headers, create_user):
    for index in range(3):
        await create_user(f"user{index}@example.com")

    response = await client.get("/v1/users", params={"limit": 2}, headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 4
    assert data["pageSize"] == 2
    assert len(data["users"]) == 2
    assert "hashedPassword" not in data["users"][0]

    employees = await client.get("/v1/users", params={"role": "employee"}, headers=admin_headers)
    assert employees.json()["total"] == 3


@pytest.mark.asyncio
async def test_get_user_and_not_found(client, admin_headers, create_user):
    user = await create_user("bob@example.com")

    response = await client.get(f"/v1/users/{user.id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["failedLoginAttempts"] == 0

    missing = await client.get("/v1/users/9999", headers=admin_headers)
    assert missing.status_code == 404
    assert missing.json()["error_code"] == "ERR_NOT_FOUND_001"


@pytest.mark.asyncio
async def test_deactivate_ends_sessions(client, admin_headers, mock_redis):
    register = await client.post(
        "/v1/auth/register",
        json={"name": "Bob", "email": "bob@example.com", "password": "Secure1!"},
    )
    bob = register.json()
    bob_headers = {"Authorization": f"Bearer {bob['tokens']['accessToken']}"}
    await mock_redis.set("cache:users:list", "[]")
    await mock_redis.set("cache:products:list", "[]")

    response = await client.post(f"/v1/users/{bob['user']['id']}/deactivate", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["isActive"] is False

    # Access token stops working, refresh token was dropped
    assert (await client.get("/v1/auth/me", headers=bob_headers)).status_code == 401
    refresh = await client.post("/v1/auth/refresh", json={"refreshToken": bob["tokens"]["refreshToken"]})
    assert refresh.status_code == 401

    # Only the user listings were evicted
    assert "cache:users:list" not in mock_redis.store
    assert "cache:products:list" in mock_redis.store

    again = await client.post(f"/v1/users/{bob['user']['id']}/deactivate", headers=admin_headers)
    assert again.status_code == 400


@pytest.mark.asyncio
async def test_reactivate_restores_login(client, admin_headers, create_user):
    user = await create_user("bob@example.com", is_active=False)

    response = await client.post(f"/v1/users/{user.id}/reactivate", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["isActive"] is True

    login = await client.post("/v1/auth/login", json={"email": "bob@example.com", "password": "Secure1!pass"})
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_admin_cannot_deactivate_or_demote_self(client, admin_user, admin_headers):
    response = await client.post(f"/v1/users/{admin_user.id}/deactivate", headers=admin_headers)
    assert response.status_code == 400

    response = await client.patch(f"/v1/users/{admin_user.id}/role", json={"role": "employee"}, headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_change_role(client, admin_headers, create_user, auth_headers):
    user = await create_user("carol@example.com")

    response = await client.patch(f"/v1/users/{user.id}/role", json={"role": "manager"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["role"] == "manager"

    invalid = await client.patch(f"/v1/users/{user.id}/role", json={"role": "superuser"}, headers=admin_headers)
    assert invalid.status_code == 400

    # Still not an admin
    assert (await client.get("/v1/users", headers=auth_headers(user))).status_code == 403


@pytest.mark.asyncio
async def test_role_change_is_audited(client, admin_user, admin_headers, create_user):
    user = await create_user("dave@example.com")
    await client.patch(f"/v1/users/{user.id}/role", json={"role": UserRole.MANAGER.value}, headers=admin_headers)

    history = await client.get(f"/v1/audit/resource/user/{user.id}", headers=admin_headers)
    [entry] = history.json()["logs"]
    assert entry["userId"] == admin_user.id
    assert entry["oldValue"]["role"] == "employee"
    assert entry["newValue"]["role"] == "manager"
    assert entry["newValue"]["password"] == "[REDACTED]"
