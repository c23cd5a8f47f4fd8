"""
Tests for progressive account lockout.
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from backend.app.domain.auth.lockout import LockoutPolicy, LockState

WRONG = {"email": "alice@example.com", "password": "Wrong1234"}
RIGHT = {"email": "alice@example.com", "password": "Secure1!"}


async def register_alice(client):
    response = await client.post(
        "/v1/auth/register",
        json={"name": "Alice", "email": "alice@example.com", "password": "Secure1!"},
    )
    assert response.status_code == 201
    return response.json()["user"]["id"]


# Unit tests for the state machine

def test_policy_locks_at_threshold():
    policy = LockoutPolicy(max_attempts=5, lockout_duration=timedelta(minutes=15))
    now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    assert policy.on_failure(4, now).locks is False
    decision = policy.on_failure(5, now)
    assert decision.locks is True
    assert decision.lockout_until == now + timedelta(minutes=15)


def test_policy_state_is_time_driven():
    policy = LockoutPolicy()
    now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    user = SimpleNamespace(lockout_until=now + timedelta(minutes=10, seconds=1))

    assert policy.state(user, now) is LockState.LOCKED
    assert policy.remaining_minutes(user, now) == 11
    assert policy.state(user, now + timedelta(minutes=11)) is LockState.UNLOCKED
    assert policy.remaining_minutes(user, now + timedelta(minutes=11)) == 0


def test_policy_treats_naive_timestamps_as_utc():
    policy = LockoutPolicy()
    now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    user = SimpleNamespace(lockout_until=datetime(2026, 1, 1, 12, 0, 30))

    assert policy.is_locked(user, now)
    assert policy.remaining_minutes(user, now) == 1


def test_on_success_resets_counters():
    now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    user = SimpleNamespace(failed_login_attempts=3, lockout_until=now - timedelta(minutes=1), last_login=None)

    LockoutPolicy.on_success(user, now)
    assert user.failed_login_attempts == 0
    assert user.lockout_until is None
    assert user.last_login == now


# HTTP scenario

@pytest.mark.asyncio
async def test_five_failures_lock_the_account(client, db_session, auth_services):
    user_id = await register_alice(client)

    for _ in range(5):
        response = await client.post("/v1/auth/login", json=WRONG)
        assert response.status_code == 401

    locked = await client.post("/v1/auth/login", json=WRONG)
    assert locked.status_code == 423
    body = locked.json()
    assert body["error_code"] == "ERR_AUTH_003"
    assert body["details"]["retry_after_minutes"] > 0
    assert "minute" in body["message"]
    assert int(locked.headers["Retry-After"]) == body["details"]["retry_after_minutes"] * 60

    # Even the right password is refused while locked
    assert (await client.post("/v1/auth/login", json=RIGHT)).status_code == 423

    user = await auth_services.store.get_by_id(db_session, user_id)
    await db_session.refresh(user)
    assert user.lockout_until is not None
    # Locking reset the counter and locked attempts did not add to it
    assert user.failed_login_attempts == 0


@pytest.mark.asyncio
async def test_failed_attempts_accumulate_below_threshold(client, db_session, auth_services):
    user_id = await register_alice(client)

    for _ in range(3):
        await client.post("/v1/auth/login", json=WRONG)

    user = await auth_services.store.get_by_id(db_session, user_id)
    await db_session.refresh(user)
    assert user.failed_login_attempts == 3
    assert user.lockout_until is None

    # A success wipes the slate
    assert (await client.post("/v1/auth/login", json=RIGHT)).status_code == 200
    await db_session.refresh(user)
    assert user.failed_login_attempts == 0


@pytest.mark.asyncio
async def test_login_succeeds_after_lockout_expires(client, db_session, auth_services):
    user_id = await register_alice(client)
    for _ in range(5):
        await client.post("/v1/auth/login", json=WRONG)
    assert (await client.post("/v1/auth/login", json=RIGHT)).status_code == 423

    # Move the lock into the past
    user = await auth_services.store.get_by_id(db_session, user_id)
    await db_session.refresh(user)
    user.lockout_until = datetime.now(timezone.utc) - timedelta(seconds=1)
    user.failed_login_attempts = 2
    await db_session.commit()

    response = await client.post("/v1/auth/login", json=RIGHT)
    assert response.status_code == 200

    await db_session.refresh(user)
    assert user.failed_login_attempts == 0
    assert user.lockout_until is None
    assert user.last_login is not None


@pytest.mark.asyncio
async def test_locked_users_listed_for_admin(client, admin_headers):
    await register_alice(client)
    for _ in range(5):
        await client.post("/v1/auth/login", json=WRONG)

    response = await client.get("/v1/users/locked", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["users"][0]["email"] == "alice@example.com"
    assert data["users"][0]["lockoutUntil"] is not None
