"""
Tests for the token issuer, password hasher and security configuration.
"""

from dataclasses import replace
from datetime import timedelta
from types import SimpleNamespace

import pytest
from jose import jwt

from backend.app.core.config import AuthConfig, Settings
from backend.app.core.jwt import TokenIssuer
from backend.app.core.security import PasswordHasher, generate_token, hash_token
from backend.app.models.enums import UserRole

CONFIG = AuthConfig(
    access_secret="access-secret-for-tests-0123456789",
    refresh_secret="refresh-secret-for-tests-0123456789",
    algorithm="HS256",
    access_token_ttl=timedelta(minutes=15),
    refresh_token_ttl=timedelta(days=7),
    max_login_attempts=5,
    lockout_duration=timedelta(minutes=15),
    reset_token_ttl=timedelta(minutes=60),
    hash_rounds=1000,
)

USER = SimpleNamespace(id=7, email="alice@example.com", role=UserRole.EMPLOYEE)


def test_access_token_payload():
    tokens = TokenIssuer(CONFIG).issue_pair(USER)
    payload = jwt.decode(tokens.access_token, CONFIG.access_secret, algorithms=["HS256"])

    assert payload["sub"] == "alice@example.com"
    assert payload["id"] == 7
    assert payload["role"] == "employee"
    assert payload["type"] == "access"
    assert payload["exp"] - payload["iat"] == 15 * 60


def test_refresh_tokens_are_unique_per_issuance():
    issuer = TokenIssuer(CONFIG)
    first = issuer.issue_pair(USER)
    second = issuer.issue_pair(USER)

    assert first.refresh_token != second.refresh_token
    claims = issuer.decode_refresh_token(first.refresh_token)
    assert claims.user_id == 7
    assert len(claims.token_id) == 32


def test_tokens_only_verify_with_their_own_secret():
    issuer = TokenIssuer(CONFIG)
    tokens = issuer.issue_pair(USER)

    assert issuer.decode_access_token(tokens.access_token) is not None
    assert issuer.decode_access_token(tokens.refresh_token) is None
    assert issuer.decode_refresh_token(tokens.access_token) is None


def test_expired_and_garbage_tokens_decode_to_none():
    expired = TokenIssuer(replace(CONFIG, access_token_ttl=timedelta(seconds=-1)))
    token = expired.issue_pair(USER).access_token

    issuer = TokenIssuer(CONFIG)
    assert issuer.decode_access_token(token) is None
    assert issuer.decode_access_token("garbage") is None
    assert issuer.decode_access_token("") is None


def test_token_with_wrong_type_claim_is_rejected():
    forged = jwt.encode({"id": 7, "email": "a@example.com", "role": "admin", "type": "refresh"}, CONFIG.access_secret)
    assert TokenIssuer(CONFIG).decode_access_token(forged) is None


def test_token_with_unknown_role_is_rejected():
    forged = jwt.encode({"id": 7, "email": "a@example.com", "role": "root", "type": "access"}, CONFIG.access_secret)
    assert TokenIssuer(CONFIG).decode_access_token(forged) is None


def test_hasher_round_trip():
    hasher = PasswordHasher(rounds=1000)
    digest = hasher.hash("Secure1!")

    assert digest != "Secure1!"
    assert digest.startswith("$pbkdf2-sha256$1000$")
    assert hasher.verify("Secure1!", digest)
    assert not hasher.verify("secure1!", digest)
    # Salted: same password, different digest
    assert hasher.hash("Secure1!") != digest


def test_hasher_treats_corrupt_hash_as_mismatch():
    assert PasswordHasher(rounds=1000).verify("Secure1!", "not-a-hash") is False


@pytest.mark.asyncio
async def test_hasher_async_helpers():
    hasher = PasswordHasher(rounds=1000)
    digest = await hasher.hash_async("Secure1!")
    assert await hasher.verify_async("Secure1!", digest)
    await hasher.dummy_verify_async()


def test_reset_token_helpers():
    token = generate_token()
    assert len(token) == 64
    assert hash_token(token) == hash_token(token)
    assert hash_token(token) != token


def test_config_from_settings():
    source = Settings(
        jwt_secret="a" * 32,
        jwt_refresh_secret="b" * 32,
        max_login_attempts=3,
        lockout_minutes=30,
        password_hash_rounds=2000,
    )
    config = AuthConfig.from_settings(source)
    assert config.max_login_attempts == 3
    assert config.lockout_duration == timedelta(minutes=30)
    assert config.hash_rounds == 2000


@pytest.mark.parametrize("overrides", [
    {"jwt_secret": "same", "jwt_refresh_secret": "same"},
    {"jwt_secret": ""},
    {"max_login_attempts": 0},
])
def test_config_rejects_unsafe_settings(overrides):
    source = Settings(**{"jwt_secret": "a" * 32, "jwt_refresh_secret": "b" * 32, **overrides})
    with pytest.raises(ValueError):
        AuthConfig.from_settings(source)
