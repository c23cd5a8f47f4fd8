"""
JWT token utilities for authentication.

This module mints and verifies the access/refresh token pair. The two token
kinds are signed with distinct secrets, so leaking one secret never lets an
attacker forge the other kind of token.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from jose import JWTError, jwt

from backend.app.core.config import AuthConfig
from backend.app.core.security import generate_token
from backend.app.models.enums import UserRole

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims carried by either token kind."""
    user_id: int
    email: str
    role: UserRole
    token_type: str
    token_id: Optional[str] = None


class TokenIssuer:
    """Signs and verifies access and refresh tokens."""

    def __init__(self, config: AuthConfig):
        self._config = config

    def _encode(self, payload: Dict[str, Any], secret: str, lifetime) -> str:
        now = datetime.now(timezone.utc)
        to_encode = payload.copy()
        to_encode.update({"iat": now, "exp": now + lifetime})
        return jwt.encode(to_encode, secret, algorithm=self._config.algorithm)

    def issue_pair(self, user) -> TokenPair:
        """
        Mint a fresh token pair for *user*.

        Example access payload:
            {
                "sub": "alice@example.com",
                "id": 7,
                "email": "alice@example.com",
                "role": "employee",
                "type": "access",
                "iat": 1700000000,
                "exp": 1700000900
            }

        The refresh payload carries the same claims plus a random ``jti`` so
        that two refresh tokens issued within the same second still differ.
        """
        base = {
            "sub": user.email,
            "id": user.id,
            "email": user.email,
            "role": UserRole(user.role).value,
        }
        access_token = self._encode(
            {**base, "type": ACCESS_TOKEN_TYPE},
            self._config.access_secret,
            self._config.access_token_ttl,
        )
        refresh_token = self._encode(
            {**base, "type": REFRESH_TOKEN_TYPE, "jti": generate_token(16)},
            self._config.refresh_secret,
            self._config.refresh_token_ttl,
        )
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    def decode_access_token(self, token: str) -> Optional[TokenClaims]:
        """Return claims for a valid access token, None otherwise."""
        return self._decode(token, self._config.access_secret, ACCESS_TOKEN_TYPE)

    def decode_refresh_token(self, token: str) -> Optional[TokenClaims]:
        """Return claims for a valid refresh token, None otherwise."""
        return self._decode(token, self._config.refresh_secret, REFRESH_TOKEN_TYPE)

    def _decode(self, token: str, secret: str, expected_type: str) -> Optional[TokenClaims]:
        # Malformed, wrong-secret and expired tokens all collapse to None
        try:
            payload = jwt.decode(token, secret, algorithms=[self._config.algorithm])
        except JWTError:
            return None

        if payload.get("type") != expected_type:
            return None

        try:
            return TokenClaims(
                user_id=int(payload["id"]),
                email=payload["email"],
                role=UserRole(payload["role"]),
                token_type=payload["type"],
                token_id=payload.get("jti"),
            )
        except (KeyError, TypeError, ValueError):
            return None
