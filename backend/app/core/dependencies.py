"""
Authentication dependencies for FastAPI.

This module provides the bearer-token gate for protected routes and the
accessors for the shared services built at application startup.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import AuthenticationError
from backend.app.core.observability import RequestMeta
from backend.app.db.session import get_db
from backend.app.domain.auth.factory import AuthServices
from backend.app.models.enums import UserRole
from backend.app.services.audit import AuditRecorder
from backend.app.services.cache import CacheInvalidator

# HTTP Bearer security scheme; missing headers are reported by us, as 401
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    """The authenticated caller, as established by the access token."""
    user_id: int
    email: str
    role: UserRole


def get_auth_services(request: Request) -> AuthServices:
    return request.app.state.auth


def get_audit_recorder(request: Request) -> AuditRecorder:
    return request.app.state.audit_recorder


def get_cache_invalidator(request: Request) -> CacheInvalidator:
    return request.app.state.cache


def get_request_meta(request: Request) -> RequestMeta:
    return RequestMeta.from_request(request)


async def authenticate(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth: AuthServices = Depends(get_auth_services),
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    """
    FastAPI dependency for JWT authentication.

    Checks:
    1. An ``Authorization: Bearer <token>`` header is present
    2. The token is an access token with a valid signature and expiry
    3. The user still exists and is active (real-time database check)

    Raises:
        AuthenticationError: 401 if any check fails
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Authentication required")

    claims = auth.issuer.decode_access_token(credentials.credentials)
    if claims is None:
        raise AuthenticationError("Invalid or expired access token")

    user = await auth.store.get_by_id(db, claims.user_id)
    if user is None:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")

    # The database is authoritative for the role; it may have changed since issuance
    return AuthContext(user_id=user.id, email=user.email, role=UserRole(user.role))
