"""
Authentication API endpoints.

Register, login, token refresh, logout, profile and the password reset pair.
Each handler lets the session manager decide the outcome first, then records
the audit entry, then answers the client.
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.dependencies import (
    AuthContext,
    authenticate,
    get_audit_recorder,
    get_auth_services,
    get_cache_invalidator,
    get_request_meta,
)
from backend.app.core.observability import RequestMeta
from backend.app.db.session import get_db
from backend.app.domain.auth.factory import AuthServices
from backend.app.domain.auth.password_reset import RESET_COMPLETED_MESSAGE, RESET_REQUESTED_MESSAGE
from backend.app.domain.auth.results import AuthFailure
from backend.app.models.enums import AuditAction
from backend.app.schemas.auth import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MeResponse,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenPairResponse,
    UserResponse,
)
from backend.app.services.audit import AuditRecorder
from backend.app.services.cache import USERS_CACHE_PATTERN, CacheInvalidator

logger = logging.getLogger("feastfrenzy.auth")

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _auth_response(grant) -> AuthResponse:
    return AuthResponse(
        user=UserResponse.model_validate(grant.user),
        tokens=TokenPairResponse(
            access_token=grant.tokens.access_token,
            refresh_token=grant.tokens.refresh_token,
            token_type=grant.tokens.token_type,
        ),
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    auth: AuthServices = Depends(get_auth_services),
    audit: AuditRecorder = Depends(get_audit_recorder),
    cache: CacheInvalidator = Depends(get_cache_invalidator),
    meta: RequestMeta = Depends(get_request_meta),
):
    """
    Register a new employee account and sign it in.

    Returns 409 if the email is already registered (case-insensitive).
    """
    outcome = await auth.sessions.register(db, payload.name, payload.email, payload.password)
    if isinstance(outcome, AuthFailure):
        raise outcome.to_exception()

    await audit.record_for_request(
        meta,
        AuditAction.CREATE,
        "user",
        resource_id=outcome.user.id,
        new_value=outcome.user,
        actor_id=outcome.user.id,
    )
    await cache.invalidate_pattern(USERS_CACHE_PATTERN)

    return _auth_response(outcome)


@router.post("/login", response_model=AuthResponse)
async def login(
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
    auth: AuthServices = Depends(get_auth_services),
    audit: AuditRecorder = Depends(get_audit_recorder),
    meta: RequestMeta = Depends(get_request_meta),
):
    """
    Login and return the user with a fresh token pair.

    Unknown email and wrong password produce the same 401 body. A locked
    account answers 423 with the remaining minutes, without checking the
    password.
    """
    outcome = await auth.sessions.login(db, credentials.email, credentials.password)

    if isinstance(outcome, AuthFailure):
        await audit.record_for_request(
            meta,
            AuditAction.LOGIN_FAILED,
            "auth",
            resource_id=outcome.user_id,
            new_value={"email": credentials.email, "reason": outcome.kind.value},
            actor_id=outcome.user_id,
        )
        raise outcome.to_exception()

    await audit.record_for_request(
        meta,
        AuditAction.LOGIN,
        "auth",
        resource_id=outcome.user.id,
        new_value={"email": outcome.user.email},
        actor_id=outcome.user.id,
    )
    return _auth_response(outcome)


@router.post("/refresh", response_model=TokenPairResponse)
async def refresh(
    payload: RefreshRequest,
    db: AsyncSession = Depends(get_db),
    auth: AuthServices = Depends(get_auth_services),
):
    """Rotate the refresh token. The presented token stops working immediately."""
    outcome = await auth.sessions.refresh(db, payload.refresh_token)
    if isinstance(outcome, AuthFailure):
        raise outcome.to_exception()

    return TokenPairResponse(
        access_token=outcome.access_token,
        refresh_token=outcome.refresh_token,
        token_type=outcome.token_type,
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    ctx: AuthContext = Depends(authenticate),
    db: AsyncSession = Depends(get_db),
    auth: AuthServices = Depends(get_auth_services),
    audit: AuditRecorder = Depends(get_audit_recorder),
    meta: RequestMeta = Depends(get_request_meta),
):
    await auth.sessions.logout(db, ctx.user_id)
    await audit.record_for_request(
        meta,
        AuditAction.LOGOUT,
        "auth",
        resource_id=ctx.user_id,
        actor_id=ctx.user_id,
    )
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=MeResponse)
async def me(
    ctx: AuthContext = Depends(authenticate),
    db: AsyncSession = Depends(get_db),
    auth: AuthServices = Depends(get_auth_services),
):
    """
    Get current authenticated user information.

    Raises:
        404: If the user disappeared after the token was checked
    """
    outcome = await auth.sessions.profile(db, ctx.user_id)
    if isinstance(outcome, AuthFailure):
        raise outcome.to_exception()
    return MeResponse(user=UserResponse.model_validate(outcome))


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    payload: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db),
    auth: AuthServices = Depends(get_auth_services),
    audit: AuditRecorder = Depends(get_audit_recorder),
    meta: RequestMeta = Depends(get_request_meta),
):
    """
    Start a password reset.

    The response is identical whether or not the email is registered.
    """
    user = await auth.resets.request_reset(db, payload.email)
    if user is not None:
        await audit.record_for_request(
            meta,
            AuditAction.PASSWORD_RESET,
            "auth",
            resource_id=user.id,
            new_value={"stage": "requested"},
            actor_id=user.id,
        )
    return MessageResponse(message=RESET_REQUESTED_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    payload: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
    auth: AuthServices = Depends(get_auth_services),
    audit: AuditRecorder = Depends(get_audit_recorder),
    meta: RequestMeta = Depends(get_request_meta),
):
    """Complete a password reset with the emailed token. 400 if invalid or expired."""
    outcome = await auth.resets.consume_reset(db, payload.token, payload.new_password)
    if isinstance(outcome, AuthFailure):
        logger.warning("Rejected password reset: %s", outcome.kind.value, extra={"request_id": meta.request_id})
        raise outcome.to_exception()

    await audit.record_for_request(
        meta,
        AuditAction.PASSWORD_RESET,
        "auth",
        resource_id=outcome.id,
        new_value={"stage": "completed"},
        actor_id=outcome.id,
    )
    return MessageResponse(message=RESET_COMPLETED_MESSAGE)
