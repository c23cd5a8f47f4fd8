"""
User management API endpoints (admin-only).

Accounts are never deleted here: deactivation is the soft delete. Every
change is audited as an UPDATE with before/after snapshots and evicts the
cached user listings.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.dependencies import (
    AuthContext,
    get_audit_recorder,
    get_cache_invalidator,
    get_request_meta,
)
from backend.app.core.exceptions import RequestValidationFailed, ResourceNotFoundError
from backend.app.core.guards import require_admin
from backend.app.core.observability import RequestMeta
from backend.app.db.session import get_db
from backend.app.domain.auth.lockout import utcnow
from backend.app.models.enums import AuditAction, UserRole
from backend.app.models.user import User
from backend.app.schemas.user import LockedUsersResponse, RoleUpdateRequest, UserDetail, UserListResponse
from backend.app.services.audit import AuditRecorder
from backend.app.services.cache import USERS_CACHE_PATTERN, CacheInvalidator

router = APIRouter(prefix="/users", tags=["Users"])


async def _load_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise ResourceNotFoundError("User", user_id)
    return user


async def _apply_change(
    db: AsyncSession,
    user: User,
    before: dict,
    admin: AuthContext,
    audit: AuditRecorder,
    cache: CacheInvalidator,
    meta: RequestMeta,
) -> UserDetail:
    """Commit a change already made on *user*, then audit it and evict caches."""
    await db.commit()
    await db.refresh(user)

    await audit.record_for_request(
        meta,
        AuditAction.UPDATE,
        "user",
        resource_id=user.id,
        old_value=before,
        new_value=user,
        actor_id=admin.user_id,
    )
    await cache.invalidate_pattern(USERS_CACHE_PATTERN)
    return UserDetail.model_validate(user)


@router.get("", response_model=UserListResponse)
async def list_users(
    role: Optional[UserRole] = Query(None),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """List users, newest first."""
    query = select(User)
    count_query = select(func.count(User.id))
    if role is not None:
        query = query.where(User.role == role)
        count_query = count_query.where(User.role == role)
    if is_active is not None:
        query = query.where(User.is_active == is_active)
        count_query = count_query.where(User.is_active == is_active)

    total = (await db.execute(count_query)).scalar() or 0

    query = query.order_by(User.created_at.desc(), User.id.desc()).offset((page - 1) * limit).limit(limit)
    users = (await db.execute(query)).scalars().all()

    return UserListResponse(
        users=[UserDetail.model_validate(user) for user in users],
        total=total,
        page=page,
        page_size=limit,
    )


@router.get("/locked", response_model=LockedUsersResponse)
async def list_locked_users(
    admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Accounts currently inside their lockout window."""
    result = await db.execute(
        select(User).where(User.lockout_until > utcnow()).order_by(User.lockout_until.desc())
    )
    users = result.scalars().all()
    return LockedUsersResponse(users=[UserDetail.model_validate(user) for user in users], total=len(users))


@router.get("/{user_id}", response_model=UserDetail)
async def get_user(
    user_id: int,
    admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return UserDetail.model_validate(await _load_user(db, user_id))


@router.post("/{user_id}/deactivate", response_model=UserDetail)
async def deactivate_user(
    user_id: int,
    admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit_recorder),
    cache: CacheInvalidator = Depends(get_cache_invalidator),
    meta: RequestMeta = Depends(get_request_meta),
):
    """
    Deactivate a user and end their sessions.

    The stored refresh token is dropped; outstanding access tokens stop
    working on the next request because the gate re-checks ``is_active``.
    """
    if user_id == admin.user_id:
        raise RequestValidationFailed("Cannot deactivate yourself")

    user = await _load_user(db, user_id)
    if not user.is_active:
        raise RequestValidationFailed("User is already deactivated")

    before = user.snapshot()
    user.is_active = False
    user.refresh_token = None
    return await _apply_change(db, user, before, admin, audit, cache, meta)


@router.post("/{user_id}/reactivate", response_model=UserDetail)
async def reactivate_user(
    user_id: int,
    admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit_recorder),
    cache: CacheInvalidator = Depends(get_cache_invalidator),
    meta: RequestMeta = Depends(get_request_meta),
):
    user = await _load_user(db, user_id)
    if user.is_active:
        raise RequestValidationFailed("User is already active")

    before = user.snapshot()
    user.is_active = True
    return await _apply_change(db, user, before, admin, audit, cache, meta)


@router.patch("/{user_id}/role", response_model=UserDetail)
async def change_role(
    user_id: int,
    payload: RoleUpdateRequest,
    admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit_recorder),
    cache: CacheInvalidator = Depends(get_cache_invalidator),
    meta: RequestMeta = Depends(get_request_meta),
):
    """Change a user's role. Admins cannot change their own role."""
    if user_id == admin.user_id:
        raise RequestValidationFailed("Cannot change your own role")

    user = await _load_user(db, user_id)
    before = user.snapshot()
    user.role = payload.role
    return await _apply_change(db, user, before, admin, audit, cache, meta)
