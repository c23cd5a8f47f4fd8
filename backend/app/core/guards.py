"""
Security guards for role-based and ownership-based access control.

Role checks are FastAPI dependencies layered on ``authenticate``. Ownership
checks are plain predicates over an already-authenticated ``AuthContext``;
they never touch the database or the request.
"""

from typing import Any, Dict, Optional

from fastapi import Depends

from backend.app.core.dependencies import AuthContext, authenticate
from backend.app.core.exceptions import InsufficientPermissionsError
from backend.app.models.enums import UserRole

# Roles that see every record regardless of ownership
PRIVILEGED_ROLES = frozenset({UserRole.ADMIN, UserRole.MANAGER})


def authorize(*allowed_roles: UserRole):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/users")
        async def list_users(ctx: AuthContext = Depends(authorize(UserRole.ADMIN))):
            ...

    Raises:
        InsufficientPermissionsError: 403 if the caller's role is not allowed
    """
    allowed = frozenset(UserRole(role) for role in allowed_roles)

    async def role_checker(ctx: AuthContext = Depends(authenticate)) -> AuthContext:
        if ctx.role not in allowed:
            raise InsufficientPermissionsError(
                "Access denied. Required role: " + ", ".join(sorted(r.value for r in allowed)),
                details={"required_roles": sorted(r.value for r in allowed), "role": ctx.role.value},
            )
        return ctx

    return role_checker


require_admin = authorize(UserRole.ADMIN)


def is_privileged(ctx: AuthContext) -> bool:
    return ctx.role in PRIVILEGED_ROLES


def check_ownership(ctx: AuthContext, owner_id: Optional[int]) -> bool:
    """True if *ctx* may access a record owned by *owner_id*."""
    if is_privileged(ctx):
        return True
    return owner_id is not None and owner_id == ctx.user_id


def enforce_ownership(ctx: AuthContext, owner_id: Optional[int], resource_name: str = "resource") -> None:
    """
    Raise 403 unless *ctx* may access the record.

    Raises:
        InsufficientPermissionsError
    """
    if not check_ownership(ctx, owner_id):
        raise InsufficientPermissionsError(
            f"Access denied. You do not have permission to access this {resource_name}."
        )


def filter_by_ownership(ctx: AuthContext) -> Optional[int]:
    """
    Owner id to restrict list queries by.

    Usage:
        owner_filter = filter_by_ownership(ctx)
        if owner_filter is not None:
            query = query.where(Purchase.user_id == owner_filter)

    Returns:
        None for admins and managers (no filtering), else the caller's id
    """
    if is_privileged(ctx):
        return None
    return ctx.user_id


def ensure_ownership(ctx: AuthContext, payload: Dict[str, Any], owner_field: str = "user_id") -> Dict[str, Any]:
    """
    Stamp the owner on a create payload.

    Non-privileged callers always own what they create, whatever the payload
    says. Privileged callers may create on behalf of someone else; when they
    don't name an owner, they own the record themselves.
    """
    stamped = dict(payload)
    if not is_privileged(ctx) or stamped.get(owner_field) is None:
        stamped[owner_field] = ctx.user_id
    return stamped


class OwnershipGuard:
    """
    Class-based ownership guard for routers that prefer an object.

    Usage:
        ownership_guard = OwnershipGuard("purchase")

        @router.get("/purchases/{purchase_id}")
        async def get_purchase(purchase_id: int, ctx: AuthContext = Depends(authenticate), ...):
            purchase = await load(purchase_id)
            ownership_guard.enforce(ctx, purchase.user_id)
            return purchase
    """

    def __init__(self, resource_name: str = "resource"):
        self.resource_name = resource_name

    def enforce(self, ctx: AuthContext, owner_id: Optional[int]) -> None:
        enforce_ownership(ctx, owner_id, self.resource_name)

    def filter_by_ownership(self, ctx: AuthContext) -> Optional[int]:
        return filter_by_ownership(ctx)
