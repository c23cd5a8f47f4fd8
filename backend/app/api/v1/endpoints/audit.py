"""
Audit trail API endpoints (admin-only).
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.dependencies import AuthContext
from backend.app.core.guards import require_admin
from backend.app.db.session import get_db
from backend.app.models.enums import AuditAction
from backend.app.schemas.audit import AuditListResponse, AuditLogResponse, AuditTrailResponse
from backend.app.services.audit import (
    AuditQuery,
    get_failed_logins,
    get_resource_history,
    get_user_activity,
    query_audit_logs,
)

router = APIRouter(prefix="/audit", tags=["Audit"])


def _trail(logs) -> AuditTrailResponse:
    return AuditTrailResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=len(logs),
    )


@router.get("", response_model=AuditListResponse)
async def list_audit_logs(
    user_id: Optional[int] = Query(None, alias="userId"),
    action: Optional[AuditAction] = Query(None),
    resource: Optional[str] = Query(None, max_length=50),
    resource_id: Optional[int] = Query(None, alias="resourceId"),
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Filtered, paginated audit listing, most recent first.

    Query params: userId, action, resource, resourceId, from, to, page, limit.
    """
    filters = AuditQuery(
        user_id=user_id,
        action=action,
        resource=resource,
        resource_id=resource_id,
        date_from=date_from,
        date_to=date_to,
    )
    result = await query_audit_logs(db, filters, page=page, limit=limit)
    return AuditListResponse(
        logs=[AuditLogResponse.model_validate(log) for log in result["logs"]],
        total=result["total"],
        page=result["page"],
        page_size=result["page_size"],
    )


@router.get("/failed-logins", response_model=AuditTrailResponse)
async def failed_logins(
    since: Optional[datetime] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Recent failed logins for security monitoring."""
    return _trail(await get_failed_logins(db, since=since, limit=limit))


@router.get("/resource/{resource}/{resource_id}", response_model=AuditTrailResponse)
async def resource_history(
    resource: str,
    resource_id: int,
    limit: int = Query(50, ge=1, le=500),
    admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return _trail(await get_resource_history(db, resource, resource_id, limit=limit))


@router.get("/user/{user_id}", response_model=AuditTrailResponse)
async def user_activity(
    user_id: int,
    limit: int = Query(100, ge=1, le=500),
    admin: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return _trail(await get_user_activity(db, user_id, limit=limit))
