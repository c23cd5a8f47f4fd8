"""
Audit trail schemas.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic.alias_generators import to_camel

from backend.app.models.enums import AuditAction
from backend.app.schemas.auth import CamelModel


class AuditLogResponse(CamelModel):
    """Schema for a single audit log entry."""
    id: int
    user_id: Optional[int] = None
    action: AuditAction
    resource: str
    resource_id: Optional[int] = None
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    request_id: Optional[str] = None
    timestamp: datetime

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class AuditListResponse(CamelModel):
    """Paginated audit listing."""
    logs: List[AuditLogResponse]
    total: int
    page: int
    page_size: int


class AuditTrailResponse(CamelModel):
    """Unpaginated audit trail (resource history, user activity, failed logins)."""
    logs: List[AuditLogResponse]
    total: int
