"""
User management schemas (admin endpoints).
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field
from pydantic.alias_generators import to_camel

from backend.app.models.enums import UserRole
from backend.app.schemas.auth import CamelModel, UserResponse


class UserDetail(UserResponse):
    """Admin view of a user: adds the lockout state."""
    failed_login_attempts: int = 0
    lockout_until: Optional[datetime] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class UserListResponse(CamelModel):
    users: List[UserDetail]
    total: int
    page: int
    page_size: int


class LockedUsersResponse(CamelModel):
    users: List[UserDetail]
    total: int


class RoleUpdateRequest(CamelModel):
    role: UserRole = Field(..., description="New role")
