"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import audit, auth, users

router = APIRouter()

# Authentication and session lifecycle
router.include_router(auth.router)

# Admin: user management and the audit trail
router.include_router(users.router)
router.include_router(audit.router)
