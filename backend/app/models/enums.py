"""
Enumerations shared by the auth models.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Full access, including user management and the audit trail
        MANAGER: Sees every record but cannot manage users
        EMPLOYEE: Restricted to their own records (default role)
    """
    ADMIN = "admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"


class AuditAction(str, enum.Enum):
    """Actions recorded in the audit trail."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    LOGIN_FAILED = "LOGIN_FAILED"
    PASSWORD_RESET = "PASSWORD_RESET"
