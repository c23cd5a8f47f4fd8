"""
User database model.

Identity and credential record owned by the credential store.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.enums import UserRole


class User(Base):
    """
    User model for authentication and session management.

    Secrets (password hash, refresh token, reset-token digest) live here but
    are never serialized out; response schemas list public fields explicitly.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    # Always stored lowercased
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    role = Column(
        Enum(UserRole, values_callable=lambda roles: [r.value for r in roles]),
        default=UserRole.EMPLOYEE,
        nullable=False,
    )

    # Session continuity: only the most recently issued refresh token is valid
    refresh_token = Column(String(500), nullable=True)

    # SHA-256 digest of the reset token; set together with its expiry
    password_reset_token = Column(String(255), index=True, nullable=True)
    password_reset_expires = Column(DateTime(timezone=True), nullable=True)

    # Lockout state
    failed_login_attempts = Column(Integer, default=0, nullable=False)
    lockout_until = Column(DateTime(timezone=True), nullable=True)

    last_login = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def snapshot(self) -> dict:
        """Plain-dict view used for audit old/new values (redacted downstream)."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value if self.role else None,
            "is_active": self.is_active,
            "password": self.hashed_password,
            "refresh_token": self.refresh_token,
            "password_reset_token": self.password_reset_token,
        }

    def __repr__(self):
        role = self.role.value if self.role else None
        return f"<User(id={self.id}, email='{self.email}', role='{role}')>"
