"""
Outcome types for the auth flows.

Expected failures (wrong password, locked account, reused refresh token...)
are values, not exceptions: every flow returns either its success payload or
an ``AuthFailure`` tagged with an ``AuthErrorKind``. Only genuinely
unexpected faults (database down, signing misconfigured) raise.
"""

import enum
from dataclasses import dataclass
from typing import Optional

from backend.app.core.exceptions import (
    AccountLockedError,
    AppException,
    AuthenticationError,
    ConflictError,
    InvalidResetTokenError,
    ResourceNotFoundError,
)
from backend.app.core.jwt import TokenPair
from backend.app.models.user import User

# One message for unknown email and wrong password alike
INVALID_CREDENTIALS_MESSAGE = "Invalid credentials"


class AuthErrorKind(str, enum.Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_LOCKED = "account_locked"
    ACCOUNT_DISABLED = "account_disabled"
    INVALID_REFRESH_TOKEN = "invalid_refresh_token"
    EMAIL_TAKEN = "email_taken"
    USER_NOT_FOUND = "user_not_found"
    INVALID_RESET_TOKEN = "invalid_reset_token"
    RESET_TOKEN_EXPIRED = "reset_token_expired"


@dataclass(frozen=True)
class AuthFailure:
    kind: AuthErrorKind
    message: str
    retry_after_minutes: Optional[int] = None
    # Known account the failure relates to; kept out of every HTTP response
    user_id: Optional[int] = None

    def to_exception(self) -> AppException:
        """Map the failure onto the HTTP error taxonomy."""
        if self.kind is AuthErrorKind.ACCOUNT_LOCKED:
            return AccountLockedError(self.retry_after_minutes or 1, self.message)
        if self.kind is AuthErrorKind.EMAIL_TAKEN:
            return ConflictError(self.message)
        if self.kind is AuthErrorKind.USER_NOT_FOUND:
            return ResourceNotFoundError("User")
        if self.kind in (AuthErrorKind.INVALID_RESET_TOKEN, AuthErrorKind.RESET_TOKEN_EXPIRED):
            return InvalidResetTokenError(self.message)
        return AuthenticationError(self.message)


@dataclass(frozen=True)
class SessionGrant:
    """A verified user together with their freshly issued tokens."""
    user: User
    tokens: TokenPair
