"""
Password reset flow.

States per account:
    NoPendingReset  (password_reset_token / password_reset_expires both NULL)
    PendingReset    (both set; the token column holds the SHA-256 digest)

``request_reset`` moves an account into PendingReset, ``consume_reset``
moves it back out, either by a successful reset or by rejecting an expired
token. The plaintext token only ever exists in memory and in the message
handed to the notifier.
"""

import logging
from typing import Callable, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import AuthConfig
from backend.app.core.security import generate_token, hash_token
from backend.app.domain.auth.credential_store import CredentialStore
from backend.app.domain.auth.lockout import as_utc, utcnow
from backend.app.domain.auth.results import AuthErrorKind, AuthFailure
from backend.app.models.user import User

logger = logging.getLogger("feastfrenzy.auth.reset")

RESET_REQUESTED_MESSAGE = "If that email is registered, a reset link has been sent"
RESET_COMPLETED_MESSAGE = "Password has been reset"


class ResetTokenNotifier:
    """
    Out-of-band delivery of reset tokens.

    Email delivery lives outside this service; the default only records that
    a token was issued. The token itself is logged in debug mode so local
    development can complete the flow without a mail server.
    """

    def __init__(self, debug: bool = False):
        self.debug = debug

    async def send(self, user: User, token: str, expires_at) -> None:
        logger.info("Password reset token issued for user %s (expires %s)", user.id, expires_at.isoformat())
        if self.debug:
            logger.debug("Reset token for %s: %s", user.email, token)


class PasswordResetService:
    """Issues single-use reset tokens and consumes them."""

    def __init__(
        self,
        config: AuthConfig,
        store: CredentialStore,
        notifier: Optional[ResetTokenNotifier] = None,
        clock: Callable = utcnow,
    ):
        self.config = config
        self.store = store
        self.notifier = notifier or ResetTokenNotifier()
        self.clock = clock

    async def request_reset(self, db: AsyncSession, email: str) -> Optional[User]:
        """
        Start a reset for *email* if it belongs to an active account.

        Returns the affected user (for auditing) or None. Callers must answer
        the client identically in both cases.
        """
        user = await self.store.get_by_email(db, email)
        if user is None or not user.is_active:
            return None

        token = generate_token()
        expires_at = self.clock() + self.config.reset_token_ttl
        user.password_reset_token = hash_token(token)
        user.password_reset_expires = expires_at
        await db.commit()

        await self.notifier.send(user, token, expires_at)
        return user

    async def consume_reset(
        self,
        db: AsyncSession,
        token: str,
        new_password: str,
    ) -> Union[User, AuthFailure]:
        """
        Redeem a reset token exactly once.

        Success sets the new password, clears the reset fields, drops the
        stored refresh token (every device has to log in again) and clears
        any lockout.
        """
        user = await self.store.get_by_reset_token_hash(db, hash_token(token))
        if user is None:
            return AuthFailure(AuthErrorKind.INVALID_RESET_TOKEN, "Invalid or expired reset token")

        now = self.clock()
        expires_at = as_utc(user.password_reset_expires)
        if expires_at is None or expires_at <= now:
            user.password_reset_token = None
            user.password_reset_expires = None
            await db.commit()
            return AuthFailure(
                AuthErrorKind.RESET_TOKEN_EXPIRED,
                "Invalid or expired reset token",
                user_id=user.id,
            )

        await self.store.set_password(user, new_password)
        user.password_reset_token = None
        user.password_reset_expires = None
        user.refresh_token = None
        user.failed_login_attempts = 0
        user.lockout_until = None
        await db.commit()

        logger.info("Password reset completed for user %s", user.id)
        return user
