"""
Session manager.

Turns verified credentials into token pairs and keeps session continuity:
each account holds exactly one live refresh token, and every issuance
(register, login, refresh) overwrites it, which immediately invalidates the
previous one.

Flow of ``login``:
1. Look up the account by lowercased email (unknown -> generic failure,
   after a dummy hash so timing matches the wrong-password path)
2. Locked? Reject with the remaining minutes, before touching the password
3. Deactivated? Reject
4. Verify the password (failure drives the lockout state machine)
5. Success: reset counters, stamp last_login, issue and persist a new pair
"""

import hmac
import logging
from typing import Callable, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.jwt import TokenIssuer, TokenPair
from backend.app.domain.auth.credential_store import CredentialStore
from backend.app.domain.auth.lockout import LockoutPolicy, utcnow
from backend.app.domain.auth.results import (
    INVALID_CREDENTIALS_MESSAGE,
    AuthErrorKind,
    AuthFailure,
    SessionGrant,
)
from backend.app.models.enums import UserRole
from backend.app.models.user import User

logger = logging.getLogger("feastfrenzy.auth")


class SessionManager:
    """Issues, rotates and revokes token pairs for users."""

    def __init__(
        self,
        store: CredentialStore,
        issuer: TokenIssuer,
        lockout: LockoutPolicy,
        clock: Callable = utcnow,
    ):
        self.store = store
        self.issuer = issuer
        self.lockout = lockout
        self.clock = clock

    async def _grant(self, db: AsyncSession, user: User) -> TokenPair:
        """Issue a pair, persist its refresh token over any previous one, commit."""
        tokens = self.issuer.issue_pair(user)
        user.refresh_token = tokens.refresh_token
        await db.commit()
        # Pick up server-side timestamps (created_at / updated_at)
        await db.refresh(user)
        return tokens

    async def register(
        self,
        db: AsyncSession,
        name: str,
        email: str,
        password: str,
    ) -> Union[SessionGrant, AuthFailure]:
        """Create an employee account and sign it in."""
        if await self.store.get_by_email(db, email):
            return AuthFailure(AuthErrorKind.EMAIL_TAKEN, "Email already registered")

        # Self-registration never grants more than the lowest role
        try:
            user = await self.store.create_user(db, name, email, password, role=UserRole.EMPLOYEE)
        except IntegrityError:
            # A concurrent registration won the unique email constraint
            await db.rollback()
            return AuthFailure(AuthErrorKind.EMAIL_TAKEN, "Email already registered")

        tokens = await self._grant(db, user)
        logger.info("Registered user %s", user.id)
        return SessionGrant(user=user, tokens=tokens)

    async def login(
        self,
        db: AsyncSession,
        email: str,
        password: str,
    ) -> Union[SessionGrant, AuthFailure]:
        user = await self.store.get_by_email(db, email)

        if user is None:
            await self.store.hasher.dummy_verify_async()
            return AuthFailure(AuthErrorKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)

        now = self.clock()

        if self.lockout.is_locked(user, now):
            minutes = self.lockout.remaining_minutes(user, now)
            return AuthFailure(
                AuthErrorKind.ACCOUNT_LOCKED,
                f"Account locked. Try again in {minutes} minute(s)",
                retry_after_minutes=minutes,
                user_id=user.id,
            )

        if not user.is_active:
            return AuthFailure(AuthErrorKind.ACCOUNT_DISABLED, "Account is deactivated", user_id=user.id)

        if not await self.store.verify_password(user, password):
            decision = await self.store.record_failed_attempt(db, user, self.lockout, now)
            if decision.locks:
                logger.warning("Account %s locked until %s", user.id, decision.lockout_until.isoformat())
            return AuthFailure(
                AuthErrorKind.INVALID_CREDENTIALS,
                INVALID_CREDENTIALS_MESSAGE,
                user_id=user.id,
            )

        self.lockout.on_success(user, now)
        tokens = await self._grant(db, user)
        return SessionGrant(user=user, tokens=tokens)

    async def refresh(
        self,
        db: AsyncSession,
        refresh_token: str,
    ) -> Union[TokenPair, AuthFailure]:
        """
        Exchange a refresh token for a new pair (rotation).

        The presented token must be the one currently stored on the account;
        anything older has been superseded and is rejected.
        """
        claims = self.issuer.decode_refresh_token(refresh_token)
        if claims is None:
            return AuthFailure(AuthErrorKind.INVALID_REFRESH_TOKEN, "Invalid or expired refresh token")

        user = await self.store.get_by_id(db, claims.user_id)
        if (
            user is None
            or not user.refresh_token
            or not hmac.compare_digest(user.refresh_token, refresh_token)
        ):
            return AuthFailure(AuthErrorKind.INVALID_REFRESH_TOKEN, "Invalid refresh token")

        if not user.is_active:
            return AuthFailure(AuthErrorKind.ACCOUNT_DISABLED, "Account is deactivated", user_id=user.id)

        return await self._grant(db, user)

    async def logout(self, db: AsyncSession, user_id: int) -> None:
        """Drop the stored refresh token. Idempotent."""
        user = await self.store.get_by_id(db, user_id)
        if user is not None and user.refresh_token is not None:
            user.refresh_token = None
            await db.commit()

    async def profile(self, db: AsyncSession, user_id: int) -> Union[User, AuthFailure]:
        user = await self.store.get_by_id(db, user_id)
        if user is None:
            return AuthFailure(AuthErrorKind.USER_NOT_FOUND, "User not found")
        return user
