"""
Credential store.

The only code that reads or writes credential columns of ``User``. Passwords
are hashed on the way in; emails are lowercased on write and on lookup.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from backend.app.core.security import PasswordHasher
from backend.app.domain.auth.lockout import LockoutPolicy, FailureDecision
from backend.app.models.enums import UserRole
from backend.app.models.user import User


def normalize_email(email: str) -> str:
    return email.strip().lower()


class CredentialStore:
    """Reads and writes the credential columns of users."""

    def __init__(self, hasher: PasswordHasher):
        self.hasher = hasher

    async def get_by_id(self, db: AsyncSession, user_id: int) -> Optional[User]:
        return await db.get(User, user_id)

    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == normalize_email(email)))
        return result.scalar_one_or_none()

    async def get_by_reset_token_hash(self, db: AsyncSession, token_hash: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.password_reset_token == token_hash))
        return result.scalar_one_or_none()

    async def create_user(
        self,
        db: AsyncSession,
        name: str,
        email: str,
        password: str,
        role: UserRole = UserRole.EMPLOYEE,
    ) -> User:
        """Add a new user with a hashed password. Caller commits."""
        user = User(
            name=name.strip(),
            email=normalize_email(email),
            role=role,
            is_active=True,
            failed_login_attempts=0,
        )
        await self.set_password(user, password)
        db.add(user)
        await db.flush()
        return user

    async def set_password(self, user: User, plaintext: str) -> None:
        user.hashed_password = await self.hasher.hash_async(plaintext)

    async def verify_password(self, user: User, plaintext: str) -> bool:
        return await self.hasher.verify_async(plaintext, user.hashed_password)

    async def record_failed_attempt(
        self,
        db: AsyncSession,
        user: User,
        policy: LockoutPolicy,
        now: datetime,
    ) -> FailureDecision:
        """
        Count a failed password check and lock the account at the threshold.

        The increment is a single ``UPDATE ... SET n = n + 1 RETURNING n`` so
        concurrent failures cannot overwrite each other's count. Commits.
        """
        increment = (
            update(User)
            .where(User.id == user.id)
            .values(failed_login_attempts=User.failed_login_attempts + 1)
            .returning(User.failed_login_attempts)
            .execution_options(synchronize_session=False)
        )
        attempts = (await db.execute(increment)).scalar_one()
        decision = policy.on_failure(attempts, now)

        if decision.locks:
            await db.execute(
                update(User)
                .where(User.id == user.id)
                .values(lockout_until=decision.lockout_until, failed_login_attempts=0)
                .execution_options(synchronize_session=False)
            )
            attempts = 0
            set_committed_value(user, "lockout_until", decision.lockout_until)

        # Keep the in-memory row in step without marking it dirty
        set_committed_value(user, "failed_login_attempts", attempts)
        await db.commit()
        return decision
