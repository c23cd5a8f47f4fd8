"""
Account lockout state machine.

Two states, driven purely by timestamps compared at request time:

    UNLOCKED --(failed attempt #N)--> LOCKED --(lockout_until passes)--> UNLOCKED

There is no background job and no manual unlock. While locked, attempts are
rejected before the password is looked at and the counters stay untouched.
"""

import enum
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional


class LockState(str, enum.Enum):
    UNLOCKED = "unlocked"
    LOCKED = "locked"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (SQLite drops tzinfo) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class FailureDecision:
    """What a failed attempt does to the account."""
    locks: bool
    lockout_until: Optional[datetime] = None


class LockoutPolicy:
    """Decides when failed attempts lock an account and for how long."""

    def __init__(self, max_attempts: int = 5, lockout_duration: timedelta = timedelta(minutes=15)):
        self.max_attempts = max_attempts
        self.lockout_duration = lockout_duration

    def state(self, user, now: datetime) -> LockState:
        lockout_until = as_utc(user.lockout_until)
        if lockout_until is not None and now < lockout_until:
            return LockState.LOCKED
        return LockState.UNLOCKED

    def is_locked(self, user, now: datetime) -> bool:
        return self.state(user, now) is LockState.LOCKED

    def remaining_minutes(self, user, now: datetime) -> int:
        """Whole minutes left in the lockout window, rounded up; 0 if unlocked."""
        if not self.is_locked(user, now):
            return 0
        remaining = (as_utc(user.lockout_until) - now).total_seconds()
        return max(1, math.ceil(remaining / 60))

    def on_failure(self, attempts: int, now: datetime) -> FailureDecision:
        """
        Decide the transition after a failed password check.

        Args:
            attempts: the failure count *after* this attempt was counted
            now: current time
        """
        if attempts >= self.max_attempts:
            return FailureDecision(locks=True, lockout_until=now + self.lockout_duration)
        return FailureDecision(locks=False)

    @staticmethod
    def on_success(user, now: datetime) -> None:
        """Successful login: clear the counter and any stale lock, stamp last_login."""
        user.failed_login_attempts = 0
        user.lockout_until = None
        user.last_login = now
