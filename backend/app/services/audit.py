"""
Audit logging service for tracking security events and mutations.

Recording is observational: the primary action has already succeeded or
failed by the time ``record`` is called, and nothing that happens while
writing the entry is ever reported back to the caller.

Dispatch model
--------------
* Started recorder (application lifespan): entries are put on a bounded
  queue and written by a single background task. A full queue drops the
  entry with a warning, so delivery is at-most-once.
* Stopped recorder (scripts, tests): entries are written inline.

Either way every entry is written in its own session, never inside the
request's transaction.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.observability import RequestMeta
from backend.app.models.audit_log import AuditLog
from backend.app.models.enums import AuditAction

logger = logging.getLogger("feastfrenzy.audit")

REDACTED = "[REDACTED]"

# Compared after lowercasing and stripping underscores, so both
# ``refresh_token`` and ``refreshToken`` match.
SENSITIVE_FIELDS = frozenset({
    "password",
    "hashedpassword",
    "refreshtoken",
    "passwordresettoken",
    "passwordresetexpires",
    "accesstoken",
    "token",
    "secret",
    "apikey",
    "privatekey",
})


def _is_sensitive(key: Any) -> bool:
    return isinstance(key, str) and key.replace("_", "").lower() in SENSITIVE_FIELDS


def redact(value: Any) -> Any:
    """
    Return a copy of *value* with every secret field replaced by "[REDACTED]".

    Walks dicts, lists and tuples recursively. Objects exposing ``snapshot()``
    (ORM rows) are converted first; datetimes become ISO strings so the
    result is JSON serializable.
    """
    if value is None:
        return None
    if hasattr(value, "snapshot"):
        value = value.snapshot()
    if isinstance(value, dict):
        return {
            key: REDACTED if _is_sensitive(key) else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(item) for item in value]
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, "value") and isinstance(getattr(value, "value"), (str, int)):
        # Enum members
        return value.value
    return value


@dataclass
class AuditEntry:
    """An already-redacted audit record waiting to be written."""
    action: AuditAction
    resource: str
    resource_id: Optional[int] = None
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    user_id: Optional[int] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    request_id: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_model(self) -> AuditLog:
        return AuditLog(
            user_id=self.user_id,
            action=self.action,
            resource=self.resource,
            resource_id=self.resource_id,
            old_value=self.old_value,
            new_value=self.new_value,
            ip_address=self.ip_address,
            user_agent=self.user_agent,
            request_id=self.request_id,
            timestamp=self.timestamp,
        )


class AuditRecorder:
    """Append-only, never-failing audit writer."""

    def __init__(self, session_factory, max_queue_size: int = 1000):
        self.session_factory = session_factory
        self.max_queue_size = max_queue_size
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def start(self) -> None:
        """Switch to queued dispatch and start the background writer."""
        if self.running:
            return
        self._queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._worker = asyncio.create_task(self._drain(), name="audit-writer")
        logger.info("Audit writer started (queue size %s)", self.max_queue_size)

    async def stop(self) -> None:
        """Flush pending entries, then stop the background writer."""
        if not self.running:
            return
        await self._queue.join()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        self._queue = None
        logger.info("Audit writer stopped")

    async def record(
        self,
        action: AuditAction,
        resource: str,
        resource_id: Optional[int] = None,
        old_value: Any = None,
        new_value: Any = None,
        actor_id: Optional[int] = None,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> None:
        """
        Record one event. Never raises.

        Args:
            action: What happened (AuditAction)
            resource: Resource tag, e.g. "auth" or "user"
            resource_id: ID of the affected record, if any
            old_value: State before the change (redacted before storage)
            new_value: State after the change (redacted before storage)
            actor_id: User who performed the action; None for system or
                pre-authentication events
            ip: Client IP address
            user_agent: Client user agent
            request_id: Correlation id of the originating request
        """
        try:
            entry = AuditEntry(
                action=AuditAction(action),
                resource=resource,
                resource_id=resource_id,
                old_value=redact(old_value),
                new_value=redact(new_value),
                user_id=actor_id,
                ip_address=ip,
                user_agent=user_agent,
                request_id=request_id,
            )
        except Exception:
            logger.exception("Could not build audit entry for %s %s", action, resource)
            return

        if self.running:
            try:
                self._queue.put_nowait(entry)
            except asyncio.QueueFull:
                logger.warning(
                    "Audit queue full, dropping %s entry for %s/%s",
                    entry.action.value, resource, resource_id,
                    extra={"request_id": request_id},
                )
            return

        await self._write(entry)

    async def record_for_request(
        self,
        meta: RequestMeta,
        action: AuditAction,
        resource: str,
        resource_id: Optional[int] = None,
        old_value: Any = None,
        new_value: Any = None,
        actor_id: Optional[int] = None,
    ) -> None:
        """Shortcut for handlers: takes ip/user agent/request id from *meta*."""
        await self.record(
            action,
            resource,
            resource_id=resource_id,
            old_value=old_value,
            new_value=new_value,
            actor_id=actor_id,
            ip=meta.ip_address,
            user_agent=meta.user_agent,
            request_id=meta.request_id,
        )

    async def _drain(self) -> None:
        while True:
            entry = await self._queue.get()
            try:
                await self._write(entry)
            finally:
                self._queue.task_done()

    async def _write(self, entry: AuditEntry) -> None:
        try:
            async with self.session_factory() as session:
                session.add(entry.to_model())
                await session.commit()
        except Exception:
            logger.exception(
                "Failed to write audit entry",
                extra={
                    "action": entry.action.value,
                    "resource": entry.resource,
                    "resource_id": entry.resource_id,
                    "request_id": entry.request_id,
                },
            )
            return

        logger.debug(
            "Audit entry written: %s %s/%s by %s",
            entry.action.value, entry.resource, entry.resource_id, entry.user_id,
        )


# Query side

@dataclass
class AuditQuery:
    user_id: Optional[int] = None
    action: Optional[AuditAction] = None
    resource: Optional[str] = None
    resource_id: Optional[int] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None


def _apply_filters(stmt, filters: AuditQuery):
    if filters.user_id is not None:
        stmt = stmt.where(AuditLog.user_id == filters.user_id)
    if filters.action:
        stmt = stmt.where(AuditLog.action == filters.action)
    if filters.resource:
        stmt = stmt.where(AuditLog.resource == filters.resource)
    if filters.resource_id is not None:
        stmt = stmt.where(AuditLog.resource_id == filters.resource_id)
    if filters.date_from:
        stmt = stmt.where(AuditLog.timestamp >= filters.date_from)
    if filters.date_to:
        stmt = stmt.where(AuditLog.timestamp <= filters.date_to)
    return stmt


async def query_audit_logs(
    db: AsyncSession,
    filters: AuditQuery,
    page: int = 1,
    limit: int = 20,
) -> Dict[str, Any]:
    """
    Filtered, paginated audit listing, most recent first.

    Returns:
        {"logs": [...], "total": int, "page": int, "page_size": int}
    """
    count_stmt = _apply_filters(select(func.count(AuditLog.id)), filters)
    total = (await db.execute(count_stmt)).scalar() or 0

    stmt = _apply_filters(select(AuditLog), filters)
    stmt = stmt.order_by(desc(AuditLog.timestamp), desc(AuditLog.id))
    stmt = stmt.offset((page - 1) * limit).limit(limit)
    result = await db.execute(stmt)

    return {
        "logs": list(result.scalars().all()),
        "total": total,
        "page": page,
        "page_size": limit,
    }


async def get_resource_history(
    db: AsyncSession,
    resource: str,
    resource_id: int,
    limit: int = 50,
) -> List[AuditLog]:
    """Change history of a single record, most recent first."""
    stmt = (
        select(AuditLog)
        .where(AuditLog.resource == resource, AuditLog.resource_id == resource_id)
        .order_by(desc(AuditLog.timestamp), desc(AuditLog.id))
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_user_activity(
    db: AsyncSession,
    user_id: int,
    limit: int = 100,
) -> List[AuditLog]:
    """Everything a user did, most recent first."""
    stmt = (
        select(AuditLog)
        .where(AuditLog.user_id == user_id)
        .order_by(desc(AuditLog.timestamp), desc(AuditLog.id))
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_failed_logins(
    db: AsyncSession,
    since: Optional[datetime] = None,
    limit: int = 100,
) -> List[AuditLog]:
    """Recent LOGIN_FAILED entries for security monitoring."""
    stmt = select(AuditLog).where(AuditLog.action == AuditAction.LOGIN_FAILED)
    if since:
        stmt = stmt.where(AuditLog.timestamp >= since)
    stmt = stmt.order_by(desc(AuditLog.timestamp), desc(AuditLog.id)).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())
