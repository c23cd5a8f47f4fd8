"""
Audit Log Database Model.

Append-only record of every mutation and authentication event.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON, Enum, ForeignKey, Index, event
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.enums import AuditAction


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - CREATE / UPDATE / DELETE from resource routers
    - LOGIN / LOGOUT / LOGIN_FAILED / PASSWORD_RESET from the auth flow

    ``user_id`` is NULL for system and pre-authentication events (e.g. a
    failed login against an unknown email). Entries outlive their user.
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
    )

    # What happened, and to what
    action = Column(Enum(AuditAction, native_enum=False, length=20), nullable=False, index=True)
    resource = Column(String(50), nullable=False, index=True)
    resource_id = Column(Integer, nullable=True, index=True)

    # Redacted before and after snapshots
    old_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)

    # Request context
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    request_id = Column(String(64), nullable=True, index=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    __table_args__ = (
        Index("ix_audit_logs_user_action_timestamp", "user_id", "action", "timestamp"),
    )

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', resource='{self.resource}', user={self.user_id})>"


@event.listens_for(AuditLog, "before_update")
def _reject_audit_update(mapper, connection, target):
    raise ValueError("Audit log entries are immutable")
