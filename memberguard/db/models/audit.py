"""Audit log model for MemberGuard.

This table is IMMUTABLE. ORM event listeners refuse UPDATE and DELETE of
mapped rows, so entries can only ever be appended.
"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, JSON, Text, event

from memberguard.db.base import Base
from memberguard.db.models.user import _uuid


class AuditLogImmutableError(Exception):
    """Raised on any attempt to modify or delete an audit entry."""


class AuditLog(Base):
    """
    Immutable audit log entry.

    Records every state-changing decision and every denied attempt.
    """
    __tablename__ = "audit_logs"

    # Primary key
    id = Column(String(36), primary_key=True, default=_uuid)

    # Actor information
    actor_id = Column(String(36), nullable=True, index=True)

    # Action details
    action = Column(String(100), nullable=False, index=True)
    resource_type = Column(String(100), nullable=False, index=True)
    resource_id = Column(String(128), nullable=True, index=True)

    # Change tracking
    before_state = Column(String(32), nullable=True)
    after_state = Column(String(32), nullable=True)
    reason = Column(Text, nullable=True)
    details = Column(JSON, nullable=True)

    # Metadata
    phase = Column(String(20), nullable=False, default="committed", index=True)
    severity = Column(String(20), nullable=False, default="info", index=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    def __repr__(self) -> str:
        return f"<AuditLog {self.action} on {self.resource_type} by user {self.actor_id}>"


@event.listens_for(AuditLog, "before_update")
def _prevent_update(mapper, connection, target):
    raise AuditLogImmutableError("Audit log entries cannot be modified")


@event.listens_for(AuditLog, "before_delete")
def _prevent_delete(mapper, connection, target):
    raise AuditLogImmutableError("Audit log entries cannot be deleted")
