"""Database models for MemberGuard."""

from memberguard.db.models.user import User
from memberguard.db.models.employee import Employee
from memberguard.db.models.session import Session
from memberguard.db.models.assignment import AgentAssignment
from memberguard.db.models.resource import ResourceState
from memberguard.db.models.prize_draw import PrizeDrawEntry
from memberguard.db.models.audit import AuditLog, AuditLogImmutableError

__all__ = [
    "User",
    "Employee",
    "Session",
    "AgentAssignment",
    "ResourceState",
    "PrizeDrawEntry",
    "AuditLog",
    "AuditLogImmutableError",
]
