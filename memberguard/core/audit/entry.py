"""Audit entry value type."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class AuditSeverity(str, Enum):
    """Severity levels for audit log entries."""
    DEBUG = "debug"       # Low-level debugging info
    INFO = "info"         # Standard transitions
    WARNING = "warning"   # Super-admin overrides and other exceptional paths
    ERROR = "error"       # Failed operations
    CRITICAL = "critical" # Security-relevant events (permission denials)


class AuditPhase(str, Enum):
    """Where in a transition an entry was written."""
    INTENT = "intent"         # Written ahead of the state change
    COMMITTED = "committed"   # State change applied
    ABORTED = "aborted"       # Intent written, state change did not happen
    DENIED = "denied"         # Guard refused the action


@dataclass(frozen=True)
class AuditEntry:
    """One append-only audit record."""

    actor_id: Optional[str]
    action: str
    resource_kind: str
    resource_id: str
    before_state: Optional[str]
    after_state: Optional[str]
    timestamp: datetime = field(default_factory=datetime.utcnow)
    reason: Optional[str] = None
    phase: AuditPhase = AuditPhase.COMMITTED
    severity: AuditSeverity = AuditSeverity.INFO
    details: Dict[str, Any] = field(default_factory=dict)

    def with_phase(self, phase: AuditPhase) -> "AuditEntry":
        return replace(self, phase=phase)
