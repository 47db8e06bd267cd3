"""Append-only audit trail for state-changing decisions."""

from .entry import AuditEntry, AuditPhase, AuditSeverity
from .policy import AuditPolicy, DEFAULT_REQUIRED_ACTIONS, load_audit_policy
from .recorder import AuditRecorder, redact_sensitive

__all__ = [
    "AuditEntry",
    "AuditPhase",
    "AuditSeverity",
    "AuditPolicy",
    "DEFAULT_REQUIRED_ACTIONS",
    "load_audit_policy",
    "AuditRecorder",
    "redact_sensitive",
]
