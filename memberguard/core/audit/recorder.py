"""Audit recorder.

Appends entries to the audit store. Entries are never read back during a
transition, so the recorder holds no locks; delivery is at-least-once
from the caller's point of view.
"""

import logging
from dataclasses import replace
from typing import Any, Optional

from memberguard.core.errors import StorageUnavailableError
from memberguard.core.stores import AuditStore
from .entry import AuditEntry

logger = logging.getLogger(__name__)


# Keys whose values never reach the audit log
SENSITIVE_FIELDS = {
    "password",
    "password_hash",
    "token",
    "access_token",
    "refresh_token",
    "session_token",
    "api_key",
    "secret",
    "id_number",
}


def redact_sensitive(data: Any) -> Any:
    """Redact sensitive fields from data."""
    if isinstance(data, dict):
        return {
            k: "[REDACTED]" if str(k).lower() in SENSITIVE_FIELDS else redact_sensitive(v)
            for k, v in data.items()
        }
    elif isinstance(data, list):
        return [redact_sensitive(item) for item in data]
    return data


class AuditRecorder:
    """Append-only writer in front of an AuditStore."""

    def __init__(self, store: AuditStore):
        self.store = store

    def record(self, entry: AuditEntry) -> None:
        """
        Append an audit entry.

        Raises:
            StorageUnavailableError: If the store could not persist the entry
        """
        redacted = replace(entry, details=redact_sensitive(entry.details))
        try:
            self.store.append(redacted)
        except StorageUnavailableError:
            logger.error(
                f"Audit write failed for {entry.action} on "
                f"{entry.resource_kind}/{entry.resource_id} ({entry.phase.value})"
            )
            raise

    def record_best_effort(self, entry: AuditEntry) -> Optional[StorageUnavailableError]:
        """Append an entry; on failure log a warning and return the error.

        The failure is surfaced to the caller as a value so it stays
        distinct from the success of the primary operation.
        """
        try:
            self.record(entry)
        except StorageUnavailableError as e:
            logger.warning(
                f"Best-effort audit entry not written for {entry.action} on "
                f"{entry.resource_kind}/{entry.resource_id}: {e}"
            )
            return e
        return None
