"""Prize-draw entries.

Entering a draw is a one-shot transition with no state to move through:
either the (user, draw) entry exists or it does not. ``ensure_entry`` is
idempotent. Uniqueness is enforced by the entry store, and a unique
constraint violation on insert means another request got there first.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from memberguard.core.audit import AuditEntry, AuditRecorder
from memberguard.core.errors import PayloadValidationError, StorageUnavailableError
from memberguard.core.rbac.permissions import Action, Permission, Resource
from memberguard.core.stores import DuplicateEntryError, EntryRecord, EntryStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntryResult:
    entry: EntryRecord
    created: bool
    audit_error: Optional[StorageUnavailableError] = None


class PrizeDrawEntries:
    def __init__(
        self,
        store: EntryStore,
        recorder: AuditRecorder,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.recorder = recorder
        self._clock = clock or datetime.utcnow

    def ensure_entry(self, user_id: str, draw_id: str) -> EntryResult:
        """
        Enter ``user_id`` into ``draw_id`` unless already entered.

        Returns:
            EntryResult with the persisted entry; ``created`` is False when
            the entry already existed

        Raises:
            PayloadValidationError: Empty user or draw id
            StorageUnavailableError: Store failure
        """
        if not user_id:
            raise PayloadValidationError("User id is required", field="user_id")
        if not draw_id:
            raise PayloadValidationError("Draw id is required", field="draw_id")

        existing = self.store.find(user_id, draw_id)
        if existing is not None:
            return EntryResult(entry=existing, created=False)

        try:
            entry = self.store.insert(user_id, draw_id, self._clock())
        except DuplicateEntryError:
            existing = self.store.find(user_id, draw_id)
            if existing is None:
                raise StorageUnavailableError(
                    f"Entry for user {user_id} in draw {draw_id} rejected as duplicate but not found"
                )
            logger.info(f"User {user_id} already entered draw {draw_id}")
            return EntryResult(entry=existing, created=False)

        audit_error = self.recorder.record_best_effort(AuditEntry(
            actor_id=user_id,
            action=str(Permission(Resource.PRIZE_DRAW_ENTRY, Action.CREATE)),
            resource_kind=Resource.PRIZE_DRAW_ENTRY.value,
            resource_id=f"{draw_id}:{user_id}",
            before_state=None,
            after_state="entered",
            timestamp=entry.entered_at,
            details={"draw_id": draw_id},
        ))
        logger.info(f"User {user_id} entered draw {draw_id}")
        return EntryResult(entry=entry, created=True, audit_error=audit_error)
