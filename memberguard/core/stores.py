"""Collaborator contracts consumed by the kernel.

The kernel never talks to a database directly. It depends on these
abstract stores, and any persistence engine that satisfies them can back
it: an atomic compare-and-set on resource records and a unique
constraint on prize-draw entries are the only hard requirements.

SQLAlchemy implementations live in ``memberguard.db.stores``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any, Dict, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from memberguard.core.audit.entry import AuditEntry


class WriteResult(Enum):
    """Outcome of a conditional write or insert."""

    OK = auto()
    CONFLICT = auto()


@dataclass(frozen=True)
class SessionInfo:
    """A validated session record."""

    user_id: str
    expires_at: datetime
    session_id: Optional[str] = None


@dataclass(frozen=True)
class RoleFacts:
    """Authoritative role facts for a user, as held by the directory."""

    base_role: str
    employee_role_category: Optional[str] = None


@dataclass
class ResourceRecord:
    """Persisted lifecycle state of one resource."""

    kind: str
    resource_id: str
    state: str
    version: int = 1
    fields: Dict[str, Any] = field(default_factory=dict)
    entered_at: Optional[datetime] = None
    entered_by: Optional[str] = None
    previous_state: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "resource_id": self.resource_id,
            "state": self.state,
            "version": self.version,
            "fields": dict(self.fields),
            "entered_at": self.entered_at.isoformat() if self.entered_at else None,
            "entered_by": self.entered_by,
            "previous_state": self.previous_state,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class StateWrite:
    """New transition fields, written as one unit."""

    state: str
    previous_state: Optional[str]
    entered_at: datetime
    entered_by: Optional[str]
    fields: Dict[str, Any]


@dataclass(frozen=True)
class EntryRecord:
    """A prize-draw entry."""

    user_id: str
    draw_id: str
    entered_at: datetime
    entry_id: Optional[str] = None


class DuplicateEntryError(Exception):
    """Raised by an entry store when the (user, draw) unique constraint fires."""

    def __init__(self, user_id: str, draw_id: str):
        super().__init__(f"Entry already exists for user {user_id} in draw {draw_id}")
        self.user_id = user_id
        self.draw_id = draw_id


class SessionStore(ABC):
    @abstractmethod
    def validate(self, token: str) -> Optional[SessionInfo]:
        """Return the session behind ``token``, or None if it is not live."""


class DirectoryStore(ABC):
    @abstractmethod
    def get_role_facts(self, user_id: str) -> Optional[RoleFacts]:
        """Return role facts for an active user, or None."""


class AssignmentStore(ABC):
    @abstractmethod
    def is_assigned(self, agent_id: str, member_id: str) -> bool:
        """Check whether ``agent_id`` currently serves ``member_id``."""


class ResourceStore(ABC):
    @abstractmethod
    def read(self, kind: str, resource_id: str) -> Optional[ResourceRecord]:
        """Load the current record, or None if the id is unknown."""

    @abstractmethod
    def insert(self, record: ResourceRecord) -> WriteResult:
        """Insert a new record; CONFLICT if (kind, id) already exists."""

    @abstractmethod
    def conditional_write(
        self,
        kind: str,
        resource_id: str,
        expected_version: int,
        change: StateWrite,
    ) -> WriteResult:
        """Apply ``change`` atomically iff the stored version matches.

        On success the stored version becomes ``expected_version + 1``.
        """


class AuditStore(ABC):
    @abstractmethod
    def append(self, entry: "AuditEntry") -> None:
        """Append an entry. Raises StorageUnavailableError on failure."""


class EntryStore(ABC):
    @abstractmethod
    def find(self, user_id: str, draw_id: str) -> Optional[EntryRecord]:
        ...

    @abstractmethod
    def insert(self, user_id: str, draw_id: str, entered_at: datetime) -> EntryRecord:
        """Insert an entry. Raises DuplicateEntryError on the unique constraint."""
