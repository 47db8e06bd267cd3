"""SQLAlchemy implementations of the kernel's store contracts.

Session and directory lookups run on the principal resolver's worker
threads, so those stores open their own short-lived sessions from a
session factory. The remaining stores share the request's session.

Any SQLAlchemy failure other than a constraint violation is rolled back
and reported as StorageUnavailableError.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from memberguard.core.audit import AuditEntry
from memberguard.core.config import Settings, get_settings
from memberguard.core.errors import StorageUnavailableError
from memberguard.core.security import decode_session_claims
from memberguard.core.stores import (
    AssignmentStore,
    AuditStore,
    DirectoryStore,
    DuplicateEntryError,
    EntryRecord,
    EntryStore,
    ResourceRecord,
    ResourceStore,
    RoleFacts,
    SessionInfo,
    SessionStore,
    StateWrite,
    WriteResult,
)
from memberguard.db.models import (
    AgentAssignment,
    AuditLog,
    Employee,
    PrizeDrawEntry,
    ResourceState,
    Session as SessionModel,
    User,
)

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


def _unavailable(db: Session, operation: str, error: SQLAlchemyError) -> StorageUnavailableError:
    db.rollback()
    logger.error(f"{operation} failed: {error}")
    return StorageUnavailableError(f"{operation} failed")


class SqlSessionStore(SessionStore):
    """Validates session tokens against the sessions table."""

    def __init__(self, session_factory: SessionFactory, settings: Optional[Settings] = None):
        self.session_factory = session_factory
        self.settings = settings or get_settings()

    def validate(self, token: str) -> Optional[SessionInfo]:
        claims = decode_session_claims(token, self.settings)
        if claims is None:
            return None
        user_id, jti = claims

        db = self.session_factory()
        try:
            session = db.query(SessionModel).filter(
                SessionModel.token_jti == jti,
                SessionModel.revoked_at.is_(None)
            ).first()
            if session is None or session.user_id != user_id:
                return None
            return SessionInfo(
                user_id=session.user_id,
                expires_at=session.expires_at,
                session_id=session.id,
            )
        except SQLAlchemyError as e:
            raise _unavailable(db, "Session lookup", e)
        finally:
            db.close()


class SqlDirectoryStore(DirectoryStore):
    """Reads role facts from users and the employee directory."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def get_role_facts(self, user_id: str) -> Optional[RoleFacts]:
        db = self.session_factory()
        try:
            user = db.query(User).filter(User.id == user_id).first()
            if user is None or not user.is_active:
                return None
            employee = db.query(Employee).filter(
                Employee.user_id == user_id,
                Employee.is_active.is_(True)
            ).first()
            return RoleFacts(
                base_role=user.base_role,
                employee_role_category=employee.role_category if employee else None,
            )
        except SQLAlchemyError as e:
            raise _unavailable(db, "Directory lookup", e)
        finally:
            db.close()


class SqlAssignmentStore(AssignmentStore):
    def __init__(self, db: Session):
        self.db = db

    def is_assigned(self, agent_id: str, member_id: str) -> bool:
        try:
            assignment = self.db.query(AgentAssignment.id).filter(
                AgentAssignment.agent_id == agent_id,
                AgentAssignment.member_id == member_id,
                AgentAssignment.ended_at.is_(None)
            ).first()
        except SQLAlchemyError as e:
            raise _unavailable(self.db, "Assignment lookup", e)
        return assignment is not None


class SqlResourceStore(ResourceStore):
    """Resource records with a version-conditioned UPDATE as compare-and-set."""

    def __init__(self, db: Session):
        self.db = db

    def read(self, kind: str, resource_id: str) -> Optional[ResourceRecord]:
        try:
            row = self.db.query(ResourceState).filter(
                ResourceState.kind == kind,
                ResourceState.resource_id == resource_id
            ).populate_existing().first()
        except SQLAlchemyError as e:
            raise _unavailable(self.db, f"Read of {kind} {resource_id}", e)
        if row is None:
            return None
        return ResourceRecord(
            kind=row.kind,
            resource_id=row.resource_id,
            state=row.state,
            version=row.version,
            fields=dict(row.fields or {}),
            entered_at=row.entered_at,
            entered_by=row.entered_by,
            previous_state=row.previous_state,
            created_at=row.created_at,
        )

    def insert(self, record: ResourceRecord) -> WriteResult:
        row = ResourceState(
            kind=record.kind,
            resource_id=record.resource_id,
            state=record.state,
            version=record.version,
            fields=dict(record.fields),
            entered_at=record.entered_at,
            entered_by=record.entered_by,
            previous_state=record.previous_state,
            created_at=record.created_at,
        )
        try:
            self.db.add(row)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return WriteResult.CONFLICT
        except SQLAlchemyError as e:
            raise _unavailable(self.db, f"Insert of {record.kind} {record.resource_id}", e)
        return WriteResult.OK

    def conditional_write(
        self,
        kind: str,
        resource_id: str,
        expected_version: int,
        change: StateWrite,
    ) -> WriteResult:
        stmt = (
            update(ResourceState)
            .where(
                ResourceState.kind == kind,
                ResourceState.resource_id == resource_id,
                ResourceState.version == expected_version,
            )
            .values(
                state=change.state,
                previous_state=change.previous_state,
                entered_at=change.entered_at,
                entered_by=change.entered_by,
                fields=dict(change.fields),
                version=ResourceState.version + 1,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
            if result.rowcount != 1:
                self.db.rollback()
                return WriteResult.CONFLICT
            self.db.commit()
        except SQLAlchemyError as e:
            raise _unavailable(self.db, f"Write of {kind} {resource_id}", e)
        return WriteResult.OK


class SqlAuditStore(AuditStore):
    def __init__(self, db: Session):
        self.db = db

    def append(self, entry: AuditEntry) -> None:
        log = AuditLog(
            actor_id=entry.actor_id,
            action=entry.action,
            resource_type=entry.resource_kind,
            resource_id=entry.resource_id,
            before_state=entry.before_state,
            after_state=entry.after_state,
            reason=entry.reason,
            details=entry.details or None,
            phase=entry.phase.value,
            severity=entry.severity.value,
            created_at=entry.timestamp,
        )
        try:
            self.db.add(log)
            self.db.commit()
        except SQLAlchemyError as e:
            raise _unavailable(self.db, f"Audit append for {entry.action}", e)


class SqlEntryStore(EntryStore):
    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _to_record(row: PrizeDrawEntry) -> EntryRecord:
        return EntryRecord(
            user_id=row.user_id,
            draw_id=row.draw_id,
            entered_at=row.entered_at,
            entry_id=row.id,
        )

    def find(self, user_id: str, draw_id: str) -> Optional[EntryRecord]:
        try:
            row = self.db.query(PrizeDrawEntry).filter(
                PrizeDrawEntry.user_id == user_id,
                PrizeDrawEntry.draw_id == draw_id
            ).first()
        except SQLAlchemyError as e:
            raise _unavailable(self.db, f"Entry lookup for draw {draw_id}", e)
        return self._to_record(row) if row else None

    def insert(self, user_id: str, draw_id: str, entered_at: datetime) -> EntryRecord:
        row = PrizeDrawEntry(user_id=user_id, draw_id=draw_id, entered_at=entered_at)
        try:
            self.db.add(row)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateEntryError(user_id, draw_id)
        except SQLAlchemyError as e:
            raise _unavailable(self.db, f"Entry insert for draw {draw_id}", e)
        return self._to_record(row)
