"""Pytest configuration and shared fixtures."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from memberguard.core.audit import AuditPolicy, AuditRecorder
from memberguard.core.config import Settings
from memberguard.core.lifecycle import LifecycleEngine, PrizeDrawEntries
from memberguard.core.rbac import BaseRole
from memberguard.db.base import Base
from memberguard.db import models  # noqa: F401  (registers tables)

from tests.fakes import (
    FrozenClock,
    make_principal,
    InMemoryAssignmentStore,
    InMemoryAuditStore,
    InMemoryEntryStore,
    InMemoryResourceStore,
)


# ---------------------------------------------------------------------------
# Principals
# ---------------------------------------------------------------------------


@pytest.fixture
def chairman():
    """Chairman designation on a manager_admin base role."""
    return make_principal(BaseRole.MANAGER_ADMIN, "chairman-1", category="chairman")


@pytest.fixture
def super_admin():
    return make_principal(BaseRole.SUPER_ADMIN, "super-1")


@pytest.fixture
def manager():
    return make_principal(BaseRole.MANAGER_ADMIN, "manager-1")


@pytest.fixture
def worker():
    return make_principal(BaseRole.WORKER_ADMIN, "worker-1")


@pytest.fixture
def agent():
    return make_principal(BaseRole.AGENT, "agent-1")


@pytest.fixture
def member():
    return make_principal(BaseRole.MEMBER, "member-1")


# ---------------------------------------------------------------------------
# In-memory kernel collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def resource_store():
    return InMemoryResourceStore()


@pytest.fixture
def audit_store():
    return InMemoryAuditStore()


@pytest.fixture
def assignment_store():
    return InMemoryAssignmentStore()


@pytest.fixture
def entry_store():
    return InMemoryEntryStore()


@pytest.fixture
def audit_policy():
    return AuditPolicy()


@pytest.fixture
def engine(resource_store, assignment_store, audit_store, audit_policy, clock):
    return LifecycleEngine(
        resource_store,
        assignment_store,
        AuditRecorder(audit_store),
        policy=audit_policy,
        clock=clock,
    )


@pytest.fixture
def entries(entry_store, audit_store, clock):
    return PrizeDrawEntries(entry_store, AuditRecorder(audit_store), clock=clock)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'memberguard.db'}",
        secret_key="test-secret-key",
        conflict_retries=1,
        session_check_timeout_seconds=5.0,
    )


@pytest.fixture
def db_engine(settings):
    """File-backed SQLite so separate sessions behave like separate connections."""
    engine = create_engine(settings.database_url, connect_args={"check_same_thread": False})
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user_factory(db_session):
    from tests.factories import create_user

    def _create(**kwargs):
        return create_user(db_session, **kwargs)
    return _create
