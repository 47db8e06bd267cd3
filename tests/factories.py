"""Factory functions for creating test database records.

Each factory creates a model instance, adds it to the session, and
commits, since principal resolution reads through its own sessions and
only sees committed rows. All fields have sensible defaults but can be
overridden via keyword arguments.

Usage::

    from tests.factories import create_user, create_employee

    def test_something(db_session):
        user = create_user(db_session, base_role="manager_admin")
        create_employee(db_session, user=user, role_category="chairman")
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from memberguard.db.models import (
    AgentAssignment,
    Employee,
    ResourceState,
    User,
)


_counter = 0


def _next_id() -> int:
    """Return a monotonically increasing integer for unique default values."""
    global _counter
    _counter += 1
    return _counter


# ---------------------------------------------------------------------------
# Users and the employee directory
# ---------------------------------------------------------------------------


def create_user(
    session: Session,
    *,
    email: Optional[str] = None,
    name: Optional[str] = None,
    base_role: str = "member",
    is_active: bool = True,
) -> User:
    n = _next_id()
    user = User(
        email=email or f"user{n}@test.com",
        name=name or f"Test User {n}",
        base_role=base_role,
        is_active=is_active,
    )
    session.add(user)
    session.commit()
    return user


def create_employee(
    session: Session,
    *,
    user: Optional[User] = None,
    role_category: Optional[str] = None,
    is_active: bool = True,
) -> Employee:
    if user is None:
        user = create_user(session, base_role="worker_admin")
    employee = Employee(user_id=user.id, role_category=role_category, is_active=is_active)
    session.add(employee)
    session.commit()
    return employee


def create_assignment(
    session: Session,
    *,
    agent: User,
    member: User,
    ended_at: Optional[datetime] = None,
) -> AgentAssignment:
    assignment = AgentAssignment(agent_id=agent.id, member_id=member.id, ended_at=ended_at)
    session.add(assignment)
    session.commit()
    return assignment


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


def create_resource(
    session: Session,
    *,
    kind: str,
    resource_id: Optional[str] = None,
    state: str,
    version: int = 1,
    fields: Optional[Dict[str, Any]] = None,
) -> ResourceState:
    row = ResourceState(
        kind=kind,
        resource_id=resource_id or f"{kind}-{_next_id()}",
        state=state,
        version=version,
        fields=fields or {},
        entered_at=datetime.utcnow(),
    )
    session.add(row)
    session.commit()
    return row
