"""Role hierarchy for MemberGuard.

Base roles live on the user profile. Administrative roles form a fixed
total order:

    super_admin > manager_admin > worker_admin

``chairman`` is an employee designation held independently of the base
role. It alone satisfies chairman-only actions, and at most one live
designation exists at a time (enforced by the employee directory).

A ``chairman`` base role is also accepted for historical profiles; it
ranks above every administrative role but does NOT carry the designation.
"""

from enum import Enum
from typing import Dict, FrozenSet, Optional


class BaseRole(str, Enum):
    """Roles stored on the user profile."""

    CHAIRMAN = "chairman"
    SUPER_ADMIN = "super_admin"
    MANAGER_ADMIN = "manager_admin"
    WORKER_ADMIN = "worker_admin"
    AGENT = "agent"
    MEMBER = "member"
    ANONYMOUS = "anonymous"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["BaseRole"]:
        """Parse a stored role string, returning None for unknown values."""
        if value is None:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


# Employee designation granting sole authority over sensitive actions
CHAIRMAN_DESIGNATION = "chairman"


# Rank used for ordering comparisons; higher outranks lower
ROLE_RANK: Dict[BaseRole, int] = {
    BaseRole.CHAIRMAN: 50,
    BaseRole.SUPER_ADMIN: 40,
    BaseRole.MANAGER_ADMIN: 30,
    BaseRole.WORKER_ADMIN: 20,
    BaseRole.AGENT: 10,
    BaseRole.MEMBER: 5,
    BaseRole.ANONYMOUS: 0,
}

ADMIN_ROLES: FrozenSet[BaseRole] = frozenset([
    BaseRole.CHAIRMAN,
    BaseRole.SUPER_ADMIN,
    BaseRole.MANAGER_ADMIN,
    BaseRole.WORKER_ADMIN,
])

AUTHENTICATED_ROLES: FrozenSet[BaseRole] = frozenset(
    role for role in BaseRole if role != BaseRole.ANONYMOUS
)


def rank_of(role: BaseRole) -> int:
    return ROLE_RANK.get(role, 0)


def outranks(role: BaseRole, other: BaseRole) -> bool:
    """Check if ``role`` is strictly above ``other``."""
    return rank_of(role) > rank_of(other)


def roles_at_least(minimum: BaseRole) -> FrozenSet[BaseRole]:
    """Get every base role ranked at or above ``minimum``."""
    floor = rank_of(minimum)
    return frozenset(role for role in BaseRole if rank_of(role) >= floor)


def is_admin_role(role: BaseRole) -> bool:
    return role in ADMIN_ROLES
