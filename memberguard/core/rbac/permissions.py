"""Permission model for MemberGuard.

Every guarded operation is a permission: a resource kind plus an action.
Each permission maps to exactly one declared rule; endpoints never
re-derive "is this user the chairman" on their own.

Permission string format: "resource:action"
Examples:
  - identity_verification:approve
  - financial_period:unlock
  - conversation:read
"""

from enum import Enum
from typing import Dict, FrozenSet, NamedTuple

from .roles import BaseRole, AUTHENTICATED_ROLES, roles_at_least


class Resource(str, Enum):
    """Resource kinds protected by the kernel."""

    FINANCIAL_PERIOD = "financial_period"
    IDENTITY_VERIFICATION = "identity_verification"
    SCAM_REPORT = "scam_report"
    JOB_LISTING = "job_listing"
    CONVERSATION = "conversation"
    PRIZE_DRAW_ENTRY = "prize_draw_entry"


class Action(str, Enum):
    """Actions that can be performed on resources."""

    # Standard actions
    CREATE = "create"
    READ = "read"
    UPDATE = "update"

    # Review workflow
    MARK_PENDING = "mark_pending"
    APPROVE = "approve"
    VERIFY = "verify"
    REJECT = "reject"

    # Period close
    CLOSE = "close"
    LOCK = "lock"
    UNLOCK = "unlock"

    # Listings and conversations
    REOPEN = "reopen"
    TOGGLE_PUBLISH = "toggle_publish"
    ARCHIVE = "archive"
    RESTORE = "restore"
    SEND_MESSAGE = "send_message"


class Permission(NamedTuple):
    """A permission is a combination of resource and action."""
    resource: Resource
    action: Action

    def __str__(self) -> str:
        return f"{self.resource.value}:{self.action.value}"

    @classmethod
    def from_string(cls, perm_str: str) -> "Permission":
        """Parse a permission string like 'scam_report:verify'."""
        parts = perm_str.split(":")
        if len(parts) != 2:
            raise ValueError(f"Invalid permission format: {perm_str}")
        return cls(Resource(parts[0]), Action(parts[1]))


class PermissionRule(NamedTuple):
    """Declared authorization rule for one permission.

    Attributes:
        chairman_only: Only the chairman designation satisfies the rule
        super_admin_override: A super_admin may bypass a chairman-only gate
        assignment_roles: Base roles that must prove an assignment to the member
        allowed_roles: Base roles permitted by rank
    """
    chairman_only: bool = False
    super_admin_override: bool = False
    assignment_roles: FrozenSet[BaseRole] = frozenset()
    allowed_roles: FrozenSet[BaseRole] = frozenset()


def chairman(*, override: bool = False) -> PermissionRule:
    return PermissionRule(chairman_only=True, super_admin_override=override)


def ranked(minimum: BaseRole) -> PermissionRule:
    return PermissionRule(allowed_roles=roles_at_least(minimum))


def assigned_or_ranked(minimum: BaseRole) -> PermissionRule:
    """Agents need an assignment; staff at or above ``minimum`` do not."""
    return PermissionRule(
        assignment_roles=frozenset([BaseRole.AGENT]),
        allowed_roles=roles_at_least(minimum),
    )


ANY_AUTHENTICATED = PermissionRule(allowed_roles=AUTHENTICATED_ROLES)


PERMISSION_RULES: Dict[Permission, PermissionRule] = {
    # Financial close: super_admin may force-close and unlock as a safety action
    Permission(Resource.FINANCIAL_PERIOD, Action.CREATE): ranked(BaseRole.MANAGER_ADMIN),
    Permission(Resource.FINANCIAL_PERIOD, Action.READ): ranked(BaseRole.WORKER_ADMIN),
    Permission(Resource.FINANCIAL_PERIOD, Action.CLOSE): chairman(override=True),
    Permission(Resource.FINANCIAL_PERIOD, Action.LOCK): chairman(),
    Permission(Resource.FINANCIAL_PERIOD, Action.UNLOCK): chairman(override=True),

    # Identity verification
    Permission(Resource.IDENTITY_VERIFICATION, Action.CREATE): ANY_AUTHENTICATED,
    Permission(Resource.IDENTITY_VERIFICATION, Action.READ): ranked(BaseRole.WORKER_ADMIN),
    Permission(Resource.IDENTITY_VERIFICATION, Action.APPROVE): chairman(),
    Permission(Resource.IDENTITY_VERIFICATION, Action.REJECT): chairman(),

    # Scam reports
    Permission(Resource.SCAM_REPORT, Action.CREATE): ANY_AUTHENTICATED,
    Permission(Resource.SCAM_REPORT, Action.READ): ranked(BaseRole.WORKER_ADMIN),
    Permission(Resource.SCAM_REPORT, Action.MARK_PENDING): ranked(BaseRole.MANAGER_ADMIN),
    Permission(Resource.SCAM_REPORT, Action.VERIFY): chairman(),
    Permission(Resource.SCAM_REPORT, Action.REJECT): chairman(),

    # Job listings
    Permission(Resource.JOB_LISTING, Action.READ): ANY_AUTHENTICATED,
    Permission(Resource.JOB_LISTING, Action.CREATE): chairman(),
    Permission(Resource.JOB_LISTING, Action.UPDATE): chairman(),
    Permission(Resource.JOB_LISTING, Action.TOGGLE_PUBLISH): chairman(),
    Permission(Resource.JOB_LISTING, Action.CLOSE): chairman(),
    Permission(Resource.JOB_LISTING, Action.REOPEN): chairman(),
    Permission(Resource.JOB_LISTING, Action.ARCHIVE): chairman(),
    Permission(Resource.JOB_LISTING, Action.RESTORE): chairman(),

    # Agent-member conversations
    Permission(Resource.CONVERSATION, Action.CREATE): assigned_or_ranked(BaseRole.WORKER_ADMIN),
    Permission(Resource.CONVERSATION, Action.READ): assigned_or_ranked(BaseRole.WORKER_ADMIN),
    Permission(Resource.CONVERSATION, Action.SEND_MESSAGE): assigned_or_ranked(BaseRole.WORKER_ADMIN),
    Permission(Resource.CONVERSATION, Action.CLOSE): assigned_or_ranked(BaseRole.WORKER_ADMIN),
    Permission(Resource.CONVERSATION, Action.REOPEN): ranked(BaseRole.MANAGER_ADMIN),

    # Prize draws
    Permission(Resource.PRIZE_DRAW_ENTRY, Action.CREATE): ANY_AUTHENTICATED,
    Permission(Resource.PRIZE_DRAW_ENTRY, Action.READ): ANY_AUTHENTICATED,
}


# All valid permissions as a dictionary: "resource:action" -> Permission
PERMISSION_DEFINITIONS: Dict[str, Permission] = {
    str(perm): perm for perm in PERMISSION_RULES
}

# Permissions only the chairman designation (or a declared override) satisfies
CHAIRMAN_PERMISSIONS: FrozenSet[Permission] = frozenset(
    perm for perm, rule in PERMISSION_RULES.items() if rule.chairman_only
)

OVERRIDABLE_PERMISSIONS: FrozenSet[Permission] = frozenset(
    perm for perm, rule in PERMISSION_RULES.items() if rule.super_admin_override
)


def is_valid_permission(perm_str: str) -> bool:
    """Check if a permission string is valid."""
    return perm_str in PERMISSION_DEFINITIONS


def get_permissions_for_resource(resource: Resource) -> list[str]:
    """Get all valid permission strings for a resource."""
    return [str(perm) for perm in PERMISSION_RULES if perm.resource == resource]


def get_all_permissions() -> list[str]:
    """Get all valid permission strings."""
    return list(PERMISSION_DEFINITIONS.keys())
