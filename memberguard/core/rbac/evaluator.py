"""Permission evaluation for MemberGuard.

``evaluate`` is a pure function of its inputs. Ownership facts (agent to
member assignments) are passed in by the caller, who must fetch them
immediately before the check and never cache them across requests.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union, TYPE_CHECKING

from memberguard.core.rbac.roles import BaseRole
from .permissions import (
    Permission,
    PermissionRule,
    Resource,
    Action,
    PERMISSION_RULES,
)

if TYPE_CHECKING:
    from memberguard.core.principal import Principal


class ViolationType(str, Enum):
    """Why a permission was denied."""

    INSUFFICIENT_ROLE = "insufficient_role"
    NOT_ASSIGNED = "not_assigned"


@dataclass(frozen=True)
class AssignmentFact:
    """Fresh answer to "is this agent assigned to this member?"."""

    agent_id: str
    member_id: str
    assigned: bool


@dataclass(frozen=True)
class Decision:
    """Allow, or Deny with a reason and a violation type."""

    allowed: bool
    reason: Optional[str] = None
    violation_type: Optional[ViolationType] = None
    via_override: bool = False

    @classmethod
    def allow(cls, *, via_override: bool = False) -> "Decision":
        return cls(allowed=True, via_override=via_override)

    @classmethod
    def deny(cls, reason: str, violation_type: ViolationType) -> "Decision":
        return cls(allowed=False, reason=reason, violation_type=violation_type)

    def __bool__(self) -> bool:
        return self.allowed


def _coerce(permission: Union[str, Permission]) -> Optional[Permission]:
    """Parse a permission, or None for a string naming no known permission."""
    if isinstance(permission, Permission):
        return permission
    try:
        return Permission.from_string(permission)
    except ValueError:
        return None


def evaluate(
    principal: "Principal",
    permission: Union[str, Permission],
    fact: Optional[AssignmentFact] = None,
) -> Decision:
    """
    Decide whether ``principal`` may perform ``permission``.

    Rules, in priority order:
      1. chairman-only: the chairman designation, or a super_admin where the
         permission declares a safety override
      2. assignment-gated roles: an assignment fact naming this agent
      3. rank: super_admin, or a base role in the permitted set
      4. otherwise deny

    Args:
        principal: The resolved caller
        permission: Permission object or "resource:action" string
        fact: Assignment fact for assignment-gated permissions

    Returns:
        Decision
    """
    perm = _coerce(permission)
    rule = PERMISSION_RULES.get(perm) if perm is not None else None

    if rule is None:
        return Decision.deny(f"No rule declared for {perm or permission}", ViolationType.INSUFFICIENT_ROLE)

    if not principal.is_authenticated:
        return Decision.deny("Authentication required", ViolationType.INSUFFICIENT_ROLE)

    if rule.chairman_only:
        return _evaluate_chairman(principal, perm, rule)

    if principal.base_role in rule.assignment_roles:
        return _evaluate_assignment(principal, fact)

    if principal.base_role == BaseRole.SUPER_ADMIN or principal.base_role in rule.allowed_roles:
        return Decision.allow()

    return Decision.deny(
        f"Role {principal.base_role.value} may not perform {perm}",
        ViolationType.INSUFFICIENT_ROLE,
    )


def _evaluate_chairman(principal: "Principal", perm: Permission, rule: PermissionRule) -> Decision:
    if principal.is_chairman:
        return Decision.allow()
    if rule.super_admin_override and principal.is_super_admin:
        return Decision.allow(via_override=True)
    return Decision.deny(f"{perm} requires the chairman designation", ViolationType.INSUFFICIENT_ROLE)


def _evaluate_assignment(principal: "Principal", fact: Optional[AssignmentFact]) -> Decision:
    if fact is None:
        return Decision.deny("No assignment on record", ViolationType.NOT_ASSIGNED)
    if fact.agent_id != principal.user_id or not fact.assigned:
        return Decision.deny("Member not assigned to agent", ViolationType.NOT_ASSIGNED)
    return Decision.allow()


def requires_assignment(principal: "Principal", permission: Union[str, Permission]) -> bool:
    """Check if evaluating ``permission`` for ``principal`` needs an assignment fact."""
    perm = _coerce(permission)
    rule = PERMISSION_RULES.get(perm) if perm is not None else None
    if rule is None or rule.chairman_only:
        return False
    return principal.base_role in rule.assignment_roles


class PermissionChecker:
    """Checks permissions for one principal.

    Assignment-gated permissions are reported as not held here, since they
    cannot be decided without a fresh fact.
    """

    def __init__(self, principal: "Principal"):
        self.principal = principal

    def has_permission(self, permission: Union[str, Permission]) -> bool:
        """Check if the principal holds a permission outright."""
        return evaluate(self.principal, permission).allowed

    def has_any_permission(self, permissions: List[Union[str, Permission]]) -> bool:
        return any(self.has_permission(p) for p in permissions)

    def has_all_permissions(self, permissions: List[Union[str, Permission]]) -> bool:
        return all(self.has_permission(p) for p in permissions)

    def can_access_resource(self, resource: Resource, action: Action) -> bool:
        return self.has_permission(Permission(resource, action))

    def get_allowed_permissions(self) -> list[str]:
        """Get every permission string the principal holds outright."""
        return [str(perm) for perm in PERMISSION_RULES if self.has_permission(perm)]

    def get_accessible_resources(self, action: Action) -> list[Resource]:
        """Get list of resources the principal can perform the action on."""
        return [
            resource for resource in Resource
            if Permission(resource, action) in PERMISSION_RULES
            and self.can_access_resource(resource, action)
        ]
