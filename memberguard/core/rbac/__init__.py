"""RBAC (Role-Based Access Control) module for MemberGuard.

This module defines the role hierarchy, the declared permission rules,
and the permission evaluator.
"""

from .roles import BaseRole, CHAIRMAN_DESIGNATION, roles_at_least
from .permissions import (
    Permission,
    PermissionRule,
    Resource,
    Action,
    PERMISSION_RULES,
    PERMISSION_DEFINITIONS,
)
from .evaluator import (
    AssignmentFact,
    Decision,
    PermissionChecker,
    ViolationType,
    evaluate,
    requires_assignment,
)

__all__ = [
    "BaseRole",
    "CHAIRMAN_DESIGNATION",
    "roles_at_least",
    "Permission",
    "PermissionRule",
    "Resource",
    "Action",
    "PERMISSION_RULES",
    "PERMISSION_DEFINITIONS",
    "AssignmentFact",
    "Decision",
    "PermissionChecker",
    "ViolationType",
    "evaluate",
    "requires_assignment",
]
