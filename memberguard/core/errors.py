"""Failure taxonomy shared by every kernel component.

Each error carries a stable ``code`` so callers can map failures to
user-facing responses without parsing messages.
"""

from typing import Optional


class KernelError(Exception):
    """Base class for all kernel failures. Always scoped to one request."""

    code = "kernel_error"


class UnauthenticatedError(KernelError):
    """No session, or an expired, revoked or malformed one."""

    code = "unauthenticated"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class PermissionDeniedError(KernelError):
    """Raised when the permission evaluator denies an action."""

    code = "forbidden"

    def __init__(self, permission: str, reason: str, violation_type: str):
        super().__init__(f"Permission denied for {permission}: {reason}")
        self.permission = permission
        self.reason = reason
        self.violation_type = violation_type


class TransitionError(KernelError):
    """Raised when an action is not valid from the resource's current state."""

    code = "invalid_transition"

    def __init__(self, message: str, from_state: Optional[str], action: str):
        super().__init__(message)
        self.from_state = from_state
        self.action = action


class PayloadValidationError(KernelError):
    """Raised when a transition payload is incomplete or malformed."""

    code = "validation_failed"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ConflictError(KernelError):
    """Lost an optimistic-concurrency race, or the resource already exists."""

    code = "conflict"

    def __init__(self, kind: str, resource_id: str, expected_version: Optional[int] = None):
        if expected_version is None:
            message = f"{kind} {resource_id} already exists"
        else:
            message = f"{kind} {resource_id} changed since version {expected_version}"
        super().__init__(message)
        self.kind = kind
        self.resource_id = resource_id
        self.expected_version = expected_version


class NotFoundError(KernelError):
    code = "not_found"

    def __init__(self, kind: str, resource_id: str):
        super().__init__(f"{kind} {resource_id} not found")
        self.kind = kind
        self.resource_id = resource_id


class StorageUnavailableError(KernelError):
    """A collaborator store could not complete an I/O operation."""

    code = "storage_unavailable"
