"""Common schemas for the MemberGuard API."""

from typing import Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    code: Optional[str] = None
    field: Optional[str] = None
    violation_type: Optional[str] = None


class DecisionResponse(BaseModel):
    allowed: bool
    reason: Optional[str] = None
    violation_type: Optional[str] = None
    via_override: bool = False


# OpenAPI documentation for kernel failures
ERROR_RESPONSES = {
    401: {"model": ErrorResponse, "description": "Missing, expired or revoked session"},
    403: {"model": ErrorResponse, "description": "Permission denied"},
    404: {"model": ErrorResponse, "description": "Resource not found"},
    409: {"model": ErrorResponse, "description": "Invalid transition or concurrent update"},
    422: {"model": ErrorResponse, "description": "Invalid payload"},
    503: {"model": ErrorResponse, "description": "Backing store unavailable"},
}
