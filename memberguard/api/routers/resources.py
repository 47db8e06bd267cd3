"""Resource lifecycle API endpoints.

Every route hands the resolved principal to the kernel; no handler makes
an authorization decision of its own.
"""

from fastapi import APIRouter, Depends, status

from memberguard.api.deps import get_current_principal, get_kernel
from memberguard.api.schemas.common import ERROR_RESPONSES
from memberguard.api.schemas.resources import (
    AvailableActionsResponse,
    CreateResourceRequest,
    ResourceResponse,
    TransitionRequest,
    TransitionResponse,
)
from memberguard.core.lifecycle import TransitionResult
from memberguard.core.principal import Principal
from memberguard.kernel import Kernel

router = APIRouter(prefix="/resources", tags=["resources"], responses=ERROR_RESPONSES)


def _transition_response(result: TransitionResult) -> TransitionResponse:
    return TransitionResponse(
        resource=ResourceResponse.model_validate(result.record),
        previous_state=result.previous_state,
        via_override=result.via_override,
        audited=result.audited,
        audit_warning=str(result.audit_error) if result.audit_error else None,
    )


@router.post("/{kind}", response_model=TransitionResponse, status_code=status.HTTP_201_CREATED)
def create_resource(
    kind: str,
    request: CreateResourceRequest,
    kernel: Kernel = Depends(get_kernel),
    principal: Principal = Depends(get_current_principal),
):
    """Create a resource in its initial state."""
    result = kernel.create(kind, request.resource_id, principal, request.fields)
    return _transition_response(result)


@router.get("/{kind}/{resource_id}", response_model=ResourceResponse)
def get_resource(
    kind: str,
    resource_id: str,
    kernel: Kernel = Depends(get_kernel),
    principal: Principal = Depends(get_current_principal),
):
    record = kernel.get(kind, resource_id, principal)
    return ResourceResponse.model_validate(record)


@router.get("/{kind}/{resource_id}/actions", response_model=AvailableActionsResponse)
def list_available_actions(
    kind: str,
    resource_id: str,
    kernel: Kernel = Depends(get_kernel),
    principal: Principal = Depends(get_current_principal),
):
    """List actions the caller may perform from the current state."""
    record = kernel.get(kind, resource_id, principal)
    return AvailableActionsResponse(
        kind=record.kind,
        resource_id=record.resource_id,
        state=record.state,
        actions=kernel.available_actions(kind, resource_id, principal),
    )


@router.post("/{kind}/{resource_id}/{action}", response_model=TransitionResponse)
def perform_transition(
    kind: str,
    resource_id: str,
    action: str,
    request: TransitionRequest,
    kernel: Kernel = Depends(get_kernel),
    principal: Principal = Depends(get_current_principal),
):
    """Apply a lifecycle action to a resource."""
    result = kernel.transition(kind, resource_id, action, principal, request.to_payload())
    return _transition_response(result)
