"""Agent-member conversation access checks."""

from fastapi import APIRouter, Depends

from memberguard.api.deps import get_current_principal, get_kernel
from memberguard.api.schemas.common import DecisionResponse
from memberguard.core.principal import Principal
from memberguard.core.rbac import Action, Permission, Resource
from memberguard.kernel import Kernel

router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.get("/access/{member_id}", response_model=DecisionResponse)
def check_conversation_access(
    member_id: str,
    action: Action = Action.READ,
    kernel: Kernel = Depends(get_kernel),
    principal: Principal = Depends(get_current_principal),
):
    """Check whether the caller may act on a member's conversations.

    The assignment fact is fetched fresh for this request.
    """
    decision = kernel.evaluate_for_member(
        principal, Permission(Resource.CONVERSATION, action), member_id
    )
    return DecisionResponse(
        allowed=decision.allowed,
        reason=decision.reason,
        violation_type=decision.violation_type.value if decision.violation_type else None,
        via_override=decision.via_override,
    )
