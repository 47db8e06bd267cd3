"""Prize-draw entry endpoints."""

from fastapi import APIRouter, Depends, Response, status

from memberguard.api.deps import get_current_principal, get_kernel
from memberguard.api.schemas.common import ERROR_RESPONSES
from memberguard.api.schemas.resources import EntryResponse
from memberguard.core.errors import PermissionDeniedError
from memberguard.core.principal import Principal
from memberguard.core.rbac import Action, Permission, Resource
from memberguard.kernel import Kernel

router = APIRouter(prefix="/prize-draws", tags=["prize-draws"], responses=ERROR_RESPONSES)


@router.post("/{draw_id}/entries", response_model=EntryResponse)
def enter_draw(
    draw_id: str,
    response: Response,
    kernel: Kernel = Depends(get_kernel),
    principal: Principal = Depends(get_current_principal),
):
    """Enter the caller into a draw. Entering twice returns the first entry."""
    permission = Permission(Resource.PRIZE_DRAW_ENTRY, Action.CREATE)
    decision = kernel.evaluate(principal, permission)
    if not decision.allowed:
        raise PermissionDeniedError(str(permission), decision.reason, decision.violation_type.value)

    result = kernel.ensure_entry(principal.user_id, draw_id)
    response.status_code = status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
    return EntryResponse(
        user_id=result.entry.user_id,
        draw_id=result.entry.draw_id,
        entered_at=result.entry.entered_at,
        created=result.created,
    )
