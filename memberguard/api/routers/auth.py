"""Session endpoints.

Credential checks happen upstream of the kernel; these routes only
describe and end the current session.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from memberguard.api.deps import get_current_principal, get_db, oauth2_scheme
from memberguard.core.config import Settings, get_settings
from memberguard.core.principal import Principal
from memberguard.core.rbac import PermissionChecker
from memberguard.core.security import decode_session_claims, revoke_session, revoke_user_sessions

router = APIRouter(prefix="/auth", tags=["auth"])


class PrincipalResponse(BaseModel):
    user_id: str
    base_role: str
    employee_role_category: Optional[str] = None
    is_chairman: bool
    permissions: list[str]


class RevokeResponse(BaseModel):
    revoked: int


@router.get("/me", response_model=PrincipalResponse)
def read_current_principal(principal: Principal = Depends(get_current_principal)):
    return PrincipalResponse(
        user_id=principal.user_id,
        base_role=principal.base_role.value,
        employee_role_category=principal.employee_role_category,
        is_chairman=principal.is_chairman,
        permissions=PermissionChecker(principal).get_allowed_permissions(),
    )


@router.post("/logout", response_model=RevokeResponse)
def logout(
    token: str = Depends(oauth2_scheme),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Revoke the session behind the presented token."""
    claims = decode_session_claims(token, settings)
    revoked = revoke_session(claims[1], db) if claims else False
    return RevokeResponse(revoked=int(revoked))


@router.post("/logout-all", response_model=RevokeResponse)
def logout_everywhere(
    token: str = Depends(oauth2_scheme),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Revoke every other session of the current user."""
    claims = decode_session_claims(token, settings)
    except_jti = claims[1] if claims else None
    return RevokeResponse(revoked=revoke_user_sessions(principal.user_id, db, except_jti=except_jti))
