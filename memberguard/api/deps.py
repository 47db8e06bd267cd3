from functools import lru_cache
from typing import Callable, Generator, Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from memberguard.core.audit import AuditPolicy, load_audit_policy
from memberguard.core.config import Settings, get_settings
from memberguard.core.principal import Principal
from memberguard.db.session import new_session
from memberguard.kernel import Kernel, build_kernel

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


def get_session_factory() -> Callable[[], Session]:
    """Factory for database sessions; overridden in tests."""
    return new_session


def get_db(session_factory: Callable[[], Session] = Depends(get_session_factory)) -> Generator:
    """Database session dependency."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@lru_cache
def _cached_policy(path: Optional[str]) -> AuditPolicy:
    return load_audit_policy(path)


def get_kernel(
    db: Session = Depends(get_db),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
) -> Kernel:
    """Request-scoped kernel bound to this request's session."""
    return build_kernel(
        db,
        session_factory,
        settings=settings,
        policy=_cached_policy(settings.audit_policy_path),
    )


def get_current_principal(
    token: Optional[str] = Depends(oauth2_scheme),
    kernel: Kernel = Depends(get_kernel),
) -> Principal:
    """Resolve the bearer token to a Principal.

    Raises UnauthenticatedError, which the app maps to 401.
    """
    return kernel.resolve_principal(token)
