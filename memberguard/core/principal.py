"""Principal resolution.

A Principal is built fresh for every request from the session record and
the employee directory. Role facts are never taken from request bodies,
headers or token claims: the only input is the session credential, and
everything else is re-fetched from the authoritative stores.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from memberguard.core.errors import UnauthenticatedError, StorageUnavailableError
from memberguard.core.rbac.roles import BaseRole, CHAIRMAN_DESIGNATION, is_admin_role
from memberguard.core.stores import SessionStore, DirectoryStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """The authenticated caller of one request."""

    user_id: Optional[str]
    base_role: BaseRole
    employee_role_category: Optional[str] = None
    session_valid_until: Optional[datetime] = None

    @classmethod
    def anonymous(cls) -> "Principal":
        return cls(user_id=None, base_role=BaseRole.ANONYMOUS)

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None and self.base_role != BaseRole.ANONYMOUS

    @property
    def is_chairman(self) -> bool:
        """Chairman designation, independent of the base role."""
        return self.employee_role_category == CHAIRMAN_DESIGNATION

    @property
    def is_super_admin(self) -> bool:
        return self.base_role == BaseRole.SUPER_ADMIN

    @property
    def is_admin(self) -> bool:
        return is_admin_role(self.base_role)


_executor_lock = threading.Lock()
_shared_executor: Optional[ThreadPoolExecutor] = None


def _get_shared_executor(max_workers: int) -> ThreadPoolExecutor:
    global _shared_executor
    with _executor_lock:
        if _shared_executor is None:
            _shared_executor = ThreadPoolExecutor(
                max_workers=max_workers, thread_name_prefix="principal-resolver"
            )
        return _shared_executor


class PrincipalResolver:
    """Turns a session credential into a Principal, or fails closed.

    The whole lookup (session validation plus directory fetch) runs under
    a bounded timeout. A timeout, a storage failure, or any invalid fact
    yields ``UnauthenticatedError``; the resolver never falls back to a
    weaker principal.
    """

    def __init__(
        self,
        sessions: SessionStore,
        directory: DirectoryStore,
        *,
        timeout_seconds: float = 2.0,
        clock: Optional[Callable[[], datetime]] = None,
        executor: Optional[ThreadPoolExecutor] = None,
        max_workers: int = 4,
    ):
        self.sessions = sessions
        self.directory = directory
        self.timeout_seconds = timeout_seconds
        self._clock = clock or datetime.utcnow
        self._executor = executor or _get_shared_executor(max_workers)

    def resolve(self, token: Optional[str]) -> Principal:
        """
        Resolve a session token to a Principal.

        Raises:
            UnauthenticatedError: missing, malformed, expired or revoked
                session; unknown or inactive user; timeout; store failure
        """
        if not token or not isinstance(token, str) or not token.strip():
            raise UnauthenticatedError("No session token provided")

        future = self._executor.submit(self._lookup, token.strip())
        try:
            return future.result(timeout=self.timeout_seconds)
        except FutureTimeout:
            future.cancel()
            logger.warning(f"Session check exceeded {self.timeout_seconds}s, failing closed")
            raise UnauthenticatedError("Session could not be verified in time")
        except StorageUnavailableError as e:
            logger.warning(f"Session check failed, failing closed: {e}")
            raise UnauthenticatedError("Session could not be verified")

    def _lookup(self, token: str) -> Principal:
        session = self.sessions.validate(token)
        if session is None:
            raise UnauthenticatedError("Invalid or revoked session")

        if session.expires_at <= self._clock():
            raise UnauthenticatedError("Session expired")

        facts = self.directory.get_role_facts(session.user_id)
        if facts is None:
            raise UnauthenticatedError("Profile not found")

        base_role = BaseRole.parse(facts.base_role)
        if base_role is None or base_role == BaseRole.ANONYMOUS:
            logger.warning(f"User {session.user_id} has unrecognized role {facts.base_role!r}")
            raise UnauthenticatedError("Profile has no usable role")

        return Principal(
            user_id=session.user_id,
            base_role=base_role,
            employee_role_category=facts.employee_role_category,
            session_valid_until=session.expires_at,
        )
