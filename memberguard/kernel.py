"""Kernel facade.

Wires the principal resolver, permission evaluator, lifecycle engine and
prize-draw entries behind one object. Route handlers talk to this and
nothing else.
"""

import logging
from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional, Union

from sqlalchemy.orm import Session

from memberguard.core.audit import AuditPolicy, AuditRecorder, load_audit_policy
from memberguard.core.config import Settings, get_settings
from memberguard.core.errors import ConflictError
from memberguard.core.lifecycle import EntryResult, LifecycleEngine, PrizeDrawEntries, TransitionResult
from memberguard.core.principal import Principal, PrincipalResolver
from memberguard.core.rbac import Action, AssignmentFact, Decision, Permission, Resource, evaluate
from memberguard.core.rbac.evaluator import requires_assignment
from memberguard.core.stores import ResourceRecord

logger = logging.getLogger(__name__)


class Kernel:
    def __init__(
        self,
        resolver: PrincipalResolver,
        engine: LifecycleEngine,
        entries: PrizeDrawEntries,
        *,
        conflict_retries: int = 0,
    ):
        self.resolver = resolver
        self.engine = engine
        self.entries = entries
        self.conflict_retries = conflict_retries

    def resolve_principal(self, token: Optional[str]) -> Principal:
        return self.resolver.resolve(token)

    def evaluate(
        self,
        principal: Principal,
        permission: Union[str, Permission],
        fact: Optional[AssignmentFact] = None,
    ) -> Decision:
        return evaluate(principal, permission, fact)

    def evaluate_for_member(
        self,
        principal: Principal,
        permission: Union[str, Permission],
        member_id: str,
    ) -> Decision:
        """Evaluate a member-scoped permission with a freshly fetched assignment fact."""
        fact = None
        if requires_assignment(principal, permission):
            fact = self.engine.assignment_fact(principal, member_id)
        return evaluate(principal, permission, fact)

    def transition(
        self,
        kind: Union[str, Resource],
        resource_id: str,
        action: Union[str, Action],
        principal: Principal,
        payload: Optional[Mapping[str, Any]] = None,
        *,
        retries: Optional[int] = None,
    ) -> TransitionResult:
        """
        Apply a transition, reloading and retrying after a lost race.

        Each retry re-reads the record, so the guard and the source-state
        check run again against the winner's state. Only rules marked
        retryable are retried; any other action surfaces the ConflictError.

        Args:
            retries: Extra attempts after a ConflictError; defaults to
                the kernel's ``conflict_retries``
        """
        retries = self.conflict_retries if retries is None else retries
        rule = self.engine.rule_for(kind, action)
        if rule is None or not rule.retryable:
            retries = 0
        attempt = 0
        while True:
            try:
                return self.engine.transition(kind, resource_id, action, principal, payload)
            except ConflictError:
                if attempt >= retries:
                    raise
                attempt += 1
                logger.info(f"Retrying {action} on {kind} {resource_id} after conflict ({attempt}/{retries})")

    def create(
        self,
        kind: Union[str, Resource],
        resource_id: str,
        principal: Principal,
        fields: Optional[Mapping[str, Any]] = None,
    ) -> TransitionResult:
        return self.engine.create(kind, resource_id, principal, fields)

    def get(self, kind: Union[str, Resource], resource_id: str, principal: Principal) -> ResourceRecord:
        return self.engine.get(kind, resource_id, principal)

    def available_actions(
        self,
        kind: Union[str, Resource],
        resource_id: str,
        principal: Principal,
    ) -> List[str]:
        return self.engine.available_actions(kind, resource_id, principal)

    def ensure_entry(self, user_id: str, draw_id: str) -> EntryResult:
        return self.entries.ensure_entry(user_id, draw_id)


def build_kernel(
    db: Session,
    session_factory: Callable[[], Session],
    *,
    settings: Optional[Settings] = None,
    policy: Optional[AuditPolicy] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> Kernel:
    """
    Build a kernel backed by the SQLAlchemy stores.

    Args:
        db: Request-scoped session for resources, assignments, entries and audit
        session_factory: Opens sessions for principal resolution
        settings: Application settings
        policy: Audit policy; loaded from ``settings.audit_policy_path`` if omitted
        clock: Time source, ``datetime.utcnow`` by default
    """
    from memberguard.db.stores import (
        SqlAssignmentStore,
        SqlAuditStore,
        SqlDirectoryStore,
        SqlEntryStore,
        SqlResourceStore,
        SqlSessionStore,
    )

    settings = settings or get_settings()
    if policy is None:
        policy = load_audit_policy(settings.audit_policy_path)

    recorder = AuditRecorder(SqlAuditStore(db))
    resolver = PrincipalResolver(
        SqlSessionStore(session_factory, settings),
        SqlDirectoryStore(session_factory),
        timeout_seconds=settings.session_check_timeout_seconds,
        max_workers=settings.resolver_workers,
        clock=clock,
    )
    engine = LifecycleEngine(
        SqlResourceStore(db),
        SqlAssignmentStore(db),
        recorder,
        policy=policy,
        clock=clock,
    )
    entries = PrizeDrawEntries(SqlEntryStore(db), recorder, clock=clock)
    return Kernel(resolver, engine, entries, conflict_retries=settings.conflict_retries)
