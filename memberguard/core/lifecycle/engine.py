"""Resource lifecycle engine.

Runs any MachineDefinition against the resource store. A transition:

    1. validates the payload (no reads, no writes, no audit on failure)
    2. loads the current record
    3. runs the permission guard, with a fresh assignment fact if needed
    4. checks the source state and the kind's preconditions
    5. writes an intent audit entry when the audit policy requires one
    6. applies a single conditional write on the record version
    7. writes the outcome audit entry

The engine holds no locks. Two callers racing on the same record are
linearized by the store's compare-and-set; the loser gets ConflictError.
"""

import copy
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from memberguard.core.audit import (
    AuditEntry,
    AuditPhase,
    AuditPolicy,
    AuditRecorder,
    AuditSeverity,
)
from memberguard.core.errors import (
    ConflictError,
    NotFoundError,
    PayloadValidationError,
    PermissionDeniedError,
    StorageUnavailableError,
    TransitionError,
)
from memberguard.core.principal import Principal
from memberguard.core.rbac.evaluator import AssignmentFact, Decision, evaluate, requires_assignment
from memberguard.core.rbac.permissions import Action, Permission, Resource
from memberguard.core.stores import (
    AssignmentStore,
    ResourceRecord,
    ResourceStore,
    StateWrite,
    WriteResult,
)
from .definitions import DEFINITIONS
from .machine import MachineDefinition, TransitionContext, TransitionRule

logger = logging.getLogger(__name__)


OVERRIDE_NAME = "super_admin_safety_override"
DENIED_ACTION = "permission_denied"


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a successful transition or creation.

    ``audit_error`` is set when the best-effort outcome audit entry could
    not be written. The state change itself has been applied.
    """

    record: ResourceRecord
    previous_state: Optional[str]
    via_override: bool = False
    audit_error: Optional[StorageUnavailableError] = None

    @property
    def state(self) -> str:
        return self.record.state

    @property
    def audited(self) -> bool:
        return self.audit_error is None


def _coerce_kind(kind: Union[str, Resource]) -> Resource:
    try:
        return Resource(kind)
    except ValueError:
        raise PayloadValidationError(f"Unknown resource kind: {kind}", field="kind")


def _coerce_action(action: Union[str, Action]) -> Action:
    try:
        return Action(action)
    except ValueError:
        raise PayloadValidationError(f"Unknown action: {action}", field="action")


class LifecycleEngine:
    """Generic state machine runner over a ResourceStore."""

    def __init__(
        self,
        resources: ResourceStore,
        assignments: AssignmentStore,
        recorder: AuditRecorder,
        *,
        policy: Optional[AuditPolicy] = None,
        definitions: Optional[Mapping[Resource, MachineDefinition]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.resources = resources
        self.assignments = assignments
        self.recorder = recorder
        self.policy = policy or AuditPolicy()
        self.definitions = dict(definitions or DEFINITIONS)
        self._clock = clock or datetime.utcnow

    def definition_for(self, kind: Union[str, Resource]) -> MachineDefinition:
        resource = _coerce_kind(kind)
        definition = self.definitions.get(resource)
        if definition is None:
            raise PayloadValidationError(
                f"{resource.value} has no lifecycle", field="kind"
            )
        return definition

    def rule_for(self, kind: Union[str, Resource], action: Union[str, Action]) -> Optional[TransitionRule]:
        """Get the transition rule for ``action`` on ``kind``."""
        return self.definition_for(kind).rule_for(_coerce_action(action))

    # ------------------------------------------------------------------
    # Guard
    # ------------------------------------------------------------------

    def assignment_fact(self, principal: Principal, member_id: Optional[str]) -> AssignmentFact:
        """Fetch a fresh assignment fact for ``principal`` and ``member_id``."""
        if not member_id:
            return AssignmentFact(agent_id=principal.user_id, member_id="", assigned=False)
        return AssignmentFact(
            agent_id=principal.user_id,
            member_id=member_id,
            assigned=self.assignments.is_assigned(principal.user_id, member_id),
        )

    def _decide(
        self,
        principal: Principal,
        permission: Permission,
        definition: MachineDefinition,
        fields: Mapping[str, Any],
    ) -> Decision:
        fact = None
        if requires_assignment(principal, permission):
            member_id = fields.get(definition.member_field) if definition.member_field else None
            fact = self.assignment_fact(principal, member_id)
        return evaluate(principal, permission, fact)

    def _guard(
        self,
        principal: Principal,
        permission: Permission,
        definition: MachineDefinition,
        resource_id: str,
        fields: Mapping[str, Any],
        state: Optional[str],
    ) -> Decision:
        decision = self._decide(principal, permission, definition, fields)
        if decision.allowed:
            return decision

        logger.warning(
            f"Denied {permission} on {resource_id} for user {principal.user_id}: {decision.reason}"
        )
        if self.policy.record_denied_attempts:
            self.recorder.record_best_effort(AuditEntry(
                actor_id=principal.user_id,
                action=DENIED_ACTION,
                resource_kind=definition.kind.value,
                resource_id=resource_id,
                before_state=state,
                after_state=state,
                timestamp=self._clock(),
                phase=AuditPhase.DENIED,
                severity=AuditSeverity.CRITICAL,
                details={
                    "permission": str(permission),
                    "violation_type": decision.violation_type.value,
                    "base_role": principal.base_role.value,
                },
            ))
        raise PermissionDeniedError(
            str(permission), decision.reason, decision.violation_type.value
        )

    # ------------------------------------------------------------------
    # Payload validation
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_reason(rule: TransitionRule, payload: Mapping[str, Any], kind: str) -> Optional[str]:
        reason = payload.get("reason")
        if reason is not None and not isinstance(reason, str):
            raise PayloadValidationError("Reason must be a string", field="reason")
        reason = reason.strip() if reason else None
        if rule.requires_reason and not reason:
            raise PayloadValidationError(
                f"A reason is required to {rule.action.value} a {kind}", field="reason"
            )
        return reason

    @staticmethod
    def _validate_fields(definition: MachineDefinition, fields: Any) -> Dict[str, Any]:
        if fields is None:
            return {}
        if not isinstance(fields, Mapping):
            raise PayloadValidationError("Fields must be a mapping", field="fields")
        for name in fields:
            if name not in definition.editable_fields:
                raise PayloadValidationError(
                    f"Field {name!r} is not editable on {definition.kind.value}", field=name
                )
        return dict(fields)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def transition(
        self,
        kind: Union[str, Resource],
        resource_id: str,
        action: Union[str, Action],
        principal: Principal,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> TransitionResult:
        """
        Apply ``action`` to a resource.

        Args:
            kind: Resource kind
            resource_id: Resource identifier
            action: Action to perform
            principal: Resolved caller
            payload: Optional ``reason``, ``fields`` and kind-specific keys

        Returns:
            TransitionResult with the new record

        Raises:
            PayloadValidationError: Payload missing a required reason or
                carrying non-editable fields
            NotFoundError: Unknown resource id
            PermissionDeniedError: Guard denied the action
            TransitionError: Action not valid from the current state
            ConflictError: Record changed since it was read
            StorageUnavailableError: Store or required audit failure
        """
        definition = self.definition_for(kind)
        action = _coerce_action(action)
        kind_name = definition.kind.value

        rule = definition.rule_for(action)
        if rule is None:
            raise TransitionError(
                f"{action.value} is not defined for {kind_name}", None, action.value
            )

        payload = dict(payload or {})
        reason = self._validate_reason(rule, payload, kind_name)
        if rule.check_payload is not None:
            rule.check_payload(payload)
        if rule.accepts_fields:
            edits = self._validate_fields(definition, payload.get("fields"))
        elif payload.get("fields"):
            raise PayloadValidationError(
                f"{action.value} does not accept field edits", field="fields"
            )
        else:
            edits = {}

        record = self.resources.read(kind_name, resource_id)
        if record is None:
            raise NotFoundError(kind_name, resource_id)

        permission = Permission(definition.kind, action)
        decision = self._guard(
            principal, permission, definition, resource_id, record.fields, record.state
        )

        if not definition.can_transition(record.state, action):
            raise TransitionError(
                f"Cannot {action.value} {kind_name} {resource_id} from state {record.state}",
                record.state,
                action.value,
            )
        if rule.precondition is not None:
            failure = rule.precondition(record, payload)
            if failure:
                raise TransitionError(failure, record.state, action.value)

        now = self._clock()
        ctx = TransitionContext(
            record=record,
            principal=principal,
            payload=payload,
            now=now,
            reason=reason,
            via_override=decision.via_override,
        )
        fields = dict(record.fields)
        fields.update(edits)
        if rule.effect is not None:
            fields.update(rule.effect(ctx))
        if rule.reason_field:
            fields[rule.reason_field] = reason
        if decision.via_override:
            fields["last_override"] = {
                "name": OVERRIDE_NAME,
                "action": action.value,
                "by": principal.user_id,
                "at": now.isoformat(),
            }

        to_state = rule.resolve_target(record, payload)
        if to_state == record.state:
            change = StateWrite(
                state=record.state,
                previous_state=record.previous_state,
                entered_at=record.entered_at or now,
                entered_by=record.entered_by,
                fields=fields,
            )
        else:
            change = StateWrite(
                state=to_state,
                previous_state=record.state,
                entered_at=now,
                entered_by=principal.user_id,
                fields=fields,
            )

        entry = self._entry(principal, permission, record, to_state, now, reason, decision, payload)
        required = self.policy.is_required(str(permission), via_override=decision.via_override)
        if required:
            # Raises StorageUnavailableError; nothing has been written yet
            self.recorder.record(entry.with_phase(AuditPhase.INTENT))

        outcome = self.resources.conditional_write(kind_name, resource_id, record.version, change)
        if outcome is WriteResult.CONFLICT:
            if required:
                self.recorder.record_best_effort(entry.with_phase(AuditPhase.ABORTED))
            logger.info(
                f"Conflict on {kind_name} {resource_id} at version {record.version} ({action.value})"
            )
            raise ConflictError(kind_name, resource_id, record.version)

        updated = ResourceRecord(
            kind=kind_name,
            resource_id=resource_id,
            state=change.state,
            version=record.version + 1,
            fields=change.fields,
            entered_at=change.entered_at,
            entered_by=change.entered_by,
            previous_state=change.previous_state,
            created_at=record.created_at,
        )
        audit_error = self.recorder.record_best_effort(entry)

        if decision.via_override:
            logger.warning(
                f"{OVERRIDE_NAME}: user {principal.user_id} performed {permission} on {resource_id}"
            )
        logger.info(
            f"{kind_name} {resource_id}: {record.state} -> {updated.state} "
            f"({action.value} by {principal.user_id})"
        )
        return TransitionResult(
            record=updated,
            previous_state=record.state,
            via_override=decision.via_override,
            audit_error=audit_error,
        )

    def create(
        self,
        kind: Union[str, Resource],
        resource_id: str,
        principal: Principal,
        fields: Optional[Mapping[str, Any]] = None,
    ) -> TransitionResult:
        """
        Create a resource in its kind's initial state.

        Only whitelisted fields are accepted; state, flags and review
        fields always start from the kind's defaults.

        Raises:
            PayloadValidationError: Unknown, non-editable or missing fields
            PermissionDeniedError: Guard denied creation
            ConflictError: The id is already taken
            StorageUnavailableError: Store failure
        """
        definition = self.definition_for(kind)
        kind_name = definition.kind.value
        if not resource_id or not str(resource_id).strip():
            raise PayloadValidationError("Resource id is required", field="resource_id")

        edits = self._validate_fields(definition, fields)
        missing = sorted(
            name for name in definition.required_fields
            if edits.get(name) in (None, "")
        )
        if missing:
            raise PayloadValidationError(
                f"Missing required fields for {kind_name}: {', '.join(missing)}", field=missing[0]
            )

        permission = Permission(definition.kind, Action.CREATE)
        self._guard(principal, permission, definition, resource_id, edits, None)

        now = self._clock()
        record_fields = copy.deepcopy(dict(definition.default_fields))
        record_fields.update(edits)
        record_fields["created_by"] = principal.user_id
        record = ResourceRecord(
            kind=kind_name,
            resource_id=resource_id,
            state=definition.initial_state,
            version=1,
            fields=record_fields,
            entered_at=now,
            entered_by=principal.user_id,
            previous_state=None,
            created_at=now,
        )

        if self.resources.insert(record) is WriteResult.CONFLICT:
            raise ConflictError(kind_name, resource_id)

        audit_error = self.recorder.record_best_effort(AuditEntry(
            actor_id=principal.user_id,
            action=str(permission),
            resource_kind=kind_name,
            resource_id=resource_id,
            before_state=None,
            after_state=record.state,
            timestamp=now,
            details={"fields": record_fields},
        ))
        logger.info(f"Created {kind_name} {resource_id} by {principal.user_id}")
        return TransitionResult(record=record, previous_state=None, audit_error=audit_error)

    def get(self, kind: Union[str, Resource], resource_id: str, principal: Principal) -> ResourceRecord:
        """Read a resource, guarded by its read permission."""
        definition = self.definition_for(kind)
        record = self.resources.read(definition.kind.value, resource_id)
        if record is None:
            raise NotFoundError(definition.kind.value, resource_id)
        self._guard(
            principal,
            Permission(definition.kind, Action.READ),
            definition,
            resource_id,
            record.fields,
            record.state,
        )
        return record

    def available_actions(
        self,
        kind: Union[str, Resource],
        resource_id: str,
        principal: Principal,
    ) -> List[str]:
        """List the actions ``principal`` may perform from the current state."""
        definition = self.definition_for(kind)
        record = self.resources.read(definition.kind.value, resource_id)
        if record is None:
            raise NotFoundError(definition.kind.value, resource_id)

        actions = []
        for action in definition.actions_from(record.state):
            rule = definition.rule_for(action)
            if rule.precondition is not None and rule.precondition(record, {}):
                continue
            permission = Permission(definition.kind, rule.action)
            if self._decide(principal, permission, definition, record.fields).allowed:
                actions.append(rule.action.value)
        return actions

    def _entry(
        self,
        principal: Principal,
        permission: Permission,
        record: ResourceRecord,
        to_state: str,
        now: datetime,
        reason: Optional[str],
        decision: Decision,
        payload: Mapping[str, Any],
    ) -> AuditEntry:
        details: Dict[str, Any] = {"version": record.version}
        if payload.get("fields"):
            details["fields"] = dict(payload["fields"])
        if decision.via_override:
            details["override"] = OVERRIDE_NAME
            details["base_role"] = principal.base_role.value
        return AuditEntry(
            actor_id=principal.user_id,
            action=str(permission),
            resource_kind=record.kind,
            resource_id=record.resource_id,
            before_state=record.state,
            after_state=to_state,
            timestamp=now,
            reason=reason,
            phase=AuditPhase.COMMITTED,
            severity=AuditSeverity.WARNING if decision.via_override else AuditSeverity.INFO,
            details=details,
        )
