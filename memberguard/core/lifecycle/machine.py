"""Generic state machine definitions.

Every resource kind is described by data: a closed set of states, an
initial state, and one transition rule per action. The engine runs any
definition the same way, so kinds differ only in their tables.

A rule names the states it may start from and where it leads. Rules may
also carry a precondition over the current record and payload (for flags
that live beside the state, such as a job listing's ``archived_at``) and
an effect that computes the kind-specific fields written with the state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, FrozenSet, Mapping, NamedTuple, Optional, Tuple, TYPE_CHECKING

from memberguard.core.rbac.permissions import Action, Resource
from memberguard.core.stores import ResourceRecord

if TYPE_CHECKING:
    from memberguard.core.principal import Principal


@dataclass(frozen=True)
class TransitionContext:
    """Everything an effect may look at while computing new fields."""

    record: ResourceRecord
    principal: "Principal"
    payload: Mapping[str, Any]
    now: datetime
    reason: Optional[str] = None
    via_override: bool = False


Precondition = Callable[[ResourceRecord, Mapping[str, Any]], Optional[str]]
Effect = Callable[[TransitionContext], Dict[str, Any]]
StateResolver = Callable[[ResourceRecord, Mapping[str, Any]], str]
PayloadCheck = Callable[[Mapping[str, Any]], None]


class TransitionRule(NamedTuple):
    """Defines a valid transition for one action.

    Attributes:
        action: Action that triggers the transition
        from_states: States the action may start from
        to_state: Target state; None keeps the current state
        requires_reason: Payload must carry a non-empty ``reason``
        reason_field: Field the reason is stored in
        accepts_fields: Payload may carry editable ``fields``
        precondition: Returns a failure message, or None when satisfied.
            Called with an empty payload when listing available actions.
        effect: Returns field updates written with the state
        next_state: Computes the target state from the record and payload
        check_payload: Raises PayloadValidationError for a malformed payload
        commutative: Re-applying after a lost race composes with the
            winning write, so the action may be retried automatically
    """
    action: Action
    from_states: FrozenSet[str]
    to_state: Optional[str] = None
    requires_reason: bool = False
    reason_field: Optional[str] = None
    accepts_fields: bool = False
    precondition: Optional[Precondition] = None
    effect: Optional[Effect] = None
    next_state: Optional[StateResolver] = None
    check_payload: Optional[PayloadCheck] = None
    commutative: bool = False

    @property
    def retryable(self) -> bool:
        """Safe to reload and re-apply after losing a compare-and-set.

        A fixed target state is re-checked against the winner's state on
        reload. Self-loops and computed targets are not, unless the rule
        declares its effect commutative.
        """
        return self.commutative or (self.to_state is not None and self.next_state is None)

    def resolve_target(self, record: ResourceRecord, payload: Optional[Mapping[str, Any]] = None) -> str:
        if self.next_state is not None:
            return self.next_state(record, payload or {})
        if self.to_state is not None:
            return self.to_state
        return record.state


@dataclass(frozen=True)
class MachineDefinition:
    """State set and transition table for one resource kind."""

    kind: Resource
    states: FrozenSet[str]
    initial_state: str
    rules: Tuple[TransitionRule, ...]
    editable_fields: FrozenSet[str] = frozenset()
    required_fields: FrozenSet[str] = frozenset()
    default_fields: Mapping[str, Any] = field(default_factory=dict)
    terminal_states: FrozenSet[str] = frozenset()
    member_field: Optional[str] = None

    def __post_init__(self):
        if self.initial_state not in self.states:
            raise ValueError(f"{self.kind.value}: unknown initial state {self.initial_state}")
        seen = set()
        for rule in self.rules:
            if rule.action in seen:
                raise ValueError(f"{self.kind.value}: duplicate rule for {rule.action.value}")
            seen.add(rule.action)
            unknown = set(rule.from_states) - set(self.states)
            if rule.to_state is not None:
                unknown |= {rule.to_state} - set(self.states)
            if unknown:
                raise ValueError(
                    f"{self.kind.value}: rule {rule.action.value} references unknown states {sorted(unknown)}"
                )
        if not self.required_fields <= self.editable_fields:
            raise ValueError(f"{self.kind.value}: required fields must be editable")

    def rule_for(self, action: Action) -> Optional[TransitionRule]:
        """Get the transition rule for an action."""
        for rule in self.rules:
            if rule.action == action:
                return rule
        return None

    def can_transition(self, state: str, action: Action) -> bool:
        """Check if an action is valid from the given state."""
        rule = self.rule_for(action)
        return rule is not None and state in rule.from_states

    def target_state(self, state: str, action: Action) -> Optional[str]:
        """Get the static target state for a transition."""
        rule = self.rule_for(action)
        if rule is None or state not in rule.from_states:
            return None
        return rule.to_state if rule.to_state is not None else state

    def actions_from(self, state: str) -> list[Action]:
        """Get the actions defined from a state, ignoring preconditions."""
        return [rule.action for rule in self.rules if state in rule.from_states]

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states
