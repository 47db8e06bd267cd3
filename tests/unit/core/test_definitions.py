"""Tests for the per-kind transition tables."""

import pytest

from memberguard.core.lifecycle import (
    CONVERSATION,
    DEFINITIONS,
    FINANCIAL_PERIOD,
    IDENTITY_VERIFICATION,
    JOB_LISTING,
    MachineDefinition,
    SCAM_REPORT,
    TransitionRule,
    get_definition,
)
from memberguard.core.rbac import Action, Resource
from memberguard.core.stores import ResourceRecord


class TestTransitionTables:

    def test_every_lifecycle_kind_is_defined(self):
        assert set(DEFINITIONS) == {
            Resource.FINANCIAL_PERIOD,
            Resource.IDENTITY_VERIFICATION,
            Resource.SCAM_REPORT,
            Resource.JOB_LISTING,
            Resource.CONVERSATION,
        }
        assert get_definition("job_listing") is JOB_LISTING

    def test_period_targets(self):
        assert FINANCIAL_PERIOD.target_state("open", Action.CLOSE) == "closed"
        assert FINANCIAL_PERIOD.target_state("locked", Action.UNLOCK) == "closed"
        # Re-applying close from its own target is not a transition
        assert FINANCIAL_PERIOD.target_state("closed", Action.CLOSE) is None
        assert not FINANCIAL_PERIOD.can_transition("closed", Action.CLOSE)

    def test_unlock_requires_reason(self):
        rule = FINANCIAL_PERIOD.rule_for(Action.UNLOCK)
        assert rule.requires_reason
        assert rule.reason_field == "unlock_reason"

    def test_review_outcomes_are_terminal(self):
        assert IDENTITY_VERIFICATION.is_terminal("APPROVED")
        assert IDENTITY_VERIFICATION.is_terminal("REJECTED")
        assert not IDENTITY_VERIFICATION.is_terminal("PENDING")
        assert SCAM_REPORT.actions_from("verified") == []

    def test_actions_from_submitted_report(self):
        assert set(SCAM_REPORT.actions_from("submitted")) == {
            Action.MARK_PENDING, Action.VERIFY, Action.REJECT,
        }

    def test_listing_flag_actions_keep_status(self):
        assert JOB_LISTING.target_state("open", Action.ARCHIVE) == "open"
        assert JOB_LISTING.rule_for(Action.SEND_MESSAGE) is None

    def test_creation_fields_are_whitelisted(self):
        assert "title" in JOB_LISTING.required_fields
        assert "is_published" not in JOB_LISTING.editable_fields
        assert "archived_at" not in JOB_LISTING.editable_fields


class TestDefinitionValidation:

    def test_unknown_initial_state(self):
        with pytest.raises(ValueError, match="initial state"):
            MachineDefinition(
                kind=Resource.FINANCIAL_PERIOD,
                states=frozenset(["open"]),
                initial_state="draft",
                rules=(),
            )

    def test_rule_to_unknown_state(self):
        with pytest.raises(ValueError, match="unknown states"):
            MachineDefinition(
                kind=Resource.FINANCIAL_PERIOD,
                states=frozenset(["open", "closed"]),
                initial_state="open",
                rules=(
                    TransitionRule(Action.CLOSE, frozenset(["open"]), "archived"),
                ),
            )

    def test_duplicate_rule(self):
        rule = TransitionRule(Action.CLOSE, frozenset(["open"]), "closed")
        with pytest.raises(ValueError, match="duplicate"):
            MachineDefinition(
                kind=Resource.FINANCIAL_PERIOD,
                states=frozenset(["open", "closed"]),
                initial_state="open",
                rules=(rule, rule),
            )

    def test_required_fields_must_be_editable(self):
        with pytest.raises(ValueError, match="editable"):
            MachineDefinition(
                kind=Resource.FINANCIAL_PERIOD,
                states=frozenset(["open"]),
                initial_state="open",
                rules=(),
                required_fields=frozenset(["period_year"]),
            )


class TestRetryableRules:

    def test_fixed_targets_are_retryable(self):
        assert FINANCIAL_PERIOD.rule_for(Action.CLOSE).retryable
        assert SCAM_REPORT.rule_for(Action.VERIFY).retryable

    def test_self_loops_and_computed_targets_are_not(self):
        assert not JOB_LISTING.rule_for(Action.UPDATE).retryable
        assert not JOB_LISTING.rule_for(Action.TOGGLE_PUBLISH).retryable
        assert not JOB_LISTING.rule_for(Action.ARCHIVE).retryable

    def test_commutative_self_loop_is_retryable(self):
        assert CONVERSATION.rule_for(Action.SEND_MESSAGE).retryable

    def test_publish_target_follows_payload(self):
        rule = JOB_LISTING.rule_for(Action.TOGGLE_PUBLISH)
        draft = ResourceRecord(
            kind="job_listing", resource_id="J1", state="draft",
            fields={"is_published": False, "archived_at": None},
        )
        assert rule.resolve_target(draft, {"published": True}) == "open"
        assert rule.resolve_target(draft, {"published": False}) == "draft"
