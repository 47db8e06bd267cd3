"""Tests for the kernel facade."""

import pytest

from memberguard.core.errors import ConflictError, PermissionDeniedError
from memberguard.core.principal import PrincipalResolver
from memberguard.core.rbac import ViolationType
from memberguard.core.stores import ResourceRecord
from memberguard.kernel import Kernel

from tests.fakes import FIXED_NOW, InMemoryDirectoryStore, InMemorySessionStore


@pytest.fixture
def kernel(engine, entries):
    resolver = PrincipalResolver(InMemorySessionStore(), InMemoryDirectoryStore())
    return Kernel(resolver, engine, entries, conflict_retries=1)


def seed_scam_report(store, state="pending"):
    store.put(ResourceRecord(
        kind="scam_report", resource_id="S1", state=state, entered_at=FIXED_NOW,
        fields={"evidence_file_urls": ["https://files.example/1.png"]},
    ))


class TestKernelTransitions:

    def test_retry_rereads_after_conflict(self, kernel, resource_store, manager):
        """Messages compose, so the retry re-applies on top of the competing write."""
        resource_store.put(ResourceRecord(
            kind="conversation", resource_id="C1", state="open",
            fields={"member_id": "m-1", "message_count": 0}, entered_at=FIXED_NOW,
        ))

        def competing_writer(record):
            kernel.engine.transition("conversation", "C1", "send_message", manager)

        resource_store.after_read = competing_writer
        result = kernel.transition("conversation", "C1", "send_message", manager)

        assert result.record.version == 3
        assert result.record.fields["message_count"] == 2

    def test_no_retry_when_disabled(self, kernel, resource_store, chairman):
        seed_scam_report(resource_store)

        def competing_writer(record):
            kernel.engine.transition("scam_report", "S1", "verify", chairman)

        resource_store.after_read = competing_writer
        with pytest.raises(ConflictError):
            kernel.transition("scam_report", "S1", "verify", chairman, retries=0)

    def test_retry_surfaces_invalid_transition(self, kernel, resource_store, chairman):
        """After reload the winner already verified the report."""
        from memberguard.core.errors import TransitionError

        seed_scam_report(resource_store)

        def competing_writer(record):
            kernel.engine.transition("scam_report", "S1", "verify", chairman)

        resource_store.after_read = competing_writer
        with pytest.raises(TransitionError):
            kernel.transition("scam_report", "S1", "verify", chairman)

    def test_create_and_actions(self, kernel, chairman):
        kernel.create("job_listing", "J1", chairman, {"title": "Clerk"})
        assert "toggle_publish" in kernel.available_actions("job_listing", "J1", chairman)
        assert kernel.get("job_listing", "J1", chairman).state == "draft"

    def test_denial_propagates(self, kernel, resource_store, manager):
        seed_scam_report(resource_store)
        with pytest.raises(PermissionDeniedError):
            kernel.transition("scam_report", "S1", "verify", manager)


class TestKernelEvaluation:

    def test_member_access_uses_fresh_assignment(self, kernel, assignment_store, agent):
        decision = kernel.evaluate_for_member(agent, "conversation:read", "m-1")
        assert not decision.allowed
        assert decision.violation_type == ViolationType.NOT_ASSIGNED

        assignment_store.assign(agent.user_id, "m-1")
        assert kernel.evaluate_for_member(agent, "conversation:read", "m-1").allowed

    def test_staff_skip_assignment_lookup(self, kernel, assignment_store, worker):
        assert kernel.evaluate_for_member(worker, "conversation:read", "m-1").allowed
        assert assignment_store.lookups == 0

    def test_evaluate_without_fact(self, kernel, chairman):
        assert kernel.evaluate(chairman, "scam_report:verify").allowed

    def test_ensure_entry(self, kernel):
        first = kernel.ensure_entry("u-1", "draw-1")
        second = kernel.ensure_entry("u-1", "draw-1")
        assert first.created and not second.created
        assert first.entry.entered_at == second.entry.entered_at


def seed_listing(store, published=False):
    store.put(ResourceRecord(
        kind="job_listing", resource_id="J1", state="open", entered_at=FIXED_NOW,
        fields={"title": "Clerk", "is_published": published, "archived_at": None},
    ))


class TestKernelRaces:

    def test_concurrent_publishes_apply_once(self, kernel, resource_store, chairman):
        """Two chairmen publish at once: one changes state, the other gets Conflict."""
        seed_listing(resource_store)
        winners = []

        def competing_publish(record):
            winners.append(kernel.transition(
                "job_listing", "J1", "toggle_publish", chairman, {"published": True}
            ))

        resource_store.after_read = competing_publish
        with pytest.raises(ConflictError):
            kernel.transition("job_listing", "J1", "toggle_publish", chairman, {"published": True})

        stored = resource_store.get("job_listing", "J1")
        assert stored.fields["is_published"] is True
        assert stored.version == 2
        assert len(winners) == 1
        assert resource_store.writes == 1

    def test_explicit_retries_do_not_reapply_publish(self, kernel, resource_store, chairman):
        seed_listing(resource_store, published=True)

        def competing_unpublish(record):
            kernel.engine.transition(
                "job_listing", "J1", "toggle_publish", chairman, {"published": False}
            )

        resource_store.after_read = competing_unpublish
        with pytest.raises(ConflictError):
            kernel.transition(
                "job_listing", "J1", "toggle_publish", chairman, {"published": False}, retries=3
            )
        assert resource_store.get("job_listing", "J1").fields["is_published"] is False

    def test_concurrent_updates_are_not_retried(self, kernel, resource_store, chairman):
        seed_listing(resource_store)

        def competing_update(record):
            kernel.engine.transition(
                "job_listing", "J1", "update", chairman, {"fields": {"title": "Accountant"}}
            )

        resource_store.after_read = competing_update
        with pytest.raises(ConflictError):
            kernel.transition("job_listing", "J1", "update", chairman, {"fields": {"title": "Cashier"}})
        assert resource_store.get("job_listing", "J1").fields["title"] == "Accountant"

    def test_unknown_permission_string_is_denied(self, kernel, chairman):
        decision = kernel.evaluate(chairman, "conversation:bogus")
        assert not decision.allowed
        assert decision.violation_type == ViolationType.INSUFFICIENT_ROLE
