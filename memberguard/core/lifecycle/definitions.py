"""Transition tables for each resource kind.

State Diagrams:

Financial period:
    open ──close──► closed ──lock──► locked
                      ▲                 │
                      └─────unlock──────┘  (reason required)

Identity verification:
    PENDING ──approve──► APPROVED
       │
       └──reject──► REJECTED  (reason required)

Scam report:
    submitted ──mark_pending──► pending
        │                          │
        ├──verify──► verified ◄────┤  (evidence required)
        └──reject──► rejected ◄────┘  (reason required)

Job listing (status, with is_published and archived_at beside it):
    draft ──toggle_publish──► open ──close──► closed
                                ▲               │
                                └────reopen─────┘
    toggle_publish takes an explicit published target; publishing a draft opens it.
    archive/restore/update apply in any status.

Conversation:
    open ──close──► closed ──reopen──► open
"""

from typing import Any, Dict, Mapping, Optional

from memberguard.core.errors import PayloadValidationError
from memberguard.core.rbac.permissions import Action, Resource
from memberguard.core.stores import ResourceRecord
from .machine import MachineDefinition, TransitionContext, TransitionRule


def _states(*names: str) -> frozenset:
    return frozenset(names)


def _stamp(prefix: str):
    """Effect writing ``<prefix>_at`` and ``<prefix>_by`` for the acting principal."""
    def effect(ctx: TransitionContext) -> Dict[str, Any]:
        return {
            f"{prefix}_at": ctx.now.isoformat(),
            f"{prefix}_by": ctx.principal.user_id,
        }
    return effect


# ============================================================================
# Financial period
# ============================================================================

class PeriodState:
    OPEN = "open"
    CLOSED = "closed"
    LOCKED = "locked"


FINANCIAL_PERIOD = MachineDefinition(
    kind=Resource.FINANCIAL_PERIOD,
    states=_states(PeriodState.OPEN, PeriodState.CLOSED, PeriodState.LOCKED),
    initial_state=PeriodState.OPEN,
    rules=(
        TransitionRule(
            action=Action.CLOSE,
            from_states=_states(PeriodState.OPEN),
            to_state=PeriodState.CLOSED,
            effect=_stamp("closed"),
        ),
        TransitionRule(
            action=Action.LOCK,
            from_states=_states(PeriodState.CLOSED),
            to_state=PeriodState.LOCKED,
            effect=_stamp("locked"),
        ),
        TransitionRule(
            action=Action.UNLOCK,
            from_states=_states(PeriodState.LOCKED),
            to_state=PeriodState.CLOSED,
            requires_reason=True,
            reason_field="unlock_reason",
            effect=_stamp("unlocked"),
        ),
    ),
    editable_fields=frozenset([
        "period_year",
        "period_month",
        "period_start_date",
        "period_end_date",
        "notes",
    ]),
    required_fields=frozenset(["period_year", "period_month"]),
)


# ============================================================================
# Identity verification
# ============================================================================

class VerificationState:
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


def _approve_verification(ctx: TransitionContext) -> Dict[str, Any]:
    fields = _stamp("reviewed")(ctx)
    fields["rejection_reason"] = None
    return fields


IDENTITY_VERIFICATION = MachineDefinition(
    kind=Resource.IDENTITY_VERIFICATION,
    states=_states(
        VerificationState.PENDING,
        VerificationState.APPROVED,
        VerificationState.REJECTED,
    ),
    initial_state=VerificationState.PENDING,
    rules=(
        TransitionRule(
            action=Action.APPROVE,
            from_states=_states(VerificationState.PENDING),
            to_state=VerificationState.APPROVED,
            effect=_approve_verification,
        ),
        TransitionRule(
            action=Action.REJECT,
            from_states=_states(VerificationState.PENDING),
            to_state=VerificationState.REJECTED,
            requires_reason=True,
            reason_field="rejection_reason",
            effect=_stamp("reviewed"),
        ),
    ),
    editable_fields=frozenset([
        "first_name",
        "middle_name",
        "last_name",
        "title",
        "date_of_birth",
        "nationality",
        "id_type",
        "id_number",
        "id_front_url",
        "id_back_url",
        "selfie_url",
    ]),
    required_fields=frozenset(["first_name", "last_name", "id_type"]),
    default_fields={"rejection_reason": None},
    terminal_states=_states(VerificationState.APPROVED, VerificationState.REJECTED),
)


# ============================================================================
# Scam report
# ============================================================================

class ScamReportState:
    SUBMITTED = "submitted"
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


_UNDER_REVIEW = _states(ScamReportState.SUBMITTED, ScamReportState.PENDING)


def _has_evidence(record: ResourceRecord, payload: Mapping[str, Any]) -> Optional[str]:
    urls = record.fields.get("evidence_file_urls") or []
    if not any(isinstance(url, str) and url.strip() for url in urls):
        return "Scam report cannot be verified without evidence"
    return None


def _verify_report(ctx: TransitionContext) -> Dict[str, Any]:
    fields = _stamp("reviewed")(ctx)
    notes = ctx.payload.get("notes")
    if isinstance(notes, str) and notes.strip():
        fields["review_notes"] = notes.strip()
    return fields


SCAM_REPORT = MachineDefinition(
    kind=Resource.SCAM_REPORT,
    states=_states(
        ScamReportState.SUBMITTED,
        ScamReportState.PENDING,
        ScamReportState.VERIFIED,
        ScamReportState.REJECTED,
    ),
    initial_state=ScamReportState.SUBMITTED,
    rules=(
        TransitionRule(
            action=Action.MARK_PENDING,
            from_states=_states(ScamReportState.SUBMITTED),
            to_state=ScamReportState.PENDING,
            effect=_stamp("review_started"),
        ),
        TransitionRule(
            action=Action.VERIFY,
            from_states=_UNDER_REVIEW,
            to_state=ScamReportState.VERIFIED,
            precondition=_has_evidence,
            effect=_verify_report,
        ),
        TransitionRule(
            action=Action.REJECT,
            from_states=_UNDER_REVIEW,
            to_state=ScamReportState.REJECTED,
            requires_reason=True,
            reason_field="review_notes",
            effect=_stamp("reviewed"),
        ),
    ),
    editable_fields=frozenset([
        "scammer_name",
        "scammer_company",
        "scammer_contact",
        "incident_description",
        "incident_date",
        "amount_lost",
        "currency",
        "evidence_file_urls",
    ]),
    required_fields=frozenset(["scammer_name", "incident_description"]),
    default_fields={"evidence_file_urls": [], "review_notes": None},
    terminal_states=_states(ScamReportState.VERIFIED, ScamReportState.REJECTED),
)


# ============================================================================
# Job listing
# ============================================================================

class ListingStatus:
    DRAFT = "draft"
    OPEN = "open"
    CLOSED = "closed"


_ANY_LISTING_STATUS = _states(ListingStatus.DRAFT, ListingStatus.OPEN, ListingStatus.CLOSED)

LISTING_EDITABLE_FIELDS = frozenset([
    "title",
    "department",
    "description",
    "requirements",
    "responsibilities",
    "qualifications",
    "benefits",
    "employment_type",
    "location_type",
    "location_country",
    "location_city",
    "application_email",
    "opens_at",
    "closes_at",
])


def _is_archived(record: ResourceRecord) -> bool:
    return record.fields.get("archived_at") is not None


def _not_archived(record: ResourceRecord, payload: Mapping[str, Any]) -> Optional[str]:
    if _is_archived(record):
        return "Archived job listings must be restored first"
    return None


def _publish_blocker(record: ResourceRecord) -> Optional[str]:
    if _is_archived(record):
        return "Archived job listings cannot be published"
    if record.state == ListingStatus.CLOSED:
        return "Closed job listings cannot be published"
    return None


def _require_published_flag(payload: Mapping[str, Any]) -> None:
    if not isinstance(payload.get("published"), bool):
        raise PayloadValidationError(
            "toggle_publish needs an explicit published: true or false", field="published"
        )


def _can_set_published(record: ResourceRecord, payload: Mapping[str, Any]) -> Optional[str]:
    published = bool(record.fields.get("is_published"))
    target = payload.get("published")
    if target is None:
        # Listing available actions: some direction must be possible
        return None if published else _publish_blocker(record)
    if target == published:
        return f"Job listing is already {'published' if published else 'unpublished'}"
    return _publish_blocker(record) if target else None


def _set_published(ctx: TransitionContext) -> Dict[str, Any]:
    if ctx.payload["published"]:
        return {"is_published": True, "published_at": ctx.now.isoformat()}
    return {"is_published": False}


def _publish_target(record: ResourceRecord, payload: Mapping[str, Any]) -> str:
    if payload.get("published") and record.state == ListingStatus.DRAFT:
        return ListingStatus.OPEN
    return record.state


def _is_archivable(record: ResourceRecord, payload: Mapping[str, Any]) -> Optional[str]:
    if _is_archived(record):
        return "Job listing is already archived"
    return None


def _is_restorable(record: ResourceRecord, payload: Mapping[str, Any]) -> Optional[str]:
    if not _is_archived(record):
        return "Job listing is not archived"
    return None


def _archive_listing(ctx: TransitionContext) -> Dict[str, Any]:
    # One write: archived and unpublished together
    return {
        "archived_at": ctx.now.isoformat(),
        "archived_by": ctx.principal.user_id,
        "is_published": False,
    }


def _restore_listing(ctx: TransitionContext) -> Dict[str, Any]:
    return {"archived_at": None, "archived_by": None}


JOB_LISTING = MachineDefinition(
    kind=Resource.JOB_LISTING,
    states=_ANY_LISTING_STATUS,
    initial_state=ListingStatus.DRAFT,
    rules=(
        TransitionRule(
            action=Action.UPDATE,
            from_states=_ANY_LISTING_STATUS,
            accepts_fields=True,
            precondition=_not_archived,
            effect=_stamp("updated"),
        ),
        TransitionRule(
            action=Action.TOGGLE_PUBLISH,
            from_states=_ANY_LISTING_STATUS,
            precondition=_can_set_published,
            effect=_set_published,
            next_state=_publish_target,
            check_payload=_require_published_flag,
        ),
        TransitionRule(
            action=Action.CLOSE,
            from_states=_states(ListingStatus.OPEN),
            to_state=ListingStatus.CLOSED,
            precondition=_not_archived,
            effect=_stamp("closed"),
        ),
        TransitionRule(
            action=Action.REOPEN,
            from_states=_states(ListingStatus.CLOSED),
            to_state=ListingStatus.OPEN,
            precondition=_not_archived,
            effect=_stamp("reopened"),
        ),
        TransitionRule(
            action=Action.ARCHIVE,
            from_states=_ANY_LISTING_STATUS,
            precondition=_is_archivable,
            effect=_archive_listing,
        ),
        TransitionRule(
            action=Action.RESTORE,
            from_states=_ANY_LISTING_STATUS,
            precondition=_is_restorable,
            effect=_restore_listing,
        ),
    ),
    editable_fields=LISTING_EDITABLE_FIELDS,
    required_fields=frozenset(["title"]),
    default_fields={
        "is_published": False,
        "published_at": None,
        "archived_at": None,
        "archived_by": None,
    },
)


# ============================================================================
# Conversation
# ============================================================================

class ConversationState:
    OPEN = "open"
    CLOSED = "closed"


def _record_message(ctx: TransitionContext) -> Dict[str, Any]:
    return {
        "last_message_at": ctx.now.isoformat(),
        "last_message_by": ctx.principal.user_id,
        "message_count": int(ctx.record.fields.get("message_count") or 0) + 1,
    }


CONVERSATION = MachineDefinition(
    kind=Resource.CONVERSATION,
    states=_states(ConversationState.OPEN, ConversationState.CLOSED),
    initial_state=ConversationState.OPEN,
    rules=(
        TransitionRule(
            action=Action.SEND_MESSAGE,
            from_states=_states(ConversationState.OPEN),
            effect=_record_message,
            commutative=True,
        ),
        TransitionRule(
            action=Action.CLOSE,
            from_states=_states(ConversationState.OPEN),
            to_state=ConversationState.CLOSED,
            effect=_stamp("closed"),
        ),
        TransitionRule(
            action=Action.REOPEN,
            from_states=_states(ConversationState.CLOSED),
            to_state=ConversationState.OPEN,
            effect=_stamp("reopened"),
        ),
    ),
    editable_fields=frozenset(["member_id", "subject"]),
    required_fields=frozenset(["member_id"]),
    default_fields={"message_count": 0},
    member_field="member_id",
)


DEFINITIONS: Dict[Resource, MachineDefinition] = {
    definition.kind: definition
    for definition in (
        FINANCIAL_PERIOD,
        IDENTITY_VERIFICATION,
        SCAM_REPORT,
        JOB_LISTING,
        CONVERSATION,
    )
}


def get_definition(kind: Resource) -> Optional[MachineDefinition]:
    """Get the machine definition for a resource kind."""
    return DEFINITIONS.get(kind)
