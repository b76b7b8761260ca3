from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from conftest import FakeAsyncSession, FakeResult, entity_handler, make_application, make_user

from app.core.actor import ActorContext
from app.core.exceptions import AuthorizationError, InvalidTransition, NotFound, ValidationError
from app.models.application import Application
from app.models.user import User
from app.services import application_state_machine as sm


def _session_for(application, applicant=None) -> FakeAsyncSession:
    db = FakeAsyncSession()
    db.on_execute(entity_handler(Application, FakeResult(scalar=application)))
    db.on_execute(entity_handler(User, FakeResult(scalar=applicant)))
    return db


def test_adjacency_lists_forward_moves_only():
    assert sm.TRANSITIONS["draft"] == {"submitted", "cancelled", "closed"}
    assert "funded" in sm.TRANSITIONS["approved"]
    assert "draft" not in sm.TRANSITIONS["submitted"]
    assert sm.TERMINAL_STATUSES == {"funded", "rejected", "cancelled", "closed"}


def test_available_transitions_follow_enum_order():
    application = make_application(status="under_review")

    assert sm.available_transitions(application) == [
        "document_collection",
        "approved",
        "rejected",
        "cancelled",
        "closed",
    ]
    assert sm.available_transitions(make_application(status="funded")) == []


@pytest.mark.parametrize("terminal", ["funded", "rejected", "cancelled", "closed"])
def test_terminal_statuses_refuse_every_move(terminal):
    for target in sm.TRANSITIONS:
        with pytest.raises(InvalidTransition) as exc:
            sm.check_transition(terminal, target)
        assert exc.value.details["allowed"] == []


def test_skipping_review_to_funded_is_refused():
    with pytest.raises(InvalidTransition) as exc:
        sm.check_transition("submitted", "funded")
    assert "approved" in exc.value.details["allowed"]


def test_legacy_pending_status_is_reported_as_unknown():
    with pytest.raises(InvalidTransition) as exc:
        sm.check_transition("pending", "submitted")
    assert exc.value.code == "unknown_status"


@pytest.mark.asyncio
async def test_missing_application_raises_not_found(admin_actor):
    db = FakeAsyncSession()

    with pytest.raises(NotFound):
        await sm.approve(db, uuid4(), admin_actor)


@pytest.mark.asyncio
async def test_submit_captures_profile_snapshot_and_milestone():
    applicant = make_user(
        annual_income=Decimal("300000.00"),
        net_worth=Decimal("2500000.00"),
        age=52,
        asset_types=["stocks"],
        charitable_intent=True,
        tax_bracket="37%",
    )
    actor = ActorContext(actor_id=applicant.id, role="prospect")
    application = make_application(applicant_id=applicant.id)
    db = _session_for(application, applicant)

    result = await sm.submit(db, application.id, actor)

    assert result.status == "submitted"
    assert result.submitted_at is not None
    assert result.annual_income_snapshot == Decimal("300000.00")
    assert result.net_worth_snapshot == Decimal("2500000.00")
    assert result.age == 52
    assert result.asset_types == ["stocks"]
    assert db.audit_actions() == ["application.submitted"]


@pytest.mark.asyncio
async def test_submit_without_amount_or_purpose_is_rejected(prospect_actor):
    application = make_application(
        applicant_id=prospect_actor.actor_id, requested_amount=None, purpose="  "
    )
    db = _session_for(application)

    with pytest.raises(ValidationError) as exc:
        await sm.submit(db, application.id, prospect_actor)

    assert exc.value.code == "submission_incomplete"
    assert application.status == "draft"


@pytest.mark.asyncio
@pytest.mark.parametrize("source", ["submitted", "under_review", "document_collection"])
@pytest.mark.parametrize("reason", [None, "", "   "])
async def test_reject_requires_reason_from_every_source(admin_actor, source, reason):
    application = make_application(status=source)
    db = _session_for(application)

    with pytest.raises(ValidationError) as exc:
        await sm.reject(db, application.id, admin_actor, reason)

    assert exc.value.code == "rejection_reason_required"
    assert application.status == source
    assert application.rejection_reason is None
    assert db.added == []


@pytest.mark.asyncio
async def test_reject_stores_trimmed_reason(admin_actor):
    application = make_application(status="under_review")
    db = _session_for(application)

    await sm.reject(db, application.id, admin_actor, "  Insufficient assets  ")

    assert application.status == "rejected"
    assert application.rejection_reason == "Insufficient assets"
    assert application.rejected_at is not None
    assert db.audit_actions() == ["application.rejected"]


@pytest.mark.asyncio
async def test_milestone_is_written_once(admin_actor):
    first_review = datetime(2025, 6, 1, tzinfo=timezone.utc)
    application = make_application(status="submitted", reviewed_at=first_review)
    db = _session_for(application)

    await sm.start_review(db, application.id, admin_actor)

    assert application.status == "under_review"
    assert application.reviewed_at == first_review


@pytest.mark.asyncio
async def test_applicant_may_cancel_own_draft(prospect_actor):
    application = make_application(applicant_id=prospect_actor.actor_id)
    db = _session_for(application)

    await sm.cancel(db, application.id, prospect_actor, reason="Changed my mind")

    assert application.status == "cancelled"
    assert application.closure_reason == "Changed my mind"
    assert application.closed_at is not None


@pytest.mark.asyncio
async def test_applicant_cannot_cancel_after_review_starts(prospect_actor):
    application = make_application(applicant_id=prospect_actor.actor_id, status="under_review")
    db = _session_for(application)

    with pytest.raises(AuthorizationError):
        await sm.cancel(db, application.id, prospect_actor)
    assert application.status == "under_review"


@pytest.mark.asyncio
async def test_applicant_cannot_approve_own_application(prospect_actor):
    application = make_application(applicant_id=prospect_actor.actor_id, status="submitted")
    db = _session_for(application)

    with pytest.raises(AuthorizationError):
        await sm.approve(db, application.id, prospect_actor)


@pytest.mark.asyncio
async def test_staff_approval_uses_department_permission(staff_actor, allow_all_permissions):
    application = make_application(status="document_collection")
    db = _session_for(application)

    await sm.approve(db, application.id, staff_actor)

    assert application.status == "approved"
    assert application.approved_at is not None


@pytest.mark.asyncio
async def test_funding_requires_loan_edit_permission(staff_actor, deny_all_permissions):
    application = make_application(status="approved")
    db = _session_for(application)

    with pytest.raises(AuthorizationError):
        await sm.fund(db, application.id, staff_actor)
    assert application.status == "approved"


@pytest.mark.asyncio
async def test_illegal_move_is_checked_before_authorization(prospect_actor):
    application = make_application(status="funded")
    db = _session_for(application)

    with pytest.raises(InvalidTransition):
        await sm.approve(db, application.id, prospect_actor)
