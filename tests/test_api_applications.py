from datetime import datetime, timezone
from uuid import uuid4

from conftest import FakeResult, entity_handler, make_application, make_binding, make_loan, make_payment

from app.api.v1.routers import applications as applications_router
from app.core.exceptions import InvalidTransition, ValidationError
from app.models.application import Application
from app.models.application_plan import ApplicationPlan
from app.models.audit_log import AuditLog
from app.services import application_state_machine, applications, loan_ledger


def test_create_application_returns_draft(client, fake_db, monkeypatch):
    created = make_application()

    async def _create(db, actor, payload):
        assert payload.purpose == "Endow a scholarship"
        return created

    monkeypatch.setattr(applications, "create_application", _create)

    response = client.post(
        "/api/v1/applications",
        json={"requested_amount": "250000", "purpose": "Endow a scholarship"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["code"] == "created"
    assert body["data"]["id"] == str(created.id)
    assert body["data"]["status"] == "draft"
    assert fake_db.committed is True


def test_transition_commits_and_returns_new_status(client, fake_db, monkeypatch):
    application = make_application(status="approved")
    calls = {}

    async def _transition(db, application_id, target, actor, *, reason=None):
        calls.update(target=target, reason=reason)
        return application

    monkeypatch.setattr(application_state_machine, "transition", _transition)

    response = client.post(
        f"/api/v1/applications/{application.id}/transitions",
        json={"target": "approved"},
    )

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "approved"
    assert calls == {"target": "approved", "reason": None}
    assert fake_db.committed is True


def test_illegal_transition_maps_to_conflict(client, fake_db, monkeypatch):
    async def _transition(*args, **kwargs):
        raise InvalidTransition(
            "Cannot move application from submitted to funded",
            details={"status": "submitted", "target": "funded", "allowed": ["approved"]},
        )

    monkeypatch.setattr(application_state_machine, "transition", _transition)

    response = client.post(f"/api/v1/applications/{uuid4()}/transitions", json={"target": "funded"})

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "invalid_transition"
    assert body["data"] is None
    assert body["details"]["allowed"] == ["approved"]
    assert fake_db.committed is False


def test_reject_without_reason_maps_to_bad_request(client, monkeypatch):
    async def _transition(*args, **kwargs):
        raise ValidationError("A rejection reason is required", code="rejection_reason_required")

    monkeypatch.setattr(application_state_machine, "transition", _transition)

    response = client.post(f"/api/v1/applications/{uuid4()}/transitions", json={"target": "rejected"})

    assert response.status_code == 400
    assert response.json()["code"] == "rejection_reason_required"


def test_unknown_target_status_fails_validation(client):
    response = client.post(f"/api/v1/applications/{uuid4()}/transitions", json={"target": "pending"})

    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


def test_available_transitions_for_visible_application(client, fake_db):
    application = make_application(status="submitted")
    fake_db.on_execute(entity_handler(Application, FakeResult(scalar=application)))

    response = client.get(f"/api/v1/applications/{application.id}/transitions")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "submitted"
    assert data["available"] == ["under_review", "approved", "rejected", "cancelled", "closed"]


def test_prospect_cannot_view_someone_elses_application(client, fake_db, override_deps, prospect_actor):
    override_deps["actor"] = prospect_actor
    application = make_application()
    fake_db.on_execute(entity_handler(Application, FakeResult(scalar=application)))

    response = client.get(f"/api/v1/applications/{application.id}")

    assert response.status_code == 403
    assert response.json()["code"] == "forbidden"


def test_prospect_cannot_assign_plans(client, override_deps, prospect_actor):
    override_deps["actor"] = prospect_actor

    response = client.put(f"/api/v1/applications/{uuid4()}/plan", json={"plan_code": "defund"})

    assert response.status_code == 403
    assert response.json()["message"] == "Staff access required"


def test_missing_plan_binding_is_not_found(client, fake_db):
    application = make_application()
    fake_db.on_execute(entity_handler(Application, FakeResult(scalar=application)))
    fake_db.on_execute(entity_handler(ApplicationPlan, FakeResult(scalar=None)))

    response = client.get(f"/api/v1/applications/{application.id}/plan")

    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_plan_history_lists_every_binding(client, fake_db):
    application = make_application()
    bindings = [
        make_binding(application_id=application.id, plan_code="divest"),
        make_binding(application_id=application.id, plan_code="defund", is_active=False),
    ]
    fake_db.on_execute(entity_handler(Application, FakeResult(scalar=application)))
    fake_db.on_execute(entity_handler(ApplicationPlan, FakeResult(items=bindings)))

    response = client.get(f"/api/v1/applications/{application.id}/plan/history")

    assert response.status_code == 200
    assert [item["plan_code"] for item in response.json()["data"]] == ["divest", "defund"]


def test_events_expose_audit_trail(client, fake_db, monkeypatch):
    application = make_application()
    fake_db.on_execute(entity_handler(Application, FakeResult(scalar=application)))
    event = AuditLog(
        id=uuid4(),
        actor_id=uuid4(),
        action="application.submitted",
        resource_type="application",
        resource_id=str(application.id),
        summary="application.submitted: status",
        created_at=datetime.now(timezone.utc),
    )

    async def _events(db, *, resource_type, resource_id, limit, offset):
        assert resource_type == "application"
        return [event], 1

    monkeypatch.setattr(applications_router, "list_resource_events", _events)

    response = client.get(f"/api/v1/applications/{application.id}/events")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total"] == 1
    assert data["items"][0]["action"] == "application.submitted"


def test_create_loan_returns_schedule(client, fake_db, monkeypatch):
    loan = make_loan()
    payments = [make_payment(loan=loan, payment_number=n) for n in (1, 2)]

    async def _create(db, actor, application_id, payload):
        assert payload.mark_funded is True
        return loan, payments

    monkeypatch.setattr(loan_ledger, "create_loan", _create)

    response = client.post(f"/api/v1/applications/{loan.application_id}/loan", json={})

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["loan"]["loan_number"] == loan.loan_number
    assert [item["payment_number"] for item in data["payments"]] == [1, 2]
    assert fake_db.committed is True
