from decimal import Decimal

from conftest import FakeResult, entity_handler, make_plan, make_user

from app.models.application import Application
from app.models.plan import Plan
from app.models.user import User


def _catalog():
    return [make_plan("defund"), make_plan("diversion"), make_plan("divest")]


def test_list_plans_returns_active_catalog(client, fake_db):
    fake_db.on_execute(entity_handler(Plan, FakeResult(items=_catalog())))

    response = client.get("/api/v1/plans")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total"] == 3
    assert [item["code"] for item in data["items"]] == ["defund", "diversion", "divest"]


def test_inactive_plans_need_plan_view_permission(client, override_deps, prospect_actor):
    override_deps["actor"] = prospect_actor

    response = client.get("/api/v1/plans", params={"include_inactive": "true"})

    assert response.status_code == 403


def test_inactive_plan_is_hidden_from_prospects(client, fake_db, override_deps, prospect_actor):
    override_deps["actor"] = prospect_actor
    fake_db.on_execute(entity_handler(Plan, FakeResult(scalar=make_plan("retired", is_active=False))))

    response = client.get("/api/v1/plans/RETIRED")

    assert response.status_code == 404
    assert response.json()["code"] == "plan_not_found"


def test_evaluate_fills_omitted_fields_from_stored_profile(client, fake_db, override_deps, prospect_actor):
    override_deps["actor"] = prospect_actor
    stored = make_user(id=prospect_actor.actor_id, age=45, net_worth=Decimal("1000000"))
    fake_db.on_execute(entity_handler(User, FakeResult(scalar=stored)))
    fake_db.on_execute(entity_handler(Plan, FakeResult(items=_catalog())))

    response = client.post(
        "/api/v1/plans/evaluate",
        json={"annual_income": "250000", "asset_types": ["stocks"], "charitable_intent": True},
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["qualified"] is True
    assert data["qualified_plans"] == ["defund", "divest"]
    assert data["missing_info"] == []
    assert fake_db.added == []


def test_evaluate_reports_missing_information(client, fake_db, override_deps, prospect_actor):
    override_deps["actor"] = prospect_actor
    fake_db.on_execute(entity_handler(User, FakeResult(scalar=make_user(id=prospect_actor.actor_id))))
    fake_db.on_execute(entity_handler(Plan, FakeResult(items=_catalog())))

    response = client.post("/api/v1/plans/evaluate", json={"charitable_intent": True})

    data = response.json()["data"]
    assert data["qualified"] is False
    assert data["missing_info"] == ["annual_income", "net_worth", "age"]


def test_prequalify_files_submitted_application(client, fake_db, override_deps, prospect_actor):
    override_deps["actor"] = prospect_actor
    user = make_user(id=prospect_actor.actor_id)
    fake_db.on_execute(entity_handler(User, FakeResult(scalar=user)))
    fake_db.on_execute(entity_handler(Plan, FakeResult(items=_catalog())))
    fake_db.on_execute(
        entity_handler(Application, lambda: FakeResult(scalar=fake_db.added_of(Application)[-1]))
    )

    response = client.post(
        "/api/v1/prequalify",
        json={
            "annual_income": "250000",
            "net_worth": "1000000",
            "age": 45,
            "asset_types": ["stocks"],
            "charitable_intent": True,
            "tax_bracket": "35%",
        },
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["application"]["application_type"] == "prequalification"
    assert data["application"]["status"] == "submitted"
    assert data["application"]["qualified_plan_codes"] == ["defund", "divest"]
    assert data["result"]["qualified_plans"] == ["defund", "divest"]
    assert user.annual_income == Decimal("250000")
    assert user.tax_bracket == "35%"
    assert fake_db.audit_actions() == ["profile.updated", "application.created", "application.submitted"]
    assert fake_db.committed is True


def test_profile_of_another_user_needs_prospect_view(client, fake_db, override_deps, prospect_actor):
    override_deps["actor"] = prospect_actor
    fake_db.on_execute(entity_handler(User, FakeResult(scalar=make_user())))

    response = client.get(f"/api/v1/users/{make_user().id}/profile")

    assert response.status_code == 403


def test_own_profile_update_is_audited(client, fake_db, override_deps, prospect_actor):
    override_deps["actor"] = prospect_actor
    user = make_user(id=prospect_actor.actor_id)
    fake_db.on_execute(entity_handler(User, FakeResult(scalar=user)))

    response = client.patch("/api/v1/profile", json={"age": 60, "charitable_intent": True})

    assert response.status_code == 200
    assert response.json()["data"]["age"] == 60
    assert fake_db.audit_actions() == ["profile.updated"]
