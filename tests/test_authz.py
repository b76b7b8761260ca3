from uuid import uuid4

import pytest
from conftest import FakeAsyncSession, FakeResult, entity_handler, make_application, make_loan

from app.core.actor import ActorContext
from app.core.exceptions import AuthorizationError
from app.core.permissions import Action, Resource
from app.models.department import DepartmentPermission
from app.models.prospect_staff_assignment import ProspectStaffAssignment
from app.services import authz


def _granting_session(*, granted: bool, assigned: bool = False) -> FakeAsyncSession:
    db = FakeAsyncSession()
    db.on_execute(entity_handler(DepartmentPermission, FakeResult(scalar=uuid4() if granted else None)))
    db.on_execute(entity_handler(ProspectStaffAssignment, FakeResult(items=[uuid4()] if assigned else [])))
    return db


@pytest.mark.asyncio
async def test_admin_bypasses_department_rows(admin_actor):
    db = FakeAsyncSession()

    assert await authz.check_permission(db, admin_actor, Resource.LOANS, Action.DELETE) is True
    assert db.statements == []


@pytest.mark.asyncio
async def test_external_roles_hold_no_permissions(prospect_actor):
    db = _granting_session(granted=True)

    assert await authz.check_permission(db, prospect_actor, Resource.APPLICATIONS, Action.VIEW) is False


@pytest.mark.asyncio
async def test_staff_without_departments_is_denied():
    actor = ActorContext(actor_id=uuid4(), role="staff")

    assert await authz.check_permission(_granting_session(granted=True), actor, "loans", "view") is False


@pytest.mark.asyncio
async def test_staff_permission_comes_from_department_row(staff_actor):
    assert await authz.check_permission(_granting_session(granted=True), staff_actor, "loans", "edit") is True
    assert await authz.check_permission(_granting_session(granted=False), staff_actor, "loans", "edit") is False


@pytest.mark.asyncio
async def test_require_resource_action_raises_with_details(staff_actor):
    with pytest.raises(AuthorizationError) as exc:
        await authz.require_resource_action(_granting_session(granted=False), staff_actor, Resource.PLANS, Action.EDIT)

    assert exc.value.details == {"resource": "plans", "action": "edit"}


@pytest.mark.asyncio
async def test_staff_edit_needs_responsibility_for_routed_application(staff_actor):
    routed_elsewhere = make_application(assigned_departments=["compliance"])
    routed_here = make_application(assigned_departments=["underwriting"])
    unrouted = make_application()

    db = _granting_session(granted=True)
    assert await authz.can_edit_application(db, staff_actor, routed_elsewhere) is False
    assert await authz.can_edit_application(db, staff_actor, routed_here) is True
    assert await authz.can_edit_application(db, staff_actor, unrouted) is True


@pytest.mark.asyncio
async def test_primary_staff_or_assignment_grants_responsibility(staff_actor):
    primary = make_application(assigned_departments=["compliance"], primary_staff_id=staff_actor.actor_id)
    assigned = make_application(assigned_departments=["compliance"])

    assert await authz.is_responsible_for(_granting_session(granted=True), staff_actor, primary) is True
    assert (
        await authz.is_responsible_for(_granting_session(granted=True, assigned=True), staff_actor, assigned)
        is True
    )


@pytest.mark.asyncio
async def test_applicant_can_view_but_not_edit_own_application(prospect_actor):
    application = make_application(applicant_id=prospect_actor.actor_id)
    db = FakeAsyncSession()

    assert await authz.can_view_application(db, prospect_actor, application) is True
    assert await authz.can_edit_application(db, prospect_actor, application) is False
    with pytest.raises(AuthorizationError):
        await authz.require_application_view(db, prospect_actor, make_application())


@pytest.mark.asyncio
async def test_loan_view_is_open_to_the_borrower(prospect_actor):
    db = FakeAsyncSession()

    await authz.require_loan_view(db, prospect_actor, make_loan(applicant_id=prospect_actor.actor_id))
    with pytest.raises(AuthorizationError):
        await authz.require_loan_view(db, prospect_actor, make_loan())
