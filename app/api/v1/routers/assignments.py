from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.actor import ActorContext
from app.core.permissions import Action, Resource
from app.schemas.assignments import (
    StaffAssignmentCreate,
    StaffAssignmentListResponse,
    StaffAssignmentOut,
    StaffAssignmentUpdate,
)
from app.services import assignment_directory, authz

router = APIRouter(tags=["staff-assignments"])


def _list_payload(items) -> StaffAssignmentListResponse:
    return StaffAssignmentListResponse(
        items=[StaffAssignmentOut.model_validate(item) for item in items],
        total=len(items),
    )


@router.get(
    "/prospects/{prospect_id}/staff-assignments",
    response_model=StaffAssignmentListResponse,
    summary="Active staff assignments for a prospect",
)
async def list_prospect_assignments(
    prospect_id: UUID,
    actor: ActorContext = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> StaffAssignmentListResponse:
    if prospect_id != actor.actor_id:
        await authz.require_resource_action(db, actor, Resource.PROSPECTS, Action.VIEW)
    return _list_payload(await assignment_directory.list_for_prospect(db, prospect_id))


@router.post(
    "/prospects/{prospect_id}/staff-assignments",
    response_model=StaffAssignmentOut,
    status_code=status.HTTP_201_CREATED,
    summary="Assign a staff member to a prospect",
)
async def assign_staff(
    prospect_id: UUID,
    payload: StaffAssignmentCreate,
    actor: ActorContext = Depends(deps.require_internal_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> StaffAssignmentOut:
    assignment = await assignment_directory.assign_staff(
        db,
        actor,
        prospect_id=prospect_id,
        staff_id=payload.staff_id,
        is_primary=payload.is_primary,
        notes=payload.assignment_notes,
    )
    await db.commit()
    return StaffAssignmentOut.model_validate(assignment)


@router.patch(
    "/staff-assignments/{assignment_id}",
    response_model=StaffAssignmentOut,
    summary="Update an assignment's primary flag or notes",
)
async def update_assignment(
    assignment_id: UUID,
    payload: StaffAssignmentUpdate,
    actor: ActorContext = Depends(deps.require_internal_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> StaffAssignmentOut:
    assignment = await assignment_directory.update_assignment(
        db,
        actor,
        assignment_id,
        is_primary=payload.is_primary,
        notes=payload.assignment_notes,
    )
    await db.commit()
    return StaffAssignmentOut.model_validate(assignment)


@router.delete(
    "/staff-assignments/{assignment_id}",
    response_model=StaffAssignmentOut,
    summary="End a staff assignment",
)
async def unassign_staff(
    assignment_id: UUID,
    actor: ActorContext = Depends(deps.require_internal_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> StaffAssignmentOut:
    assignment = await assignment_directory.unassign(db, actor, assignment_id)
    await db.commit()
    return StaffAssignmentOut.model_validate(assignment)


@router.get(
    "/staff/{staff_id}/prospect-assignments",
    response_model=StaffAssignmentListResponse,
    summary="Prospects a staff member is assigned to",
)
async def list_staff_assignments(
    staff_id: UUID,
    actor: ActorContext = Depends(deps.require_internal_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> StaffAssignmentListResponse:
    if staff_id != actor.actor_id:
        await authz.require_resource_action(db, actor, Resource.PROSPECTS, Action.VIEW)
    return _list_payload(await assignment_directory.list_for_staff(db, staff_id))
