from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.actor import ActorContext
from app.core.exceptions import NotFound
from app.schemas.application_plans import ApplicationPlanOut, PlanAssignmentRequest
from app.schemas.applications import (
    ApplicationCreate,
    ApplicationListResponse,
    ApplicationOut,
    ApplicationStatus,
    ApplicationUpdate,
    DepartmentsUpdate,
    PrimaryStaffUpdate,
    TransitionOptions,
    TransitionRequest,
)
from app.schemas.audit import AuditLogEntry, AuditLogListResponse
from app.schemas.loans import LoanCreateRequest, LoanDetailResponse, LoanOut, LoanPaymentOut
from app.services import (
    application_state_machine,
    applications,
    assignment_directory,
    authz,
    loan_ledger,
    plan_assigner,
)
from app.services.audit import list_resource_events

router = APIRouter(prefix="/applications", tags=["applications"])


async def _visible_application(db: AsyncSession, actor: ActorContext, application_id: UUID):
    application = await applications.get_application(db, application_id)
    await authz.require_application_view(db, actor, application)
    return application


@router.get("", response_model=ApplicationListResponse, summary="List applications visible to the caller")
async def list_applications(
    actor: ActorContext = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db_session),
    status_filter: list[ApplicationStatus] | None = Query(default=None, alias="status"),
    applicant_id: UUID | None = Query(default=None),
    department: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> ApplicationListResponse:
    items, total = await applications.list_applications(
        db,
        actor,
        statuses=[value.value for value in status_filter] if status_filter else None,
        applicant_id=applicant_id,
        department=department,
        limit=limit,
        offset=offset,
    )
    return ApplicationListResponse(
        items=[ApplicationOut.model_validate(item) for item in items],
        total=total,
    )


@router.post(
    "",
    response_model=ApplicationOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a draft application",
)
async def create_application(
    payload: ApplicationCreate,
    actor: ActorContext = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ApplicationOut:
    application = await applications.create_application(db, actor, payload)
    await db.commit()
    return ApplicationOut.model_validate(application)


@router.get("/{application_id}", response_model=ApplicationOut, summary="Get an application")
async def get_application(
    application_id: UUID,
    actor: ActorContext = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ApplicationOut:
    application = await _visible_application(db, actor, application_id)
    return ApplicationOut.model_validate(application)


@router.patch("/{application_id}", response_model=ApplicationOut, summary="Edit an application's request fields")
async def update_application(
    application_id: UUID,
    payload: ApplicationUpdate,
    actor: ActorContext = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ApplicationOut:
    application = await applications.update_application(db, actor, application_id, payload)
    await db.commit()
    return ApplicationOut.model_validate(application)


@router.get(
    "/{application_id}/transitions",
    response_model=TransitionOptions,
    summary="List the statuses this application can move to",
)
async def list_transitions(
    application_id: UUID,
    actor: ActorContext = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> TransitionOptions:
    application = await _visible_application(db, actor, application_id)
    return TransitionOptions(
        status=application.status,
        available=application_state_machine.available_transitions(application),
    )


@router.post(
    "/{application_id}/transitions",
    response_model=ApplicationOut,
    summary="Move an application to a new status",
)
async def transition_application(
    application_id: UUID,
    payload: TransitionRequest,
    actor: ActorContext = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ApplicationOut:
    application = await application_state_machine.transition(
        db, application_id, payload.target, actor, reason=payload.reason
    )
    await db.commit()
    return ApplicationOut.model_validate(application)


@router.get(
    "/{application_id}/events",
    response_model=AuditLogListResponse,
    summary="Audit trail for an application",
)
async def list_application_events(
    application_id: UUID,
    actor: ActorContext = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db_session),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> AuditLogListResponse:
    await _visible_application(db, actor, application_id)
    items, total = await list_resource_events(
        db,
        resource_type="application",
        resource_id=application_id,
        limit=limit,
        offset=offset,
    )
    return AuditLogListResponse(
        items=[AuditLogEntry.model_validate(item) for item in items],
        total=total,
    )


@router.put(
    "/{application_id}/departments",
    response_model=ApplicationOut,
    summary="Route an application to departments",
)
async def set_departments(
    application_id: UUID,
    payload: DepartmentsUpdate,
    actor: ActorContext = Depends(deps.require_internal_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ApplicationOut:
    application = await assignment_directory.set_application_departments(
        db, actor, application_id, payload.departments
    )
    await db.commit()
    return ApplicationOut.model_validate(application)


@router.put(
    "/{application_id}/primary-staff",
    response_model=ApplicationOut,
    summary="Set or clear the primary staff member for an application",
)
async def set_primary_staff(
    application_id: UUID,
    payload: PrimaryStaffUpdate,
    actor: ActorContext = Depends(deps.require_internal_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ApplicationOut:
    application = await assignment_directory.set_primary_staff(db, actor, application_id, payload.staff_id)
    await db.commit()
    return ApplicationOut.model_validate(application)


@router.get(
    "/{application_id}/plan",
    response_model=ApplicationPlanOut,
    summary="Get the active plan binding",
)
async def get_plan_binding(
    application_id: UUID,
    actor: ActorContext = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ApplicationPlanOut:
    await _visible_application(db, actor, application_id)
    binding = await plan_assigner.get_active_binding(db, application_id)
    if binding is None:
        raise NotFound(
            "No active plan is assigned to this application",
            details={"application_id": str(application_id)},
        )
    return ApplicationPlanOut.model_validate(binding)


@router.put(
    "/{application_id}/plan",
    response_model=ApplicationPlanOut,
    summary="Assign a plan, replacing any active binding",
)
async def assign_plan(
    application_id: UUID,
    payload: PlanAssignmentRequest,
    actor: ActorContext = Depends(deps.require_internal_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ApplicationPlanOut:
    binding = await plan_assigner.assign(db, actor, application_id, payload)
    await db.commit()
    return ApplicationPlanOut.model_validate(binding)


@router.delete(
    "/{application_id}/plan",
    response_model=ApplicationPlanOut | None,
    summary="Deactivate the active plan binding",
)
async def unassign_plan(
    application_id: UUID,
    actor: ActorContext = Depends(deps.require_internal_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ApplicationPlanOut | None:
    binding = await plan_assigner.unassign(db, actor, application_id)
    await db.commit()
    return ApplicationPlanOut.model_validate(binding) if binding else None


@router.get(
    "/{application_id}/plan/history",
    response_model=list[ApplicationPlanOut],
    summary="All plan bindings for an application, newest first",
)
async def plan_history(
    application_id: UUID,
    actor: ActorContext = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> list[ApplicationPlanOut]:
    await _visible_application(db, actor, application_id)
    bindings = await plan_assigner.list_bindings(db, application_id)
    return [ApplicationPlanOut.model_validate(binding) for binding in bindings]


@router.post(
    "/{application_id}/loan",
    response_model=LoanDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create the loan and its installment schedule for an approved application",
)
async def create_loan(
    application_id: UUID,
    payload: LoanCreateRequest,
    actor: ActorContext = Depends(deps.require_internal_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> LoanDetailResponse:
    loan, payments = await loan_ledger.create_loan(db, actor, application_id, payload)
    await db.commit()
    return LoanDetailResponse(
        loan=LoanOut.model_validate(loan),
        payments=[LoanPaymentOut.model_validate(payment) for payment in payments],
    )
