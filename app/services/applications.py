from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.actor import ActorContext
from app.core.exceptions import NotFound, ValidationError
from app.core.permissions import Action, Resource
from app.core.settings import settings
from app.models.application import Application
from app.schemas.applications import (
    ApplicationCreate,
    ApplicationStatus,
    ApplicationType,
    ApplicationUpdate,
    PrequalifyRequest,
)
from app.schemas.plans import QualificationResult
from app.schemas.profile import ProfileUpdate
from app.services import application_state_machine, authz, plan_catalog, profiles, qualifier
from app.services.audit import model_snapshot, record_audit_log

logger = logging.getLogger(__name__)

PREQUALIFICATION_PURPOSE = "Prequalification assessment"


def generate_application_number(now: datetime | None = None) -> str:
    moment = now or datetime.now(timezone.utc)
    return f"{settings.application_number_prefix}-{moment:%Y%m}-{uuid4().hex[:6].upper()}"


async def get_application(db: AsyncSession, application_id: UUID) -> Application:
    result = await db.execute(select(Application).where(Application.id == application_id))
    application = result.scalar_one_or_none()
    if application is None:
        raise NotFound("Application not found", details={"application_id": str(application_id)})
    return application


async def list_applications(
    db: AsyncSession,
    actor: ActorContext,
    *,
    statuses: list[str] | None = None,
    applicant_id: UUID | None = None,
    department: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Application], int]:
    filters = []
    if actor.is_external:
        filters.append(Application.applicant_id == actor.actor_id)
    else:
        await authz.require_resource_action(db, actor, Resource.APPLICATIONS, Action.VIEW)
        if applicant_id is not None:
            filters.append(Application.applicant_id == applicant_id)
    if statuses:
        filters.append(Application.status.in_(statuses))
    if department:
        filters.append(Application.assigned_departments.contains([department]))

    count_stmt = select(func.count()).select_from(Application).where(*filters)
    total = (await db.execute(count_stmt)).scalar_one_or_none() or 0
    stmt = (
        select(Application)
        .where(*filters)
        .order_by(Application.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all()), int(total)


def _new_application(applicant_id: UUID, application_type: str) -> Application:
    return Application(
        application_number=generate_application_number(),
        applicant_id=applicant_id,
        status=ApplicationStatus.DRAFT.value,
        application_type=application_type,
        qualified_plan_codes=[],
        qualification_reasons=[],
        asset_types=[],
        assigned_departments=[],
    )


async def create_application(
    db: AsyncSession,
    actor: ActorContext,
    payload: ApplicationCreate,
) -> Application:
    applicant_id = payload.applicant_id or actor.actor_id
    if applicant_id != actor.actor_id:
        await authz.require_resource_action(db, actor, Resource.APPLICATIONS, Action.EDIT)
    if payload.assigned_departments and actor.is_external:
        raise ValidationError(
            "Applicants cannot route their own applications",
            code="departments_not_allowed",
        )

    application = _new_application(applicant_id, payload.application_type)
    application.requested_amount = payload.requested_amount
    application.purpose = payload.purpose
    application.notes = payload.notes
    application.assigned_departments = list(payload.assigned_departments)
    db.add(application)
    await db.flush()
    record_audit_log(
        db,
        actor,
        action="application.created",
        resource_type="application",
        resource_id=application.id,
        new_value=model_snapshot(application),
    )
    logger.info("Application %s created for applicant %s", application.application_number, applicant_id)
    return application


async def update_application(
    db: AsyncSession,
    actor: ActorContext,
    application_id: UUID,
    payload: ApplicationUpdate,
) -> Application:
    stmt = select(Application).where(Application.id == application_id).with_for_update()
    application = (await db.execute(stmt)).scalar_one_or_none()
    if application is None:
        raise NotFound("Application not found", details={"application_id": str(application_id)})
    if application_state_machine.is_terminal(application.status):
        raise ValidationError(
            f"Application is {application.status} and can no longer be edited",
            code="application_closed",
            details={"status": application.status},
        )
    owner_editing_draft = (
        application.applicant_id == actor.actor_id
        and application.status == ApplicationStatus.DRAFT.value
    )
    if not owner_editing_draft:
        await authz.require_application_edit(db, actor, application)

    changes = payload.model_dump(exclude_unset=True)
    if application.status != ApplicationStatus.DRAFT.value:
        amount = changes.get("requested_amount", application.requested_amount)
        purpose = changes.get("purpose", application.purpose)
        if amount is None and not (purpose or "").strip():
            raise ValidationError(
                "A submitted application must keep a requested amount or purpose",
                code="submission_incomplete",
                details={"missing_fields": ["requested_amount", "purpose"]},
            )

    before = model_snapshot(application)
    for field, value in changes.items():
        setattr(application, field, value)
    await db.flush()
    record_audit_log(
        db,
        actor,
        action="application.updated",
        resource_type="application",
        resource_id=application.id,
        old_value=before,
        new_value=model_snapshot(application),
    )
    return application


async def prequalify(
    db: AsyncSession,
    actor: ActorContext,
    payload: PrequalifyRequest,
) -> tuple[Application, QualificationResult]:
    """Record the collected profile, evaluate it, and file a submitted prequalification."""
    collected = payload.model_dump(include=payload.model_fields_set & set(profiles.PROFILE_FIELDS))
    await profiles.update_profile(db, actor, actor.actor_id, ProfileUpdate(**collected))

    catalog = await plan_catalog.load_catalog(db)
    profile = qualifier.FinancialProfile(
        annual_income=payload.annual_income,
        net_worth=payload.net_worth,
        age=payload.age,
        asset_types=tuple(payload.asset_types),
        charitable_intent=payload.charitable_intent,
    )
    result = qualifier.evaluate(profile, catalog)

    application = _new_application(actor.actor_id, ApplicationType.PREQUALIFICATION.value)
    application.requested_amount = payload.requested_amount
    application.purpose = (payload.purpose or "").strip() or PREQUALIFICATION_PURPOSE
    application.qualified = result.qualified
    application.qualified_plan_codes = list(result.qualified_plans)
    application.qualification_reasons = list(result.reasons)
    application.asset_types = list(payload.asset_types)
    application.age = payload.age
    application.charitable_intent = payload.charitable_intent
    db.add(application)
    await db.flush()
    record_audit_log(
        db,
        actor,
        action="application.created",
        resource_type="application",
        resource_id=application.id,
        new_value=model_snapshot(application),
    )
    application = await application_state_machine.submit(db, application.id, actor)
    logger.info(
        "Prequalification %s qualified=%s plans=%s",
        application.application_number,
        result.qualified,
        ",".join(result.qualified_plans) or "-",
    )
    return application, result
