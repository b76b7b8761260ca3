from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.actor import ActorContext
from app.core.exceptions import NotFound, ValidationError
from app.models.application import Application
from app.models.application_plan import ApplicationPlan
from app.schemas.application_plans import PlanAssignmentRequest
from app.services import application_state_machine, authz, plan_catalog
from app.services.audit import model_snapshot, record_audit_log

logger = logging.getLogger(__name__)


async def _lock_application(db: AsyncSession, application_id: UUID) -> Application:
    stmt = select(Application).where(Application.id == application_id).with_for_update()
    application = (await db.execute(stmt)).scalar_one_or_none()
    if application is None:
        raise NotFound("Application not found", details={"application_id": str(application_id)})
    return application


async def get_active_binding(db: AsyncSession, application_id: UUID) -> ApplicationPlan | None:
    stmt = select(ApplicationPlan).where(
        ApplicationPlan.application_id == application_id,
        ApplicationPlan.is_active.is_(True),
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def list_bindings(db: AsyncSession, application_id: UUID) -> list[ApplicationPlan]:
    stmt = (
        select(ApplicationPlan)
        .where(ApplicationPlan.application_id == application_id)
        .order_by(ApplicationPlan.assigned_at.desc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def _deactivate(db: AsyncSession, binding: ApplicationPlan, now: datetime) -> None:
    binding.is_active = False
    binding.deactivated_at = now
    # Flush before inserting the replacement so the partial unique index never sees two active rows.
    await db.flush()


async def assign(
    db: AsyncSession,
    actor: ActorContext,
    application_id: UUID,
    payload: PlanAssignmentRequest,
) -> ApplicationPlan:
    """Bind a plan (with optional overrides) to an application, replacing any active binding."""
    application = await _lock_application(db, application_id)
    await authz.require_application_edit(db, actor, application)
    if application_state_machine.is_terminal(application.status):
        raise ValidationError(
            f"Cannot assign a plan to a {application.status} application",
            code="application_closed",
            details={"status": application.status},
        )
    plan = await plan_catalog.get_plan(db, payload.plan_code, active_only=True)

    now = datetime.now(timezone.utc)
    previous = await get_active_binding(db, application.id)
    previous_snapshot = model_snapshot(previous) if previous else None
    if previous is not None:
        await _deactivate(db, previous, now)

    binding = ApplicationPlan(
        application_id=application.id,
        plan_code=plan.code,
        is_active=True,
        custom_loan_amount=payload.custom_loan_amount,
        custom_max_amount=payload.custom_max_amount,
        custom_terms=payload.custom_terms.model_dump(exclude_none=True, mode="json") if payload.custom_terms else None,
        calculator_results=payload.calculator_results,
        notes=payload.notes,
        assigned_by=actor.actor_id,
        assigned_at=now,
    )
    db.add(binding)
    await db.flush()
    record_audit_log(
        db,
        actor,
        action="application.plan_assigned",
        resource_type="application",
        resource_id=application.id,
        old_value=previous_snapshot,
        new_value=model_snapshot(binding),
    )
    logger.info(
        "Plan %s bound to application %s (replaced=%s)",
        plan.code,
        application.application_number,
        previous.plan_code if previous else "-",
    )
    return binding


async def unassign(db: AsyncSession, actor: ActorContext, application_id: UUID) -> ApplicationPlan | None:
    application = await _lock_application(db, application_id)
    await authz.require_application_edit(db, actor, application)
    binding = await get_active_binding(db, application.id)
    if binding is None:
        return None
    before = model_snapshot(binding)
    await _deactivate(db, binding, datetime.now(timezone.utc))
    record_audit_log(
        db,
        actor,
        action="application.plan_unassigned",
        resource_type="application",
        resource_id=application.id,
        old_value=before,
        new_value=model_snapshot(binding),
    )
    return binding
