from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.actor import ActorContext
from app.core.exceptions import NotFound, ValidationError
from app.core.permissions import Action, Resource, UserRole
from app.models.application import Application
from app.models.prospect_staff_assignment import ProspectStaffAssignment
from app.models.user import User
from app.schemas.common import clean_string_list
from app.services import authz
from app.services.audit import model_snapshot, record_audit_log

logger = logging.getLogger(__name__)


async def is_staff_assigned(db: AsyncSession, staff_id: UUID, prospect_id: UUID) -> bool:
    stmt = select(ProspectStaffAssignment.id).where(
        ProspectStaffAssignment.staff_id == staff_id,
        ProspectStaffAssignment.prospect_id == prospect_id,
        ProspectStaffAssignment.is_active.is_(True),
    )
    result = await db.execute(stmt)
    return result.scalars().first() is not None


async def _get_assignment(db: AsyncSession, assignment_id: UUID, *, for_update: bool = False) -> ProspectStaffAssignment:
    stmt = select(ProspectStaffAssignment).where(ProspectStaffAssignment.id == assignment_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    assignment = result.scalar_one_or_none()
    if assignment is None:
        raise NotFound("Staff assignment not found", details={"assignment_id": str(assignment_id)})
    return assignment


async def _require_staff_member(db: AsyncSession, staff_id: UUID) -> User:
    result = await db.execute(select(User).where(User.id == staff_id))
    staff = result.scalar_one_or_none()
    if staff is None or not staff.is_active:
        raise NotFound("Staff member not found", details={"staff_id": str(staff_id)})
    if staff.role not in {UserRole.STAFF.value, *UserRole.admin_roles()}:
        raise ValidationError(
            "Only staff or admin accounts can be assigned to prospects",
            code="not_staff",
            details={"staff_id": str(staff_id), "role": staff.role},
        )
    return staff


async def _clear_primary(db: AsyncSession, prospect_id: UUID, *, keep_id: UUID | None = None) -> None:
    """Unset the current primary for a prospect so the partial unique index holds."""
    stmt = (
        select(ProspectStaffAssignment)
        .where(
            ProspectStaffAssignment.prospect_id == prospect_id,
            ProspectStaffAssignment.is_active.is_(True),
            ProspectStaffAssignment.is_primary.is_(True),
        )
        .with_for_update()
    )
    result = await db.execute(stmt)
    cleared = False
    for existing in result.scalars().all():
        if keep_id is not None and existing.id == keep_id:
            continue
        existing.is_primary = False
        cleared = True
    if cleared:
        await db.flush()


async def assign_staff(
    db: AsyncSession,
    actor: ActorContext,
    *,
    prospect_id: UUID,
    staff_id: UUID,
    is_primary: bool | None = None,
    notes: str | None = None,
) -> ProspectStaffAssignment:
    """Create or refresh the active pair; an omitted ``is_primary`` leaves the flag as it is."""
    await authz.require_resource_action(db, actor, Resource.PROSPECTS, Action.EDIT)
    await _require_staff_member(db, staff_id)

    stmt = (
        select(ProspectStaffAssignment)
        .where(
            ProspectStaffAssignment.staff_id == staff_id,
            ProspectStaffAssignment.prospect_id == prospect_id,
            ProspectStaffAssignment.is_active.is_(True),
        )
        .with_for_update()
    )
    existing = (await db.execute(stmt)).scalar_one_or_none()

    if is_primary:
        await _clear_primary(db, prospect_id, keep_id=existing.id if existing else None)

    if existing is not None:
        before = model_snapshot(existing)
        if is_primary is not None:
            existing.is_primary = is_primary
        if notes is not None:
            existing.assignment_notes = notes
        await db.flush()
        record_audit_log(
            db,
            actor,
            action="staff_assignment.updated",
            resource_type="prospect_staff_assignment",
            resource_id=existing.id,
            old_value=before,
            new_value=model_snapshot(existing),
        )
        return existing

    assignment = ProspectStaffAssignment(
        staff_id=staff_id,
        prospect_id=prospect_id,
        is_active=True,
        is_primary=bool(is_primary),
        assignment_notes=notes,
        assigned_by=actor.actor_id,
        assigned_at=datetime.now(timezone.utc),
    )
    db.add(assignment)
    await db.flush()
    record_audit_log(
        db,
        actor,
        action="staff_assignment.created",
        resource_type="prospect_staff_assignment",
        resource_id=assignment.id,
        new_value=model_snapshot(assignment),
    )
    logger.info("Staff %s assigned to prospect %s primary=%s", staff_id, prospect_id, assignment.is_primary)
    return assignment


async def update_assignment(
    db: AsyncSession,
    actor: ActorContext,
    assignment_id: UUID,
    *,
    is_primary: bool | None = None,
    notes: str | None = None,
) -> ProspectStaffAssignment:
    await authz.require_resource_action(db, actor, Resource.PROSPECTS, Action.EDIT)
    assignment = await _get_assignment(db, assignment_id, for_update=True)
    if not assignment.is_active:
        raise ValidationError("Staff assignment is no longer active", code="assignment_inactive")
    before = model_snapshot(assignment)
    if is_primary:
        await _clear_primary(db, assignment.prospect_id, keep_id=assignment.id)
    if is_primary is not None:
        assignment.is_primary = is_primary
    if notes is not None:
        assignment.assignment_notes = notes
    await db.flush()
    record_audit_log(
        db,
        actor,
        action="staff_assignment.updated",
        resource_type="prospect_staff_assignment",
        resource_id=assignment.id,
        old_value=before,
        new_value=model_snapshot(assignment),
    )
    return assignment


async def unassign(db: AsyncSession, actor: ActorContext, assignment_id: UUID) -> ProspectStaffAssignment:
    await authz.require_resource_action(db, actor, Resource.PROSPECTS, Action.EDIT)
    assignment = await _get_assignment(db, assignment_id, for_update=True)
    if not assignment.is_active:
        return assignment
    before = model_snapshot(assignment)
    assignment.is_active = False
    assignment.is_primary = False
    assignment.unassigned_at = datetime.now(timezone.utc)
    assignment.unassigned_by = actor.actor_id
    await db.flush()
    record_audit_log(
        db,
        actor,
        action="staff_assignment.removed",
        resource_type="prospect_staff_assignment",
        resource_id=assignment.id,
        old_value=before,
        new_value=model_snapshot(assignment),
    )
    return assignment


async def list_for_prospect(db: AsyncSession, prospect_id: UUID) -> list[ProspectStaffAssignment]:
    stmt = (
        select(ProspectStaffAssignment)
        .where(
            ProspectStaffAssignment.prospect_id == prospect_id,
            ProspectStaffAssignment.is_active.is_(True),
        )
        .order_by(ProspectStaffAssignment.is_primary.desc(), ProspectStaffAssignment.assigned_at.desc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_for_staff(db: AsyncSession, staff_id: UUID) -> list[ProspectStaffAssignment]:
    stmt = (
        select(ProspectStaffAssignment)
        .where(
            ProspectStaffAssignment.staff_id == staff_id,
            ProspectStaffAssignment.is_active.is_(True),
        )
        .order_by(ProspectStaffAssignment.is_primary.desc(), ProspectStaffAssignment.assigned_at.desc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def _lock_application(db: AsyncSession, application_id: UUID) -> Application:
    stmt = select(Application).where(Application.id == application_id).with_for_update()
    application = (await db.execute(stmt)).scalar_one_or_none()
    if application is None:
        raise NotFound("Application not found", details={"application_id": str(application_id)})
    return application


async def set_application_departments(
    db: AsyncSession,
    actor: ActorContext,
    application_id: UUID,
    departments: list[str],
) -> Application:
    application = await _lock_application(db, application_id)
    await authz.require_application_edit(db, actor, application)
    before = list(application.assigned_departments or [])
    application.assigned_departments = clean_string_list(departments)
    await db.flush()
    record_audit_log(
        db,
        actor,
        action="application.departments_assigned",
        resource_type="application",
        resource_id=application.id,
        old_value={"assigned_departments": before},
        new_value={"assigned_departments": application.assigned_departments},
    )
    return application


async def set_primary_staff(
    db: AsyncSession,
    actor: ActorContext,
    application_id: UUID,
    staff_id: UUID | None,
) -> Application:
    application = await _lock_application(db, application_id)
    await authz.require_application_edit(db, actor, application)
    if staff_id is not None:
        await _require_staff_member(db, staff_id)
    before = application.primary_staff_id
    application.primary_staff_id = staff_id
    await db.flush()
    record_audit_log(
        db,
        actor,
        action="application.primary_staff_assigned",
        resource_type="application",
        resource_id=application.id,
        old_value={"primary_staff_id": before},
        new_value={"primary_staff_id": staff_id},
    )
    return application
