from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.actor import ActorContext
from app.core.exceptions import AuthorizationError, InvalidTransition, NotFound, ValidationError
from app.core.permissions import Action, Resource
from app.models.application import Application
from app.models.user import User
from app.schemas.applications import ApplicationStatus
from app.services import authz
from app.services.audit import model_snapshot, record_audit_log

logger = logging.getLogger(__name__)

S = ApplicationStatus

TRANSITIONS: dict[str, frozenset[str]] = {
    S.DRAFT.value: frozenset({S.SUBMITTED.value, S.CANCELLED.value, S.CLOSED.value}),
    S.SUBMITTED.value: frozenset(
        {S.UNDER_REVIEW.value, S.APPROVED.value, S.REJECTED.value, S.CANCELLED.value, S.CLOSED.value}
    ),
    S.UNDER_REVIEW.value: frozenset(
        {
            S.DOCUMENT_COLLECTION.value,
            S.APPROVED.value,
            S.REJECTED.value,
            S.CANCELLED.value,
            S.CLOSED.value,
        }
    ),
    S.DOCUMENT_COLLECTION.value: frozenset(
        {S.APPROVED.value, S.REJECTED.value, S.CANCELLED.value, S.CLOSED.value}
    ),
    S.APPROVED.value: frozenset({S.FUNDED.value, S.CANCELLED.value, S.CLOSED.value}),
    S.FUNDED.value: frozenset(),
    S.REJECTED.value: frozenset(),
    S.CANCELLED.value: frozenset(),
    S.CLOSED.value: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)

MILESTONES: dict[str, str] = {
    S.SUBMITTED.value: "submitted_at",
    S.UNDER_REVIEW.value: "reviewed_at",
    S.DOCUMENT_COLLECTION.value: "documents_requested_at",
    S.APPROVED.value: "approved_at",
    S.REJECTED.value: "rejected_at",
    S.FUNDED.value: "funded_at",
    S.CANCELLED.value: "closed_at",
    S.CLOSED.value: "closed_at",
}

# Statuses an applicant may still withdraw from on their own.
APPLICANT_CANCELLABLE = frozenset({S.DRAFT.value, S.SUBMITTED.value})


def _status_value(status: ApplicationStatus | str) -> str:
    return status.value if isinstance(status, ApplicationStatus) else str(status)


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def available_transitions(application: Application) -> list[str]:
    targets = TRANSITIONS.get(application.status, frozenset())
    return [status.value for status in ApplicationStatus if status.value in targets]


def check_transition(current: str, target: str) -> None:
    if current not in TRANSITIONS:
        raise InvalidTransition(
            f"Application has unknown status '{current}'",
            code="unknown_status",
            details={"status": current, "target": target},
        )
    if target not in TRANSITIONS:
        raise InvalidTransition(
            f"Unknown target status '{target}'",
            details={"status": current, "target": target},
        )
    if target not in TRANSITIONS[current]:
        message = (
            f"Application is {current} and can no longer change status"
            if is_terminal(current)
            else f"Cannot move application from {current} to {target}"
        )
        raise InvalidTransition(
            message,
            details={
                "status": current,
                "target": target,
                "allowed": sorted(TRANSITIONS[current]),
            },
        )


async def _lock_application(db: AsyncSession, application_id: UUID) -> Application:
    stmt = select(Application).where(Application.id == application_id).with_for_update()
    result = await db.execute(stmt)
    application = result.scalar_one_or_none()
    if application is None:
        raise NotFound("Application not found", details={"application_id": str(application_id)})
    return application


async def _authorize(db: AsyncSession, actor: ActorContext, application: Application, target: str) -> None:
    is_applicant = application.applicant_id == actor.actor_id
    if is_applicant and target == S.SUBMITTED.value:
        return
    if is_applicant and target == S.CANCELLED.value and application.status in APPLICANT_CANCELLABLE:
        return
    if target == S.FUNDED.value:
        await authz.require_resource_action(db, actor, Resource.LOANS, Action.EDIT)
        return
    if not await authz.can_edit_application(db, actor, application):
        raise AuthorizationError(
            f"Not authorized to move this application to {target}",
            details={"application_id": str(application.id), "target": target},
        )


async def _capture_submission_snapshot(db: AsyncSession, application: Application) -> None:
    """Copy the applicant's live financial profile onto the application, once."""
    result = await db.execute(select(User).where(User.id == application.applicant_id))
    applicant = result.scalar_one_or_none()
    if applicant is None:
        return
    if application.annual_income_snapshot is None:
        application.annual_income_snapshot = applicant.annual_income
    if application.net_worth_snapshot is None:
        application.net_worth_snapshot = applicant.net_worth
    if application.tax_bracket_snapshot is None:
        application.tax_bracket_snapshot = applicant.tax_bracket
    if application.age is None:
        application.age = applicant.age
    if application.charitable_intent is None:
        application.charitable_intent = applicant.charitable_intent
    if not application.asset_types:
        application.asset_types = list(applicant.asset_types or [])


def _check_preconditions(application: Application, target: str, reason: str | None) -> str | None:
    cleaned = (reason or "").strip() or None
    if target == S.SUBMITTED.value:
        has_purpose = bool((application.purpose or "").strip())
        if application.requested_amount is None and not has_purpose:
            raise ValidationError(
                "A requested amount or purpose is required to submit",
                code="submission_incomplete",
                details={"missing_fields": ["requested_amount", "purpose"]},
            )
    if target == S.REJECTED.value and cleaned is None:
        raise ValidationError(
            "A rejection reason is required",
            code="rejection_reason_required",
            details={"field": "reason"},
        )
    return cleaned


async def transition(
    db: AsyncSession,
    application_id: UUID,
    target: ApplicationStatus | str,
    actor: ActorContext,
    *,
    reason: str | None = None,
) -> Application:
    """Move an application to ``target`` under a row lock.

    Status, milestone and reason are flushed together; the caller owns the
    commit. Any raised error leaves the row untouched.
    """
    target_value = _status_value(target)
    application = await _lock_application(db, application_id)
    current = application.status
    check_transition(current, target_value)
    await _authorize(db, actor, application, target_value)
    cleaned_reason = _check_preconditions(application, target_value, reason)

    before = model_snapshot(application)
    now = datetime.now(timezone.utc)
    if target_value == S.SUBMITTED.value:
        await _capture_submission_snapshot(db, application)

    application.status = target_value
    milestone = MILESTONES[target_value]
    if getattr(application, milestone) is None:
        setattr(application, milestone, now)
    if target_value == S.REJECTED.value:
        application.rejection_reason = cleaned_reason
    elif target_value in {S.CANCELLED.value, S.CLOSED.value} and cleaned_reason:
        application.closure_reason = cleaned_reason

    # Ensure pending updates are visible with autoflush disabled.
    await db.flush()
    record_audit_log(
        db,
        actor,
        action=f"application.{target_value}",
        resource_type="application",
        resource_id=application.id,
        old_value=before,
        new_value=model_snapshot(application),
    )
    logger.info(
        "Application %s moved %s -> %s",
        application.application_number,
        current,
        target_value,
    )
    return application


async def submit(db: AsyncSession, application_id: UUID, actor: ActorContext) -> Application:
    return await transition(db, application_id, S.SUBMITTED, actor)


async def start_review(db: AsyncSession, application_id: UUID, actor: ActorContext) -> Application:
    return await transition(db, application_id, S.UNDER_REVIEW, actor)


async def request_documents(db: AsyncSession, application_id: UUID, actor: ActorContext) -> Application:
    return await transition(db, application_id, S.DOCUMENT_COLLECTION, actor)


async def approve(db: AsyncSession, application_id: UUID, actor: ActorContext) -> Application:
    return await transition(db, application_id, S.APPROVED, actor)


async def reject(db: AsyncSession, application_id: UUID, actor: ActorContext, reason: str | None) -> Application:
    return await transition(db, application_id, S.REJECTED, actor, reason=reason)


async def fund(db: AsyncSession, application_id: UUID, actor: ActorContext) -> Application:
    return await transition(db, application_id, S.FUNDED, actor)


async def cancel(
    db: AsyncSession, application_id: UUID, actor: ActorContext, reason: str | None = None
) -> Application:
    return await transition(db, application_id, S.CANCELLED, actor, reason=reason)


async def close(
    db: AsyncSession, application_id: UUID, actor: ActorContext, reason: str | None = None
) -> Application:
    return await transition(db, application_id, S.CLOSED, actor, reason=reason)
