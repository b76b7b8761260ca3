from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.actor import ActorContext
from app.core.exceptions import (
    AlreadySettled,
    InvalidTransition,
    NotFound,
    OverpaymentError,
    ValidationError,
)
from app.core.permissions import Action, Resource
from app.core.settings import settings
from app.models.application import Application
from app.models.application_plan import ApplicationPlan
from app.models.loan import Loan
from app.models.loan_payment import LoanPayment
from app.models.plan import Plan
from app.schemas.applications import ApplicationStatus
from app.schemas.loans import LoanCreateRequest, LoanStatus, PaymentStatus, RecordPaymentRequest
from app.services import application_state_machine, authz, plan_assigner, plan_catalog, qualifier
from app.services.audit import model_snapshot, record_audit_log
from app.services.loan_schedules import add_months, build_installments

logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")

OPEN_PAYMENT_STATUSES = frozenset(
    {
        PaymentStatus.PENDING.value,
        PaymentStatus.SCHEDULED.value,
        PaymentStatus.OVERDUE.value,
        PaymentStatus.MISSED.value,
    }
)
OVERDUE_CANDIDATE_STATUSES = frozenset({PaymentStatus.PENDING.value, PaymentStatus.SCHEDULED.value})
PAYABLE_LOAN_STATUSES = frozenset({LoanStatus.ACTIVE.value, LoanStatus.DEFAULTED.value})
LOANABLE_APPLICATION_STATUSES = frozenset(
    {ApplicationStatus.APPROVED.value, ApplicationStatus.FUNDED.value}
)

LOAN_STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    LoanStatus.PENDING.value: frozenset({LoanStatus.ACTIVE.value, LoanStatus.CANCELLED.value}),
    LoanStatus.ACTIVE.value: frozenset(
        {LoanStatus.DEFAULTED.value, LoanStatus.CANCELLED.value, LoanStatus.CLOSED.value}
    ),
    LoanStatus.DEFAULTED.value: frozenset({LoanStatus.ACTIVE.value, LoanStatus.CLOSED.value}),
    LoanStatus.PAID_OFF.value: frozenset({LoanStatus.CLOSED.value}),
    LoanStatus.CANCELLED.value: frozenset(),
    LoanStatus.CLOSED.value: frozenset(),
}


@dataclass(frozen=True)
class LoanTerms:
    interest_rate: Decimal
    term_months: int
    payment_frequency: str


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _quantize(value: Decimal) -> Decimal:
    return value.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def generate_loan_number(now: datetime | None = None) -> str:
    moment = now or datetime.now(timezone.utc)
    return f"{settings.loan_number_prefix}-{moment:%Y%m}-{uuid4().hex[:6].upper()}"


def resolve_principal(
    *,
    requested_principal: Decimal | None,
    binding: ApplicationPlan | None,
    plan: Plan | None,
    application: Application,
) -> tuple[Decimal, str]:
    """Pick the loan principal and report which source supplied it."""
    custom_max = (
        _as_decimal(binding.custom_max_amount)
        if binding is not None and binding.custom_max_amount is not None
        else None
    )
    if requested_principal is not None:
        principal, source = _as_decimal(requested_principal), "request"
        if custom_max is not None and principal > custom_max:
            raise ValidationError(
                "Principal exceeds the approved maximum for this application",
                code="principal_above_max",
                details={"principal_amount": str(principal), "custom_max_amount": str(custom_max)},
            )
    elif binding is not None and binding.custom_loan_amount is not None:
        principal, source = _as_decimal(binding.custom_loan_amount), "custom_loan_amount"
    elif plan is not None and (
        loan_range := qualifier.suggested_range(
            plan, application.annual_income_snapshot, application.net_worth_snapshot
        )
    ).has_capacity:
        principal, source = loan_range.suggested, "plan_calculator"
        if custom_max is not None:
            principal = min(principal, custom_max)
    elif application.requested_amount is not None:
        principal, source = _as_decimal(application.requested_amount), "requested_amount"
    else:
        principal, source = ZERO, "none"

    principal = _quantize(principal)
    if principal <= 0:
        raise ValidationError(
            "Unable to determine a positive loan principal",
            code="principal_required",
            details={"source": source},
        )
    return principal, source


def resolve_terms(payload: LoanCreateRequest, binding: ApplicationPlan | None) -> LoanTerms:
    custom: dict[str, Any] = dict(binding.custom_terms or {}) if binding is not None else {}
    if payload.interest_rate is not None:
        rate = _as_decimal(payload.interest_rate)
    elif custom.get("interest_rate") is not None:
        rate = _as_decimal(custom["interest_rate"])
    else:
        rate = settings.default_interest_rate
    term = payload.term_months or custom.get("duration") or settings.default_term_months
    frequency = payload.payment_frequency or custom.get("payment_schedule") or settings.default_payment_frequency
    if rate < 0 or rate > 1:
        raise ValidationError("interest_rate must be a fraction between 0 and 1", details={"interest_rate": str(rate)})
    return LoanTerms(interest_rate=rate, term_months=int(term), payment_frequency=str(frequency))


def allocate_payment(
    amount: Decimal,
    installment: LoanPayment,
    current_balance: Decimal,
) -> tuple[Decimal, Decimal]:
    """Split a payment by the installment's scheduled principal ratio."""
    amount_due = _as_decimal(installment.amount_due)
    scheduled_principal = _as_decimal(installment.principal_amount)
    if amount_due > 0:
        principal_portion = _quantize(amount * scheduled_principal / amount_due)
    else:
        principal_portion = ZERO
    principal_portion = min(principal_portion, scheduled_principal, _as_decimal(current_balance))
    principal_portion = max(principal_portion, ZERO)
    return principal_portion, _quantize(amount - principal_portion)


def is_overdue(payment: LoanPayment, as_of: date) -> bool:
    if payment.status == PaymentStatus.OVERDUE.value:
        return True
    return payment.status in OVERDUE_CANDIDATE_STATUSES and payment.due_date < as_of


def effective_status(payment: LoanPayment, as_of: date) -> str:
    if payment.status in OVERDUE_CANDIDATE_STATUSES and payment.due_date < as_of:
        return PaymentStatus.OVERDUE.value
    return payment.status


async def _lock_loan(db: AsyncSession, loan_id: UUID) -> Loan:
    stmt = select(Loan).where(Loan.id == loan_id).with_for_update()
    loan = (await db.execute(stmt)).scalar_one_or_none()
    if loan is None:
        raise NotFound("Loan not found", details={"loan_id": str(loan_id)})
    return loan


async def get_loan(db: AsyncSession, loan_id: UUID) -> Loan:
    result = await db.execute(select(Loan).where(Loan.id == loan_id))
    loan = result.scalar_one_or_none()
    if loan is None:
        raise NotFound("Loan not found", details={"loan_id": str(loan_id)})
    return loan


async def list_payments(db: AsyncSession, loan_id: UUID) -> list[LoanPayment]:
    stmt = select(LoanPayment).where(LoanPayment.loan_id == loan_id).order_by(LoanPayment.payment_number)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_loans(
    db: AsyncSession,
    actor: ActorContext,
    *,
    statuses: list[str] | None = None,
    applicant_id: UUID | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Loan], int]:
    filters = []
    if actor.is_external:
        filters.append(Loan.applicant_id == actor.actor_id)
    else:
        await authz.require_resource_action(db, actor, Resource.LOANS, Action.VIEW)
        if applicant_id is not None:
            filters.append(Loan.applicant_id == applicant_id)
    if statuses:
        filters.append(Loan.status.in_(statuses))
    count_stmt = select(func.count()).select_from(Loan).where(*filters)
    total = (await db.execute(count_stmt)).scalar_one_or_none() or 0
    stmt = select(Loan).where(*filters).order_by(Loan.created_at.desc()).offset(offset).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all()), int(total)


async def _next_open_installment(db: AsyncSession, loan_id: UUID, *, exclude_id: UUID | None = None) -> LoanPayment | None:
    stmt = (
        select(LoanPayment)
        .where(
            LoanPayment.loan_id == loan_id,
            LoanPayment.status.in_(sorted(OPEN_PAYMENT_STATUSES)),
        )
        .order_by(LoanPayment.payment_number)
    )
    if exclude_id is not None:
        stmt = stmt.where(LoanPayment.id != exclude_id)
    result = await db.execute(stmt.limit(1))
    return result.scalars().first()


async def create_loan(
    db: AsyncSession,
    actor: ActorContext,
    application_id: UUID,
    payload: LoanCreateRequest,
) -> tuple[Loan, list[LoanPayment]]:
    """Materialize a loan and its full installment schedule from an approved application."""
    await authz.require_resource_action(db, actor, Resource.LOANS, Action.EDIT)
    stmt = select(Application).where(Application.id == application_id).with_for_update()
    application = (await db.execute(stmt)).scalar_one_or_none()
    if application is None:
        raise NotFound("Application not found", details={"application_id": str(application_id)})
    # A funded application may still lack its loan when it was moved by a plain transition.
    if application.status not in LOANABLE_APPLICATION_STATUSES:
        raise InvalidTransition(
            "Loans can only be created from approved applications",
            code="application_not_approved",
            details={"status": application.status},
        )

    existing_stmt = select(Loan.id).where(
        Loan.application_id == application.id,
        Loan.status != LoanStatus.CANCELLED.value,
    )
    if (await db.execute(existing_stmt)).scalars().first() is not None:
        raise InvalidTransition(
            "A loan already exists for this application",
            code="loan_already_exists",
            details={"application_id": str(application.id)},
        )

    binding = await plan_assigner.get_active_binding(db, application.id)
    plan = await plan_catalog.get_plan(db, binding.plan_code) if binding is not None else None
    principal, principal_source = resolve_principal(
        requested_principal=payload.principal_amount,
        binding=binding,
        plan=plan,
        application=application,
    )
    terms = resolve_terms(payload, binding)

    now = datetime.now(timezone.utc)
    disbursement_date = payload.disbursement_date or now.date()
    installments = build_installments(
        principal=principal,
        annual_rate=terms.interest_rate,
        term_months=terms.term_months,
        frequency=terms.payment_frequency,
        start_date=disbursement_date,
    )

    loan = Loan(
        loan_number=generate_loan_number(now),
        application_id=application.id,
        applicant_id=application.applicant_id,
        plan_code=plan.code if plan is not None else None,
        status=LoanStatus.ACTIVE.value,
        principal_amount=principal,
        interest_rate=terms.interest_rate,
        term_months=terms.term_months,
        payment_frequency=terms.payment_frequency,
        loan_terms={
            "principal_source": principal_source,
            "installments": len(installments),
            "periodic_payment": str(installments[0].amount_due),
        },
        current_balance=principal,
        total_paid=ZERO,
        total_principal_paid=ZERO,
        total_interest_paid=ZERO,
        next_payment_date=installments[0].due_date,
        next_payment_amount=installments[0].amount_due,
        disbursed_at=now,
        maturity_date=add_months(disbursement_date, terms.term_months),
        notes=payload.notes,
        created_by=actor.actor_id,
    )
    db.add(loan)
    await db.flush()

    payments = [
        LoanPayment(
            loan_id=loan.id,
            payment_number=entry.payment_number,
            scheduled_date=entry.due_date,
            due_date=entry.due_date,
            amount_due=entry.amount_due,
            principal_amount=entry.principal_amount,
            interest_amount=entry.interest_amount,
            late_fee=ZERO,
            penalty_amount=ZERO,
            status=PaymentStatus.SCHEDULED.value,
        )
        for entry in installments
    ]
    for payment in payments:
        db.add(payment)
    await db.flush()

    record_audit_log(
        db,
        actor,
        action="loan.created",
        resource_type="loan",
        resource_id=loan.id,
        new_value=model_snapshot(loan),
    )
    logger.info(
        "Loan %s created from application %s principal=%s source=%s installments=%s",
        loan.loan_number,
        application.application_number,
        principal,
        principal_source,
        len(payments),
    )

    if payload.mark_funded and application.status == ApplicationStatus.APPROVED.value:
        await application_state_machine.fund(db, application.id, actor)
    return loan, payments


async def record_payment(
    db: AsyncSession,
    actor: ActorContext,
    loan_id: UUID,
    payment_id: UUID,
    payload: RecordPaymentRequest,
) -> tuple[Loan, LoanPayment]:
    """Settle one installment and roll the loan aggregates forward in the same transaction."""
    await authz.require_resource_action(db, actor, Resource.LOANS, Action.EDIT)
    loan = await _lock_loan(db, loan_id)
    if loan.status not in PAYABLE_LOAN_STATUSES:
        raise InvalidTransition(
            f"Payments cannot be recorded against a {loan.status} loan",
            code="loan_not_active",
            details={"status": loan.status},
        )

    stmt = select(LoanPayment).where(LoanPayment.id == payment_id).with_for_update()
    payment = (await db.execute(stmt)).scalar_one_or_none()
    if payment is None or payment.loan_id != loan.id:
        raise NotFound(
            "Installment not found for this loan",
            details={"loan_id": str(loan_id), "payment_id": str(payment_id)},
        )
    if payment.status == PaymentStatus.PAID.value:
        raise AlreadySettled(
            "Installment has already been paid",
            details={"payment_id": str(payment.id), "paid_date": payment.paid_date},
        )
    if payment.status == PaymentStatus.CANCELLED.value:
        raise ValidationError(
            "Installment has been cancelled",
            code="payment_cancelled",
            details={"payment_id": str(payment.id)},
        )

    amount = _quantize(_as_decimal(payload.amount_paid))
    if amount <= 0:
        raise ValidationError("amount_paid must be greater than zero", details={"amount_paid": str(amount)})
    ceiling = _as_decimal(payment.amount_due) + _as_decimal(payment.late_fee or 0) + _as_decimal(
        payment.penalty_amount or 0
    )
    if amount > ceiling:
        raise OverpaymentError(
            "Payment exceeds the amount due for this installment",
            details={"amount_paid": str(amount), "maximum": str(_quantize(ceiling))},
        )

    loan_before = model_snapshot(loan)
    principal_portion, interest_portion = allocate_payment(amount, payment, loan.current_balance)
    now = datetime.now(timezone.utc)
    paid_date = payload.paid_date or now.date()

    payment.status = PaymentStatus.PAID.value
    payment.amount_paid = amount
    payment.principal_paid = principal_portion
    payment.interest_paid = interest_portion
    payment.paid_date = paid_date
    payment.payment_method = payload.payment_method
    payment.payment_reference = payload.payment_reference
    payment.notes = payload.notes
    payment.processed_by = actor.actor_id

    loan.total_paid = _quantize(_as_decimal(loan.total_paid) + amount)
    loan.total_principal_paid = _quantize(_as_decimal(loan.total_principal_paid) + principal_portion)
    loan.total_interest_paid = _quantize(_as_decimal(loan.total_interest_paid) + interest_portion)
    loan.current_balance = max(_quantize(_as_decimal(loan.current_balance) - principal_portion), ZERO)
    loan.last_payment_date = paid_date
    loan.last_payment_amount = amount

    paid_off = loan.current_balance == 0
    if paid_off:
        loan.status = LoanStatus.PAID_OFF.value
        loan.paid_off_at = now
        loan.next_payment_date = None
        loan.next_payment_amount = None
    else:
        upcoming = await _next_open_installment(db, loan.id, exclude_id=payment.id)
        loan.next_payment_date = upcoming.due_date if upcoming else None
        loan.next_payment_amount = upcoming.amount_due if upcoming else None

    await db.flush()
    record_audit_log(
        db,
        actor,
        action="loan.payment_recorded",
        resource_type="loan",
        resource_id=loan.id,
        old_value=loan_before,
        new_value=model_snapshot(loan),
    )
    if paid_off:
        record_audit_log(
            db,
            actor,
            action="loan.paid_off",
            resource_type="loan",
            resource_id=loan.id,
            new_value={"paid_off_at": now, "total_paid": loan.total_paid},
        )
    logger.info(
        "Payment %s recorded on loan %s amount=%s principal=%s interest=%s balance=%s",
        payment.payment_number,
        loan.loan_number,
        amount,
        principal_portion,
        interest_portion,
        loan.current_balance,
    )
    return loan, payment


async def update_loan_status(
    db: AsyncSession,
    actor: ActorContext,
    loan_id: UUID,
    target: LoanStatus | str,
    *,
    reason: str | None = None,
) -> Loan:
    await authz.require_resource_action(db, actor, Resource.LOANS, Action.EDIT)
    target_value = target.value if isinstance(target, LoanStatus) else str(target)
    loan = await _lock_loan(db, loan_id)
    allowed = LOAN_STATUS_TRANSITIONS.get(loan.status, frozenset())
    if target_value == LoanStatus.PAID_OFF.value or target_value not in allowed:
        raise InvalidTransition(
            f"Cannot move loan from {loan.status} to {target_value}",
            details={"status": loan.status, "target": target_value, "allowed": sorted(allowed)},
        )

    before = model_snapshot(loan)
    now = datetime.now(timezone.utc)
    loan.status = target_value
    if target_value in {LoanStatus.CANCELLED.value, LoanStatus.CLOSED.value} and loan.closed_at is None:
        loan.closed_at = now
    if reason:
        loan.notes = f"{loan.notes}\n{reason}".strip() if loan.notes else reason
    if target_value == LoanStatus.CANCELLED.value:
        stmt = select(LoanPayment).where(
            LoanPayment.loan_id == loan.id,
            LoanPayment.status.in_(sorted(OPEN_PAYMENT_STATUSES)),
        )
        for payment in (await db.execute(stmt)).scalars().all():
            payment.status = PaymentStatus.CANCELLED.value
        loan.next_payment_date = None
        loan.next_payment_amount = None

    await db.flush()
    record_audit_log(
        db,
        actor,
        action=f"loan.{target_value}",
        resource_type="loan",
        resource_id=loan.id,
        old_value=before,
        new_value=model_snapshot(loan),
    )
    return loan


async def mark_overdue(db: AsyncSession, as_of: date) -> int:
    """Persist the derived overdue status for installments past due as of ``as_of``."""
    stmt = (
        select(LoanPayment)
        .join(Loan, Loan.id == LoanPayment.loan_id)
        .where(
            Loan.status.in_(sorted(PAYABLE_LOAN_STATUSES)),
            LoanPayment.status.in_(sorted(OVERDUE_CANDIDATE_STATUSES)),
            LoanPayment.due_date < as_of,
        )
        .with_for_update(of=LoanPayment, skip_locked=True)
    )
    payments = (await db.execute(stmt)).scalars().all()
    for payment in payments:
        payment.status = PaymentStatus.OVERDUE.value
    if payments:
        await db.flush()
    logger.info("Marked %s installments overdue as of %s", len(payments), as_of.isoformat())
    return len(payments)
