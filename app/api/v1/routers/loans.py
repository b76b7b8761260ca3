from datetime import date, datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.actor import ActorContext
from app.models.loan_payment import LoanPayment
from app.schemas.loans import (
    LoanDetailResponse,
    LoanListResponse,
    LoanOut,
    LoanPaymentOut,
    LoanStatus,
    LoanStatusUpdate,
    PaymentStatusOut,
    RecordPaymentRequest,
    SchedulePreviewRequest,
    SchedulePreviewResponse,
)
from app.services import authz, loan_ledger, loan_payment_status, loan_schedules

router = APIRouter(prefix="/loans", tags=["loans"])


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _payment_payload(payment: LoanPayment, as_of: date) -> LoanPaymentOut:
    return LoanPaymentOut.model_validate(payment).model_copy(
        update={"is_overdue": loan_ledger.is_overdue(payment, as_of)}
    )


@router.get("", response_model=LoanListResponse, summary="List loans visible to the caller")
async def list_loans(
    actor: ActorContext = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db_session),
    status_filter: list[LoanStatus] | None = Query(default=None, alias="status"),
    applicant_id: UUID | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> LoanListResponse:
    items, total = await loan_ledger.list_loans(
        db,
        actor,
        statuses=[value.value for value in status_filter] if status_filter else None,
        applicant_id=applicant_id,
        limit=limit,
        offset=offset,
    )
    return LoanListResponse(items=[LoanOut.model_validate(item) for item in items], total=total)


@router.post(
    "/schedule-preview",
    response_model=SchedulePreviewResponse,
    summary="Preview an amortization schedule without creating a loan",
)
async def schedule_preview(
    payload: SchedulePreviewRequest,
    actor: ActorContext = Depends(deps.get_current_actor),
) -> SchedulePreviewResponse:
    return loan_schedules.preview_schedule(
        principal=payload.principal_amount,
        annual_rate=payload.interest_rate,
        term_months=payload.term_months,
        frequency=payload.payment_frequency,
        start_date=payload.start_date or _today(),
    )


@router.get("/{loan_id}", response_model=LoanDetailResponse, summary="Get a loan with its installments")
async def get_loan(
    loan_id: UUID,
    actor: ActorContext = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> LoanDetailResponse:
    loan = await loan_ledger.get_loan(db, loan_id)
    await authz.require_loan_view(db, actor, loan)
    payments = await loan_ledger.list_payments(db, loan.id)
    today = _today()
    return LoanDetailResponse(
        loan=LoanOut.model_validate(loan),
        payments=[_payment_payload(payment, today) for payment in payments],
    )


@router.patch("/{loan_id}/status", response_model=LoanOut, summary="Manually change a loan's status")
async def update_loan_status(
    loan_id: UUID,
    payload: LoanStatusUpdate,
    actor: ActorContext = Depends(deps.require_internal_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> LoanOut:
    loan = await loan_ledger.update_loan_status(db, actor, loan_id, payload.status, reason=payload.reason)
    await db.commit()
    return LoanOut.model_validate(loan)


@router.get("/{loan_id}/payments", response_model=list[LoanPaymentOut], summary="List a loan's installments")
async def list_payments(
    loan_id: UUID,
    actor: ActorContext = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> list[LoanPaymentOut]:
    loan = await loan_ledger.get_loan(db, loan_id)
    await authz.require_loan_view(db, actor, loan)
    today = _today()
    return [_payment_payload(payment, today) for payment in await loan_ledger.list_payments(db, loan.id)]


@router.post(
    "/{loan_id}/payments/{payment_id}/record",
    response_model=LoanDetailResponse,
    summary="Record a payment against one installment",
)
async def record_payment(
    loan_id: UUID,
    payment_id: UUID,
    payload: RecordPaymentRequest,
    actor: ActorContext = Depends(deps.require_internal_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> LoanDetailResponse:
    loan, payment = await loan_ledger.record_payment(db, actor, loan_id, payment_id, payload)
    await db.commit()
    return LoanDetailResponse(
        loan=LoanOut.model_validate(loan),
        payments=[_payment_payload(payment, _today())],
    )


@router.get(
    "/{loan_id}/payment-status",
    response_model=PaymentStatusOut,
    summary="Summarize upcoming and overdue installments",
)
async def payment_status(
    loan_id: UUID,
    as_of: date | None = Query(default=None),
    actor: ActorContext = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> PaymentStatusOut:
    loan = await loan_ledger.get_loan(db, loan_id)
    await authz.require_loan_view(db, actor, loan)
    payments = await loan_ledger.list_payments(db, loan.id)
    return loan_payment_status.compute_payment_status(loan, payments, as_of or _today())
