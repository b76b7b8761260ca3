from __future__ import annotations

from datetime import date
from decimal import Decimal

from app.models.loan import Loan
from app.models.loan_payment import LoanPayment
from app.schemas.loans import LoanStatus, PaymentStatus, PaymentStatusOut
from app.services.loan_ledger import OPEN_PAYMENT_STATUSES, effective_status


def _as_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def compute_payment_status(
    loan: Loan,
    payments: list[LoanPayment],
    as_of_date: date,
) -> PaymentStatusOut:
    """Summarize a loan's installments as of a date, deriving overdue status on read."""
    ordered = sorted(payments, key=lambda item: item.payment_number)
    open_items = [payment for payment in ordered if payment.status in OPEN_PAYMENT_STATUSES]
    overdue = [
        payment
        for payment in open_items
        if effective_status(payment, as_of_date) == PaymentStatus.OVERDUE.value
    ]
    paid_count = sum(1 for payment in ordered if payment.status == PaymentStatus.PAID.value)
    upcoming = open_items[0] if open_items else None

    overdue_amount = sum(
        (
            _as_decimal(payment.amount_due) + _as_decimal(payment.late_fee) + _as_decimal(payment.penalty_amount)
            for payment in overdue
        ),
        Decimal("0.00"),
    )
    remaining_principal = sum((_as_decimal(payment.principal_amount) for payment in open_items), Decimal("0.00"))
    remaining_interest = sum((_as_decimal(payment.interest_amount) for payment in open_items), Decimal("0.00"))

    if loan.status in {LoanStatus.PAID_OFF.value, LoanStatus.CLOSED.value, LoanStatus.CANCELLED.value}:
        status = loan.status
    elif loan.status == LoanStatus.DEFAULTED.value:
        status = LoanStatus.DEFAULTED.value
    elif overdue:
        status = PaymentStatus.OVERDUE.value
    else:
        status = "current"

    return PaymentStatusOut(
        loan_id=loan.id,
        as_of_date=as_of_date,
        status=status,
        next_payment_number=upcoming.payment_number if upcoming else None,
        next_due_date=upcoming.due_date if upcoming else None,
        next_amount_due=_as_decimal(upcoming.amount_due) if upcoming else None,
        overdue_count=len(overdue),
        overdue_amount=overdue_amount,
        overdue_due_dates=[payment.due_date for payment in overdue],
        paid_count=paid_count,
        remaining_count=len(open_items),
        remaining_principal=remaining_principal,
        remaining_interest=remaining_interest,
    )
