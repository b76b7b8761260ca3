from __future__ import annotations

import calendar
import math
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from app.schemas.application_plans import PaymentFrequency
from app.schemas.loans import ScheduleEntry, SchedulePreviewResponse


TWOPLACES = Decimal("0.01")

MONTHS_BETWEEN_PAYMENTS = {
    PaymentFrequency.MONTHLY.value: 1,
    PaymentFrequency.QUARTERLY.value: 3,
    PaymentFrequency.ANNUALLY.value: 12,
}


@dataclass(frozen=True)
class Installment:
    payment_number: int
    due_date: date
    amount_due: Decimal
    principal_amount: Decimal
    interest_amount: Decimal
    remaining_balance: Decimal


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _quantize(value: Decimal) -> Decimal:
    return value.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def _frequency_value(frequency: PaymentFrequency | str) -> str:
    value = frequency.value if isinstance(frequency, PaymentFrequency) else str(frequency)
    if value not in MONTHS_BETWEEN_PAYMENTS:
        raise ValueError(f"Unsupported payment frequency: {value}")
    return value


def months_between_payments(frequency: PaymentFrequency | str) -> int:
    return MONTHS_BETWEEN_PAYMENTS[_frequency_value(frequency)]


def number_of_payments(term_months: int, frequency: PaymentFrequency | str) -> int:
    return math.ceil(term_months / months_between_payments(frequency))


def periodic_rate(annual_rate: Decimal, frequency: PaymentFrequency | str) -> Decimal:
    payments_per_year = Decimal(12 // months_between_payments(frequency))
    return _as_decimal(annual_rate) / payments_per_year


def level_payment(principal: Decimal, rate: Decimal, periods: int) -> Decimal:
    if periods <= 0:
        return Decimal("0.00")
    if rate == 0:
        return _quantize(principal / Decimal(periods))
    factor = (Decimal("1") + rate) ** periods
    return _quantize(principal * rate * factor / (factor - Decimal("1")))


def add_months(start: date, months: int) -> date:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def build_installments(
    *,
    principal,
    annual_rate,
    term_months: int,
    frequency: PaymentFrequency | str,
    start_date: date,
) -> list[Installment]:
    """Level-payment amortization; the final row retires the exact remaining balance."""
    principal = _quantize(_as_decimal(principal))
    if principal <= 0:
        raise ValueError("principal must be > 0")
    if term_months <= 0:
        raise ValueError("term_months must be >= 1")
    annual_rate = _as_decimal(annual_rate)
    if annual_rate < 0:
        raise ValueError("interest_rate must be >= 0")

    step = months_between_payments(frequency)
    periods = number_of_payments(term_months, frequency)
    rate = periodic_rate(annual_rate, frequency)
    payment = level_payment(principal, rate, periods)

    balance = principal
    entries: list[Installment] = []
    for period in range(1, periods + 1):
        interest = _quantize(balance * rate)
        if period == periods:
            principal_payment = balance
        else:
            principal_payment = min(max(payment - interest, Decimal("0.00")), balance)
        amount_due = _quantize(principal_payment + interest)
        balance = _quantize(balance - principal_payment)
        entries.append(
            Installment(
                payment_number=period,
                due_date=add_months(start_date, period * step),
                amount_due=amount_due,
                principal_amount=principal_payment,
                interest_amount=interest,
                remaining_balance=balance,
            )
        )
    return entries


def preview_schedule(
    *,
    principal,
    annual_rate,
    term_months: int,
    frequency: PaymentFrequency | str,
    start_date: date,
) -> SchedulePreviewResponse:
    entries = build_installments(
        principal=principal,
        annual_rate=annual_rate,
        term_months=term_months,
        frequency=frequency,
        start_date=start_date,
    )
    total_interest = sum((entry.interest_amount for entry in entries), Decimal("0.00"))
    total_payable = sum((entry.amount_due for entry in entries), Decimal("0.00"))
    return SchedulePreviewResponse(
        principal_amount=_quantize(_as_decimal(principal)),
        interest_rate=_as_decimal(annual_rate),
        term_months=term_months,
        payment_frequency=_frequency_value(frequency),
        periodic_payment=entries[0].amount_due,
        total_interest=total_interest,
        total_payable=total_payable,
        maturity_date=add_months(start_date, term_months),
        entries=[
            ScheduleEntry(
                payment_number=entry.payment_number,
                due_date=entry.due_date,
                amount_due=entry.amount_due,
                principal_amount=entry.principal_amount,
                interest_amount=entry.interest_amount,
                remaining_balance=entry.remaining_balance,
            )
            for entry in entries
        ],
    )
