from datetime import date
from decimal import Decimal

from conftest import make_loan, make_payment

from app.services.loan_payment_status import compute_payment_status


def _schedule(loan, *, paid_through: int = 0):
    rows = []
    for number in range(1, 5):
        rows.append(
            make_payment(
                loan=loan,
                payment_number=number,
                due_date=date(2026, number + 1, 1),
                status="paid" if number <= paid_through else "scheduled",
            )
        )
    return rows


def test_loan_with_no_past_due_rows_is_current():
    loan = make_loan()
    status = compute_payment_status(loan, _schedule(loan, paid_through=1), date(2026, 2, 15))

    assert status.status == "current"
    assert status.next_payment_number == 2
    assert status.next_due_date == date(2026, 3, 1)
    assert status.paid_count == 1
    assert status.remaining_count == 3
    assert status.remaining_principal == Decimal("2400.00")
    assert status.remaining_interest == Decimal("600.00")
    assert status.overdue_count == 0


def test_past_due_rows_are_overdue_on_read():
    loan = make_loan()
    rows = _schedule(loan, paid_through=1)
    rows[1].late_fee = Decimal("25.00")

    status = compute_payment_status(loan, list(reversed(rows)), date(2026, 4, 10))

    assert status.status == "overdue"
    assert status.overdue_count == 2
    assert status.overdue_due_dates == [date(2026, 3, 1), date(2026, 4, 1)]
    assert status.overdue_amount == Decimal("2025.00")
    assert status.next_payment_number == 2
    assert all(row.status != "overdue" for row in rows)


def test_defaulted_loan_reports_defaulted():
    loan = make_loan(status="defaulted")

    assert compute_payment_status(loan, _schedule(loan), date(2026, 9, 1)).status == "defaulted"


def test_paid_off_loan_has_nothing_remaining():
    loan = make_loan(status="paid_off", current_balance=Decimal("0.00"))

    status = compute_payment_status(loan, _schedule(loan, paid_through=4), date(2026, 9, 1))

    assert status.status == "paid_off"
    assert status.next_payment_number is None
    assert status.remaining_count == 0
    assert status.remaining_principal == Decimal("0.00")
