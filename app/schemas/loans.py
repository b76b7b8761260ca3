from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.application_plans import PaymentFrequency
from app.schemas.common import PositiveMoney, Rate


class LoanStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    PAID_OFF = "paid_off"
    DEFAULTED = "defaulted"
    CANCELLED = "cancelled"
    CLOSED = "closed"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    PAID = "paid"
    OVERDUE = "overdue"
    MISSED = "missed"
    CANCELLED = "cancelled"


class LoanCreateRequest(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    principal_amount: PositiveMoney | None = None
    interest_rate: Rate | None = None
    term_months: int | None = Field(default=None, ge=1, le=600)
    payment_frequency: PaymentFrequency | None = None
    disbursement_date: date | None = None
    mark_funded: bool = True
    notes: str | None = None


class LoanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    loan_number: str
    application_id: UUID
    applicant_id: UUID
    plan_code: str | None = None
    status: str
    principal_amount: Decimal
    interest_rate: Decimal
    term_months: int
    payment_frequency: str
    loan_terms: dict[str, Any] = Field(default_factory=dict)
    current_balance: Decimal
    total_paid: Decimal
    total_principal_paid: Decimal
    total_interest_paid: Decimal
    next_payment_date: date | None = None
    next_payment_amount: Decimal | None = None
    last_payment_date: date | None = None
    last_payment_amount: Decimal | None = None
    disbursed_at: datetime | None = None
    maturity_date: date | None = None
    paid_off_at: datetime | None = None
    closed_at: datetime | None = None
    notes: str | None = None
    version: int | None = None
    created_at: datetime | None = None


class LoanPaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    loan_id: UUID
    payment_number: int
    scheduled_date: date
    due_date: date
    amount_due: Decimal
    principal_amount: Decimal
    interest_amount: Decimal
    late_fee: Decimal
    penalty_amount: Decimal
    status: str
    amount_paid: Decimal | None = None
    principal_paid: Decimal | None = None
    interest_paid: Decimal | None = None
    paid_date: date | None = None
    payment_method: str | None = None
    payment_reference: str | None = None
    notes: str | None = None
    is_overdue: bool = False


class LoanListResponse(BaseModel):
    items: list[LoanOut]
    total: int


class LoanDetailResponse(BaseModel):
    loan: LoanOut
    payments: list[LoanPaymentOut]


class RecordPaymentRequest(BaseModel):
    amount_paid: PositiveMoney
    paid_date: date | None = None
    payment_method: str | None = Field(default=None, max_length=50)
    payment_reference: str | None = Field(default=None, max_length=255)
    notes: str | None = None


class LoanStatusUpdate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    status: LoanStatus
    reason: str | None = None


class SchedulePreviewRequest(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    principal_amount: PositiveMoney
    interest_rate: Rate
    term_months: int = Field(ge=1, le=600)
    payment_frequency: PaymentFrequency = PaymentFrequency.MONTHLY
    start_date: date | None = None


class ScheduleEntry(BaseModel):
    payment_number: int
    due_date: date
    amount_due: Decimal
    principal_amount: Decimal
    interest_amount: Decimal
    remaining_balance: Decimal


class SchedulePreviewResponse(BaseModel):
    principal_amount: Decimal
    interest_rate: Decimal
    term_months: int
    payment_frequency: str
    periodic_payment: Decimal
    total_interest: Decimal
    total_payable: Decimal
    maturity_date: date
    entries: list[ScheduleEntry]


class PaymentStatusOut(BaseModel):
    loan_id: UUID
    as_of_date: date
    status: str
    next_payment_number: int | None = None
    next_due_date: date | None = None
    next_amount_due: Decimal | None = None
    overdue_count: int
    overdue_amount: Decimal
    overdue_due_dates: list[date] = Field(default_factory=list)
    paid_count: int
    remaining_count: int
    remaining_principal: Decimal
    remaining_interest: Decimal
