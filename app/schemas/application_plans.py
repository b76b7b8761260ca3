from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.schemas.common import PositiveMoney, Rate


class PaymentFrequency(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUALLY = "annually"


class CustomTerms(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    interest_rate: Rate | None = None
    duration: int | None = Field(default=None, ge=1, le=600)
    payment_schedule: PaymentFrequency | None = None


class PlanAssignmentRequest(BaseModel):
    plan_code: str = Field(min_length=1, max_length=50)
    custom_loan_amount: PositiveMoney | None = None
    custom_max_amount: PositiveMoney | None = None
    custom_terms: CustomTerms | None = None
    calculator_results: dict[str, Any] | None = None
    notes: str | None = None

    @model_validator(mode="after")
    def amount_within_max(self) -> "PlanAssignmentRequest":
        if (
            self.custom_loan_amount is not None
            and self.custom_max_amount is not None
            and self.custom_loan_amount > self.custom_max_amount
        ):
            raise ValueError("custom_loan_amount cannot exceed custom_max_amount")
        return self


class ApplicationPlanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    application_id: UUID
    plan_code: str
    is_active: bool
    custom_loan_amount: Decimal | None = None
    custom_max_amount: Decimal | None = None
    custom_terms: dict[str, Any] | None = None
    calculator_results: dict[str, Any] | None = None
    notes: str | None = None
    assigned_by: UUID | None = None
    assigned_at: datetime | None = None
    deactivated_at: datetime | None = None
