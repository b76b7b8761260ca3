from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.common import PositiveMoney, clean_string_list
from app.schemas.plans import FinancialProfileIn, QualificationResult


class ApplicationStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    DOCUMENT_COLLECTION = "document_collection"
    APPROVED = "approved"
    REJECTED = "rejected"
    FUNDED = "funded"
    CANCELLED = "cancelled"
    CLOSED = "closed"


class ApplicationType(str, Enum):
    LOAN = "loan"
    PREQUALIFICATION = "prequalification"


class ApplicationCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    applicant_id: UUID | None = None
    application_type: ApplicationType = ApplicationType.LOAN
    requested_amount: PositiveMoney | None = None
    purpose: str | None = None
    notes: str | None = None
    assigned_departments: list[str] = Field(default_factory=list)

    @field_validator("assigned_departments")
    @classmethod
    def clean_departments(cls, v: list[str]) -> list[str]:
        return clean_string_list(v)


class ApplicationUpdate(BaseModel):
    """Editable fields; status and milestones only change through transitions."""

    model_config = ConfigDict(extra="forbid")

    requested_amount: PositiveMoney | None = None
    purpose: str | None = None
    notes: str | None = None


class ApplicationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    application_number: str
    applicant_id: UUID
    status: str
    application_type: str
    requested_amount: Decimal | None = None
    purpose: str | None = None
    notes: str | None = None
    annual_income_snapshot: Decimal | None = None
    net_worth_snapshot: Decimal | None = None
    tax_bracket_snapshot: str | None = None
    qualified: bool | None = None
    qualified_plan_codes: list[str] = Field(default_factory=list)
    qualification_reasons: list[str] = Field(default_factory=list)
    asset_types: list[str] = Field(default_factory=list)
    age: int | None = None
    charitable_intent: bool | None = None
    assigned_departments: list[str] = Field(default_factory=list)
    primary_staff_id: UUID | None = None
    rejection_reason: str | None = None
    closure_reason: str | None = None
    submitted_at: datetime | None = None
    reviewed_at: datetime | None = None
    documents_requested_at: datetime | None = None
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    funded_at: datetime | None = None
    closed_at: datetime | None = None
    version: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ApplicationListResponse(BaseModel):
    items: list[ApplicationOut]
    total: int


class TransitionRequest(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    target: ApplicationStatus
    reason: str | None = Field(default=None, max_length=4000)


class TransitionOptions(BaseModel):
    status: str
    available: list[str]


class DepartmentsUpdate(BaseModel):
    departments: list[str] = Field(default_factory=list)

    @field_validator("departments")
    @classmethod
    def clean_departments(cls, v: list[str]) -> list[str]:
        return clean_string_list(v)


class PrimaryStaffUpdate(BaseModel):
    staff_id: UUID | None = None


class PrequalifyRequest(FinancialProfileIn):
    requested_amount: PositiveMoney | None = None
    purpose: str | None = None
    tax_bracket: str | None = Field(default=None, max_length=20)


class PrequalifyResponse(BaseModel):
    application: ApplicationOut
    result: QualificationResult
