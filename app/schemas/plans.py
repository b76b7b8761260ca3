from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.common import Money, clean_string_list, strip_required


class PlanBase(BaseModel):
    name: str
    description: str | None = None
    min_income: Money | None = None
    min_assets: Money | None = None
    min_age: Decimal | None = Field(default=None, ge=0, le=150, decimal_places=1, allow_inf_nan=False)
    required_asset_types: list[str] = Field(default_factory=list)
    requires_charitable_intent: bool = True
    tax_deduction_percent: Decimal | None = Field(default=None, ge=0, le=100, allow_inf_nan=False)
    benefits: list[str] = Field(default_factory=list)
    calculator_config: dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def name_required(cls, v: str) -> str:
        return strip_required(v)

    @field_validator("required_asset_types", "benefits")
    @classmethod
    def clean_lists(cls, v: list[str]) -> list[str]:
        return clean_string_list(v)


class PlanCreate(PlanBase):
    code: str = Field(min_length=1, max_length=50)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return strip_required(v).lower()


class PlanUpdate(BaseModel):
    """Partial plan update; ``code`` is deliberately absent."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    description: str | None = None
    min_income: Money | None = None
    min_assets: Money | None = None
    min_age: Decimal | None = Field(default=None, ge=0, le=150, decimal_places=1, allow_inf_nan=False)
    required_asset_types: list[str] | None = None
    requires_charitable_intent: bool | None = None
    tax_deduction_percent: Decimal | None = Field(default=None, ge=0, le=100, allow_inf_nan=False)
    benefits: list[str] | None = None
    calculator_config: dict[str, Any] | None = None
    is_active: bool | None = None

    @field_validator("name")
    @classmethod
    def name_required(cls, v: str | None) -> str | None:
        return strip_required(v) if v is not None else v

    @field_validator("required_asset_types", "benefits")
    @classmethod
    def clean_lists(cls, v: list[str] | None) -> list[str] | None:
        return clean_string_list(v) if v is not None else v


class PlanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    name: str
    description: str | None = None
    min_income: Decimal | None = None
    min_assets: Decimal | None = None
    min_age: Decimal | None = None
    required_asset_types: list[str] = Field(default_factory=list)
    requires_charitable_intent: bool
    tax_deduction_percent: Decimal | None = None
    benefits: list[str] = Field(default_factory=list)
    calculator_config: dict[str, Any] = Field(default_factory=dict)
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PlanListResponse(BaseModel):
    items: list[PlanOut]
    total: int


class FinancialProfileIn(BaseModel):
    annual_income: Money | None = None
    net_worth: Money | None = None
    age: int | None = Field(default=None, ge=0, le=150)
    asset_types: list[str] = Field(default_factory=list)
    charitable_intent: bool | None = None

    @field_validator("asset_types")
    @classmethod
    def clean_asset_types(cls, v: list[str]) -> list[str]:
        return clean_string_list(v)


class LoanRange(BaseModel):
    min: Decimal
    max: Decimal
    suggested: Decimal
    has_capacity: bool


class QualificationResult(BaseModel):
    qualified: bool
    qualified_plans: list[str] = Field(default_factory=list)
    reasons: list[str] = Field(default_factory=list)
    missing_info: list[str] = Field(default_factory=list)
    ranges: dict[str, LoanRange] = Field(default_factory=dict)
