from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.common import Money, clean_string_list


class ProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    full_name: str | None = None
    role: str
    annual_income: Decimal | None = None
    net_worth: Decimal | None = None
    age: int | None = None
    asset_types: list[str] = Field(default_factory=list)
    charitable_intent: bool | None = None
    tax_bracket: str | None = None


class ProfileUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    full_name: str | None = None
    phone_number: str | None = None
    annual_income: Money | None = None
    net_worth: Money | None = None
    age: int | None = Field(default=None, ge=0, le=150)
    asset_types: list[str] | None = None
    charitable_intent: bool | None = None
    tax_bracket: str | None = Field(default=None, max_length=20)

    @field_validator("asset_types")
    @classmethod
    def clean_asset_types(cls, v: list[str] | None) -> list[str] | None:
        return clean_string_list(v) if v is not None else v
