from __future__ import annotations

from decimal import Decimal
from typing import Annotated

from pydantic import Field

Money = Annotated[Decimal, Field(ge=0, max_digits=18, decimal_places=2, allow_inf_nan=False)]
PositiveMoney = Annotated[Decimal, Field(gt=0, max_digits=18, decimal_places=2, allow_inf_nan=False)]
Rate = Annotated[Decimal, Field(ge=0, le=1, allow_inf_nan=False)]


def clean_string_list(values: list[str] | None) -> list[str]:
    """Strip, drop blanks and de-duplicate while preserving order."""
    seen: list[str] = []
    for raw in values or []:
        value = (raw or "").strip()
        if value and value not in seen:
            seen.append(value)
    return seen


def strip_required(value: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValueError("Value cannot be empty")
    return cleaned
