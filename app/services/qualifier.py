from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Mapping

from app.core.settings import settings
from app.schemas.plans import LoanRange, QualificationResult
from app.services.plan_catalog import PlanCatalog

WHOLE = Decimal("1")
ZERO = Decimal("0")

# Parameters that reproduce the calculators the first three plans shipped with.
LEGACY_CALCULATORS: dict[str, dict[str, Any]] = {
    "defund": {
        "basis": "income",
        "asset_yield": "0.04",
        "high_income_max_ratio": "2",
        "high_income_suggested_ratio": "0.45",
        "max_ratio": "2",
        "suggested_ratio": "0.8",
    },
    "diversion": {
        "basis": "assets",
        "asset_share": "0.4",
        "capacity_rate": "0.05",
        "max_ratio": "0.3",
        "suggested_ratio": "0.2",
    },
    "divest": {
        "basis": "assets",
        "asset_share": "0.3",
        "capacity_rate": "1",
        "max_ratio": "0.5",
        "suggested_ratio": "0.35",
    },
}

DEFAULT_CALCULATOR: dict[str, Any] = {
    "basis": "income",
    "asset_yield": "0.04",
    "max_ratio": "2",
}


@dataclass(frozen=True)
class FinancialProfile:
    annual_income: Decimal | None = None
    net_worth: Decimal | None = None
    age: int | None = None
    asset_types: tuple[str, ...] = field(default_factory=tuple)
    charitable_intent: bool | None = None

    @classmethod
    def from_source(cls, source: Any) -> "FinancialProfile":
        """Build a profile from a user row or any object exposing the same fields."""
        return cls(
            annual_income=_optional_decimal(getattr(source, "annual_income", None)),
            net_worth=_optional_decimal(getattr(source, "net_worth", None)),
            age=getattr(source, "age", None),
            asset_types=tuple(getattr(source, "asset_types", None) or ()),
            charitable_intent=getattr(source, "charitable_intent", None),
        )

    def missing_fields(self) -> list[str]:
        missing = []
        if self.annual_income is None:
            missing.append("annual_income")
        if self.net_worth is None:
            missing.append("net_worth")
        if self.age is None:
            missing.append("age")
        if self.charitable_intent is None:
            missing.append("charitable_intent")
        return missing


def _optional_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _config_decimal(config: Mapping[str, Any], key: str, default: Decimal | None = None) -> Decimal | None:
    raw = config.get(key)
    if raw is None:
        return default
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return default
    return value if value.is_finite() else default


def _format_amount(value: Any) -> str:
    amount = Decimal(str(value))
    if amount == amount.to_integral_value():
        return f"{int(amount):,}"
    return f"{amount.normalize():,}"


def _format_age(value: Any) -> str:
    age = Decimal(str(value))
    if age == age.to_integral_value():
        return str(int(age))
    return str(age.normalize())


def _plan_failures(plan: Any, profile: FinancialProfile) -> list[str]:
    failures: list[str] = []
    if plan.min_income is not None and profile.annual_income < Decimal(str(plan.min_income)):
        failures.append(f"Income below minimum of ${_format_amount(plan.min_income)}")
    if plan.min_assets is not None and profile.net_worth < Decimal(str(plan.min_assets)):
        failures.append(f"Assets below minimum of ${_format_amount(plan.min_assets)}")
    if plan.min_age is not None and Decimal(profile.age) < Decimal(str(plan.min_age)):
        failures.append(f"Age below minimum of {_format_age(plan.min_age)}")
    if plan.requires_charitable_intent and not profile.charitable_intent:
        failures.append("Charitable intent required")
    required = list(plan.required_asset_types or [])
    if required and not set(required) & set(profile.asset_types):
        failures.append(f"Required asset types: {', '.join(required)}")
    return failures


def calculator_config_for(plan: Any) -> dict[str, Any]:
    config = dict(getattr(plan, "calculator_config", None) or {})
    if config:
        return config
    return dict(LEGACY_CALCULATORS.get(plan.code, DEFAULT_CALCULATOR))


def _round_whole(value: Decimal) -> Decimal:
    return value.quantize(WHOLE, rounding=ROUND_HALF_UP)


def suggested_range(plan: Any, income: Any, assets: Any) -> LoanRange:
    """Deterministic loan-amount range for a plan given income and net worth.

    Capacity below the donation floor yields an all-zero range. Otherwise the
    range starts at the floor, the max is capped by the plan ceiling, and the
    suggestion is either the midpoint or the configured weighting, clamped
    into ``[min, max]``.
    """
    config = calculator_config_for(plan)
    income_value = _optional_decimal(income) or ZERO
    assets_value = _optional_decimal(assets) or ZERO
    floor = _config_decimal(config, "floor", settings.minimum_donation_capacity)
    ceiling = _config_decimal(config, "ceiling")
    max_ratio = _config_decimal(config, "max_ratio", Decimal("2"))
    suggested_ratio = _config_decimal(config, "suggested_ratio")

    if config.get("basis") == "assets":
        base = assets_value * _config_decimal(config, "asset_share", Decimal("1"))
        capacity = base * _config_decimal(config, "capacity_rate", Decimal("1"))
    else:
        capacity = income_value + assets_value * _config_decimal(config, "asset_yield", ZERO)
        base = capacity
        threshold = _config_decimal(config, "high_income_threshold", floor)
        if "high_income_max_ratio" in config and income_value >= threshold:
            base = income_value
            max_ratio = _config_decimal(config, "high_income_max_ratio", max_ratio)
            suggested_ratio = _config_decimal(config, "high_income_suggested_ratio", suggested_ratio)

    if capacity < floor:
        return LoanRange(min=ZERO, max=ZERO, suggested=ZERO, has_capacity=False)

    minimum = _round_whole(floor)
    maximum = base * max_ratio
    if ceiling is not None:
        maximum = min(maximum, ceiling)
    maximum = max(_round_whole(maximum), minimum)

    if suggested_ratio is not None:
        suggested = base * suggested_ratio
    else:
        suggested = (minimum + maximum) / 2
    suggested = min(max(_round_whole(suggested), minimum), maximum)
    return LoanRange(min=minimum, max=maximum, suggested=suggested, has_capacity=True)


def evaluate(profile: FinancialProfile, catalog: PlanCatalog) -> QualificationResult:
    """Score a financial profile against every active plan in the catalog."""
    missing = profile.missing_fields()
    if missing:
        return QualificationResult(
            qualified=False,
            reasons=[f"Missing information: {', '.join(missing)}"],
            missing_info=missing,
        )

    qualified_plans: list[str] = []
    reasons: list[str] = []
    ranges: dict[str, LoanRange] = {}
    for plan in catalog.active():
        failures = _plan_failures(plan, profile)
        if failures:
            reasons.append(f"{plan.name}: {', '.join(failures)}")
            continue
        qualified_plans.append(plan.code)
        reasons.append(f"Qualified for {plan.name}")
        ranges[plan.code] = suggested_range(plan, profile.annual_income, profile.net_worth)

    return QualificationResult(
        qualified=bool(qualified_plans),
        qualified_plans=qualified_plans,
        reasons=reasons,
        ranges=ranges,
    )
