from decimal import Decimal

from conftest import make_plan

from app.services.plan_catalog import PlanCatalog
from app.services.qualifier import FinancialProfile, calculator_config_for, evaluate, suggested_range


def _profile(**overrides) -> FinancialProfile:
    values = dict(
        annual_income=Decimal("250000"),
        net_worth=Decimal("1000000"),
        age=45,
        asset_types=("stocks",),
        charitable_intent=True,
    )
    values.update(overrides)
    return FinancialProfile(**values)


def _strict_plan():
    return make_plan(
        "legacy_gift",
        name="Legacy Gift",
        min_income=Decimal("200000"),
        min_assets=Decimal("500000"),
        min_age=Decimal("30"),
        requires_charitable_intent=True,
        required_asset_types=["stocks", "bonds"],
    )


def test_profile_meeting_every_threshold_qualifies():
    catalog = PlanCatalog.of([_strict_plan()])

    result = evaluate(_profile(), catalog)

    assert result.qualified is True
    assert result.qualified_plans == ["legacy_gift"]
    assert result.reasons == ["Qualified for Legacy Gift"]
    assert "legacy_gift" in result.ranges


def test_missing_charitable_intent_excludes_plan_with_reason():
    catalog = PlanCatalog.of([_strict_plan()])

    result = evaluate(_profile(charitable_intent=False), catalog)

    assert result.qualified is False
    assert result.qualified_plans == []
    assert len(result.reasons) == 1
    assert "Charitable intent required" in result.reasons[0]
    assert result.reasons[0].startswith("Legacy Gift:")


def test_every_failed_threshold_is_reported():
    catalog = PlanCatalog.of([_strict_plan()])

    result = evaluate(
        _profile(
            annual_income=Decimal("100000"),
            net_worth=Decimal("10000"),
            age=21,
            asset_types=("real_estate",),
        ),
        catalog,
    )

    reason = result.reasons[0]
    assert "Income below minimum of $200,000" in reason
    assert "Assets below minimum of $500,000" in reason
    assert "Age below minimum of 30" in reason
    assert "Required asset types: stocks, bonds" in reason


def test_missing_profile_fields_short_circuit_evaluation():
    catalog = PlanCatalog.of([make_plan("defund")])

    result = evaluate(_profile(age=None, net_worth=None), catalog)

    assert result.qualified is False
    assert result.missing_info == ["net_worth", "age"]
    assert result.reasons == ["Missing information: net_worth, age"]
    assert result.ranges == {}


def test_default_catalog_matches_by_plan_thresholds():
    catalog = PlanCatalog.of(
        [
            make_plan("divest"),
            make_plan("defund"),
            make_plan("diversion"),
            make_plan("retired", is_active=False),
        ]
    )

    result = evaluate(_profile(), catalog)

    assert result.qualified_plans == ["defund", "divest"]
    assert "Donum Diversion: Age below minimum of 59.5" in result.reasons
    assert all("Retired" not in reason for reason in result.reasons)


def test_defund_range_below_capacity_floor_is_empty():
    loan_range = suggested_range(make_plan("defund"), Decimal("250000"), Decimal("1000000"))

    assert loan_range.has_capacity is False
    assert loan_range.min == loan_range.max == loan_range.suggested == Decimal("0")


def test_defund_high_income_range_uses_income_multiples():
    loan_range = suggested_range(make_plan("defund"), Decimal("2000000"), Decimal("0"))

    assert loan_range.has_capacity is True
    assert loan_range.min == Decimal("500000")
    assert loan_range.max == Decimal("4000000")
    assert loan_range.suggested == Decimal("900000")


def test_suggestion_is_clamped_to_floor():
    loan_range = suggested_range(make_plan("defund"), Decimal("600000"), Decimal("0"))

    assert loan_range.min == Decimal("500000")
    assert loan_range.max == Decimal("1200000")
    assert loan_range.suggested == Decimal("500000")


def test_diversion_range_uses_distribution_capacity():
    plan = make_plan("diversion")

    assert suggested_range(plan, None, Decimal("5000000")).has_capacity is False

    loan_range = suggested_range(plan, None, Decimal("30000000"))
    assert loan_range.max == Decimal("3600000")
    assert loan_range.suggested == Decimal("2400000")


def test_divest_max_never_drops_below_min():
    loan_range = suggested_range(make_plan("divest"), None, Decimal("2000000"))

    assert loan_range.has_capacity is True
    assert loan_range.min == loan_range.max == loan_range.suggested == Decimal("500000")


def test_ceiling_and_midpoint_from_plan_config():
    plan = make_plan(
        "custom",
        calculator_config={"basis": "income", "max_ratio": "3", "ceiling": "900000", "floor": "100000"},
    )

    loan_range = suggested_range(plan, Decimal("400000"), Decimal("0"))

    assert loan_range.min == Decimal("100000")
    assert loan_range.max == Decimal("900000")
    assert loan_range.suggested == Decimal("500000")


def test_plans_without_config_fall_back_to_known_calculators():
    assert calculator_config_for(make_plan("divest", calculator_config={}))["asset_share"] == "0.3"
    assert calculator_config_for(make_plan("unknown", calculator_config={}))["basis"] == "income"
