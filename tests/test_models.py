from decimal import Decimal

from app.models.application import Application
from app.models.application_plan import ApplicationPlan
from app.models.loan import Loan
from app.models.loan_payment import LoanPayment
from app.models.prospect_staff_assignment import ProspectStaffAssignment
from app.models.types import Money
from app.models.user import User


def _constraint_names(model) -> set[str]:
    return {getattr(c, "name", "") for c in model.__table__.constraints if getattr(c, "name", None)}


def _indexes(model) -> dict:
    return {index.name: index for index in model.__table__.indexes}


def test_money_binds_cent_quantized_decimals() -> None:
    money = Money()
    assert money.process_bind_param(Decimal("10.005"), None) == Decimal("10.01")
    assert money.process_bind_param(12, None) == Decimal("12.00")
    assert money.process_bind_param(None, None) is None
    assert money.process_result_value(Decimal("3.50"), None) == Decimal("3.50")


def test_application_constraints_present() -> None:
    names = _constraint_names(Application)
    assert "ck_applications_status" in names
    assert "ck_applications_rejection_reason" in names
    assert "ck_applications_requested_amount_positive" in names


def test_loan_ledger_consistency_constraints_present() -> None:
    names = _constraint_names(Loan)
    assert "ck_loans_balance_consistent" in names
    assert "ck_loans_total_paid_consistent" in names
    assert "ck_loans_balance_nonneg" in names
    assert "ck_loans_status" in names


def test_installment_numbers_unique_per_loan() -> None:
    names = _constraint_names(LoanPayment)
    assert "uq_loan_payments_loan_number" in names
    assert "ck_loan_payments_paid_fields" in names


def test_single_active_plan_binding_index() -> None:
    index = _indexes(ApplicationPlan)["uq_application_plans_one_active"]
    assert index.unique is True
    assert str(index.dialect_options["postgresql"]["where"]) == "is_active"


def test_staff_assignment_partial_unique_indexes() -> None:
    indexes = _indexes(ProspectStaffAssignment)
    assert indexes["uq_prospect_staff_assignments_active_pair"].unique is True
    primary = indexes["uq_prospect_staff_assignments_active_primary"]
    assert primary.unique is True
    assert str(primary.dialect_options["postgresql"]["where"]) == "is_active AND is_primary"


def test_optimistic_versioning_on_mutable_rows() -> None:
    for model in (Application, Loan, LoanPayment):
        assert model.__mapper__.version_id_col is not None


def test_user_email_is_unique() -> None:
    assert User.__table__.c.email.unique is True
