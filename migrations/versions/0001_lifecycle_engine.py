"""lifecycle engine schema: users, departments, plans, applications, loans

Revision ID: 0001_lifecycle_engine
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "0001_lifecycle_engine"
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(18, 2)


def _uuid(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), **kwargs)


def _timestamps(*, updated: bool = True) -> list[sa.Column]:
    columns = [sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)]
    if updated:
        columns.append(
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)
        )
    return columns


def upgrade() -> None:
    op.create_table(
        "users",
        _uuid("id", primary_key=True, nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("phone_number", sa.String(50), nullable=True),
        sa.Column("role", sa.String(30), nullable=False, server_default="prospect"),
        sa.Column("departments", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("annual_income", MONEY, nullable=True),
        sa.Column("net_worth", MONEY, nullable=True),
        sa.Column("age", sa.Integer(), nullable=True),
        sa.Column("asset_types", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("charitable_intent", sa.Boolean(), nullable=True),
        sa.Column("tax_bracket", sa.String(20), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint(
            "role IN ('prospect', 'lead', 'member', 'partner', 'staff', 'admin', 'super_admin')",
            name="ck_users_role",
        ),
        sa.CheckConstraint("annual_income IS NULL OR annual_income >= 0", name="ck_users_income_nonneg"),
        sa.CheckConstraint("net_worth IS NULL OR net_worth >= 0", name="ck_users_net_worth_nonneg"),
        sa.CheckConstraint("age IS NULL OR age >= 0", name="ck_users_age_nonneg"),
    )
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "departments",
        _uuid("id", primary_key=True, nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.UniqueConstraint("name", name="uq_departments_name"),
    )

    op.create_table(
        "department_permissions",
        _uuid("id", primary_key=True, nullable=False),
        sa.Column("department_name", sa.String(100), nullable=False),
        sa.Column("resource", sa.String(50), nullable=False),
        sa.Column("can_view", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("can_edit", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("can_delete", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(
            ["department_name"], ["departments.name"], ondelete="CASCADE", onupdate="CASCADE"
        ),
        sa.UniqueConstraint("department_name", "resource", name="uq_department_permissions_resource"),
        sa.CheckConstraint(
            "resource IN ('applications', 'loans', 'plans', 'prospects')",
            name="ck_department_permissions_resource",
        ),
    )
    op.create_index(
        "ix_department_permissions_department_name", "department_permissions", ["department_name"]
    )

    op.create_table(
        "plans",
        _uuid("id", primary_key=True, nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("min_income", MONEY, nullable=True),
        sa.Column("min_assets", MONEY, nullable=True),
        sa.Column("min_age", sa.Numeric(5, 1), nullable=True),
        sa.Column(
            "required_asset_types", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")
        ),
        sa.Column("requires_charitable_intent", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("tax_deduction_percent", sa.Numeric(5, 2), nullable=True),
        sa.Column("benefits", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("calculator_config", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.UniqueConstraint("code", name="uq_plans_code"),
        sa.CheckConstraint("min_income IS NULL OR min_income >= 0", name="ck_plans_min_income_nonneg"),
        sa.CheckConstraint("min_assets IS NULL OR min_assets >= 0", name="ck_plans_min_assets_nonneg"),
        sa.CheckConstraint("min_age IS NULL OR min_age >= 0", name="ck_plans_min_age_nonneg"),
        sa.CheckConstraint(
            "tax_deduction_percent IS NULL OR (tax_deduction_percent >= 0 AND tax_deduction_percent <= 100)",
            name="ck_plans_tax_deduction_range",
        ),
    )
    op.create_index("ix_plans_is_active", "plans", ["is_active"])

    op.create_table(
        "applications",
        _uuid("id", primary_key=True, nullable=False),
        sa.Column("application_number", sa.String(50), nullable=False),
        _uuid("applicant_id", nullable=False),
        sa.Column("status", sa.String(30), nullable=False, server_default="draft"),
        sa.Column("application_type", sa.String(30), nullable=False, server_default="loan"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("requested_amount", MONEY, nullable=True),
        sa.Column("purpose", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("annual_income_snapshot", MONEY, nullable=True),
        sa.Column("net_worth_snapshot", MONEY, nullable=True),
        sa.Column("tax_bracket_snapshot", sa.String(20), nullable=True),
        sa.Column("qualified", sa.Boolean(), nullable=True),
        sa.Column(
            "qualified_plan_codes", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")
        ),
        sa.Column(
            "qualification_reasons", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")
        ),
        sa.Column("asset_types", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("age", sa.Integer(), nullable=True),
        sa.Column("charitable_intent", sa.Boolean(), nullable=True),
        sa.Column(
            "assigned_departments", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")
        ),
        _uuid("primary_staff_id", nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("closure_reason", sa.Text(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("documents_requested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("funded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["applicant_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["primary_staff_id"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("application_number", name="uq_applications_application_number"),
        sa.CheckConstraint(
            "status IN ('draft', 'submitted', 'under_review', 'document_collection', 'approved', "
            "'rejected', 'funded', 'cancelled', 'closed')",
            name="ck_applications_status",
        ),
        sa.CheckConstraint(
            "application_type IN ('loan', 'prequalification')",
            name="ck_applications_type",
        ),
        sa.CheckConstraint(
            "requested_amount IS NULL OR requested_amount > 0",
            name="ck_applications_requested_amount_positive",
        ),
        sa.CheckConstraint(
            "(status = 'rejected') = (rejection_reason IS NOT NULL AND length(btrim(rejection_reason)) > 0)",
            name="ck_applications_rejection_reason",
        ),
        sa.CheckConstraint("version >= 1", name="ck_applications_version_positive"),
    )
    op.create_index("ix_applications_applicant_id", "applications", ["applicant_id"])
    op.create_index("ix_applications_status", "applications", ["status"])
    op.create_index("ix_applications_primary_staff_id", "applications", ["primary_staff_id"])

    op.create_table(
        "application_plans",
        _uuid("id", primary_key=True, nullable=False),
        _uuid("application_id", nullable=False),
        sa.Column("plan_code", sa.String(50), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("custom_loan_amount", MONEY, nullable=True),
        sa.Column("custom_max_amount", MONEY, nullable=True),
        sa.Column("custom_terms", postgresql.JSONB(), nullable=True),
        sa.Column("calculator_results", postgresql.JSONB(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _uuid("assigned_by", nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("deactivated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["application_id"], ["applications.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["plan_code"], ["plans.code"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["assigned_by"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_application_plans_application_id", "application_plans", ["application_id"])
    op.create_index("ix_application_plans_plan_code", "application_plans", ["plan_code"])
    op.create_index(
        "uq_application_plans_one_active",
        "application_plans",
        ["application_id"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )

    op.create_table(
        "loans",
        _uuid("id", primary_key=True, nullable=False),
        sa.Column("loan_number", sa.String(50), nullable=False),
        _uuid("application_id", nullable=False),
        _uuid("applicant_id", nullable=False),
        sa.Column("plan_code", sa.String(50), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("principal_amount", MONEY, nullable=False),
        sa.Column("interest_rate", sa.Numeric(8, 6), nullable=False),
        sa.Column("term_months", sa.Integer(), nullable=False),
        sa.Column("payment_frequency", sa.String(20), nullable=False, server_default="monthly"),
        sa.Column("loan_terms", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("current_balance", MONEY, nullable=False),
        sa.Column("total_paid", MONEY, nullable=False, server_default="0"),
        sa.Column("total_principal_paid", MONEY, nullable=False, server_default="0"),
        sa.Column("total_interest_paid", MONEY, nullable=False, server_default="0"),
        sa.Column("next_payment_date", sa.Date(), nullable=True),
        sa.Column("next_payment_amount", MONEY, nullable=True),
        sa.Column("last_payment_date", sa.Date(), nullable=True),
        sa.Column("last_payment_amount", MONEY, nullable=True),
        sa.Column("disbursed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("maturity_date", sa.Date(), nullable=True),
        sa.Column("paid_off_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _uuid("created_by", nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["application_id"], ["applications.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["applicant_id"], ["users.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["plan_code"], ["plans.code"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("loan_number", name="uq_loans_loan_number"),
        sa.CheckConstraint("principal_amount > 0", name="ck_loans_principal_positive"),
        sa.CheckConstraint("interest_rate >= 0", name="ck_loans_rate_nonneg"),
        sa.CheckConstraint("term_months > 0", name="ck_loans_term_positive"),
        sa.CheckConstraint("current_balance >= 0", name="ck_loans_balance_nonneg"),
        sa.CheckConstraint(
            "current_balance = principal_amount - total_principal_paid",
            name="ck_loans_balance_consistent",
        ),
        sa.CheckConstraint(
            "total_paid = total_principal_paid + total_interest_paid",
            name="ck_loans_total_paid_consistent",
        ),
        sa.CheckConstraint(
            "payment_frequency IN ('monthly', 'quarterly', 'annually')",
            name="ck_loans_payment_frequency",
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'active', 'paid_off', 'defaulted', 'cancelled', 'closed')",
            name="ck_loans_status",
        ),
        sa.CheckConstraint("version >= 1", name="ck_loans_version_positive"),
    )
    op.create_index("ix_loans_application_id", "loans", ["application_id"])
    op.create_index("ix_loans_applicant_id", "loans", ["applicant_id"])
    op.create_index("ix_loans_status", "loans", ["status"])
    op.create_index("ix_loans_application_status", "loans", ["application_id", "status"])

    op.create_table(
        "loan_payments",
        _uuid("id", primary_key=True, nullable=False),
        _uuid("loan_id", nullable=False),
        sa.Column("payment_number", sa.Integer(), nullable=False),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("amount_due", MONEY, nullable=False),
        sa.Column("principal_amount", MONEY, nullable=False),
        sa.Column("interest_amount", MONEY, nullable=False),
        sa.Column("late_fee", MONEY, nullable=False, server_default="0"),
        sa.Column("penalty_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="scheduled"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("amount_paid", MONEY, nullable=True),
        sa.Column("principal_paid", MONEY, nullable=True),
        sa.Column("interest_paid", MONEY, nullable=True),
        sa.Column("paid_date", sa.Date(), nullable=True),
        sa.Column("payment_method", sa.String(50), nullable=True),
        sa.Column("payment_reference", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _uuid("processed_by", nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["loan_id"], ["loans.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["processed_by"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("loan_id", "payment_number", name="uq_loan_payments_loan_number"),
        sa.CheckConstraint("payment_number >= 1", name="ck_loan_payments_number_positive"),
        sa.CheckConstraint("amount_due >= 0", name="ck_loan_payments_amount_due_nonneg"),
        sa.CheckConstraint("principal_amount >= 0", name="ck_loan_payments_principal_nonneg"),
        sa.CheckConstraint("interest_amount >= 0", name="ck_loan_payments_interest_nonneg"),
        sa.CheckConstraint("late_fee >= 0", name="ck_loan_payments_late_fee_nonneg"),
        sa.CheckConstraint("penalty_amount >= 0", name="ck_loan_payments_penalty_nonneg"),
        sa.CheckConstraint(
            "amount_paid IS NULL OR amount_paid > 0", name="ck_loan_payments_amount_paid_positive"
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'scheduled', 'paid', 'overdue', 'missed', 'cancelled')",
            name="ck_loan_payments_status",
        ),
        sa.CheckConstraint(
            "(status = 'paid') = (amount_paid IS NOT NULL AND paid_date IS NOT NULL)",
            name="ck_loan_payments_paid_fields",
        ),
        sa.CheckConstraint("version >= 1", name="ck_loan_payments_version_positive"),
    )
    op.create_index("ix_loan_payments_loan_id", "loan_payments", ["loan_id"])
    op.create_index("ix_loan_payments_status_due", "loan_payments", ["status", "due_date"])

    op.create_table(
        "prospect_staff_assignments",
        _uuid("id", primary_key=True, nullable=False),
        _uuid("staff_id", nullable=False),
        _uuid("prospect_id", nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("assignment_notes", sa.Text(), nullable=True),
        _uuid("assigned_by", nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        _uuid("unassigned_by", nullable=True),
        sa.Column("unassigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["staff_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["prospect_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["assigned_by"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["unassigned_by"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_prospect_staff_assignments_staff_id", "prospect_staff_assignments", ["staff_id"])
    op.create_index("ix_prospect_staff_assignments_prospect_id", "prospect_staff_assignments", ["prospect_id"])
    op.create_index(
        "uq_prospect_staff_assignments_active_pair",
        "prospect_staff_assignments",
        ["staff_id", "prospect_id"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )
    op.create_index(
        "uq_prospect_staff_assignments_active_primary",
        "prospect_staff_assignments",
        ["prospect_id"],
        unique=True,
        postgresql_where=sa.text("is_active AND is_primary"),
    )

    op.create_table(
        "audit_logs",
        _uuid("id", primary_key=True, nullable=False),
        _uuid("actor_id", nullable=True),
        sa.Column("action", sa.String(255), nullable=False),
        sa.Column("resource_type", sa.String(255), nullable=False),
        sa.Column("resource_id", sa.String(255), nullable=False),
        sa.Column("old_value", sa.JSON(), nullable=True),
        sa.Column("new_value", sa.JSON(), nullable=True),
        sa.Column("changes", sa.JSON(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("request_id", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_resource", "audit_logs", ["resource_type", "resource_id"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_index("uq_prospect_staff_assignments_active_primary", table_name="prospect_staff_assignments")
    op.drop_index("uq_prospect_staff_assignments_active_pair", table_name="prospect_staff_assignments")
    op.drop_table("prospect_staff_assignments")
    op.drop_table("loan_payments")
    op.drop_table("loans")
    op.drop_index("uq_application_plans_one_active", table_name="application_plans")
    op.drop_table("application_plans")
    op.drop_table("applications")
    op.drop_table("plans")
    op.drop_table("department_permissions")
    op.drop_table("departments")
    op.drop_table("users")
