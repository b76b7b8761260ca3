import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID

from app.db.base import Base
from app.models.types import Money


class Loan(Base):
    __tablename__ = "loans"
    __allow_unmapped__ = True
    __table_args__ = (
        CheckConstraint("principal_amount > 0", name="ck_loans_principal_positive"),
        CheckConstraint("interest_rate >= 0", name="ck_loans_rate_nonneg"),
        CheckConstraint("term_months > 0", name="ck_loans_term_positive"),
        CheckConstraint("current_balance >= 0", name="ck_loans_balance_nonneg"),
        CheckConstraint(
            "current_balance = principal_amount - total_principal_paid",
            name="ck_loans_balance_consistent",
        ),
        CheckConstraint(
            "total_paid = total_principal_paid + total_interest_paid",
            name="ck_loans_total_paid_consistent",
        ),
        CheckConstraint(
            "payment_frequency IN ('monthly', 'quarterly', 'annually')",
            name="ck_loans_payment_frequency",
        ),
        CheckConstraint(
            "status IN ('pending', 'active', 'paid_off', 'defaulted', 'cancelled', 'closed')",
            name="ck_loans_status",
        ),
        CheckConstraint("version >= 1", name="ck_loans_version_positive"),
        Index("ix_loans_application_status", "application_id", "status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_number = Column(String(50), nullable=False, unique=True)
    application_id = Column(
        UUID(as_uuid=True),
        ForeignKey("applications.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    applicant_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    plan_code = Column(String(50), ForeignKey("plans.code", ondelete="RESTRICT"), nullable=True)
    status = Column(String(20), nullable=False, default="active", index=True)
    version = Column(Integer, nullable=False, default=1)

    principal_amount = Column(Money, nullable=False)
    interest_rate = Column(Numeric(8, 6), nullable=False)
    term_months = Column(Integer, nullable=False)
    payment_frequency = Column(String(20), nullable=False, default="monthly")
    loan_terms = Column(JSONB, nullable=False, default=dict)

    current_balance = Column(Money, nullable=False)
    total_paid = Column(Money, nullable=False, default=0)
    total_principal_paid = Column(Money, nullable=False, default=0)
    total_interest_paid = Column(Money, nullable=False, default=0)

    next_payment_date = Column(Date, nullable=True)
    next_payment_amount = Column(Money, nullable=True)
    last_payment_date = Column(Date, nullable=True)
    last_payment_amount = Column(Money, nullable=True)

    disbursed_at = Column(DateTime(timezone=True), nullable=True)
    maturity_date = Column(Date, nullable=True)
    paid_off_at = Column(DateTime(timezone=True), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __mapper_args__ = {"version_id_col": version}
