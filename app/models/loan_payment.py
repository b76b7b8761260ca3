import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base
from app.models.types import Money


class LoanPayment(Base):
    __tablename__ = "loan_payments"
    __allow_unmapped__ = True
    __table_args__ = (
        UniqueConstraint("loan_id", "payment_number", name="uq_loan_payments_loan_number"),
        CheckConstraint("payment_number >= 1", name="ck_loan_payments_number_positive"),
        CheckConstraint("amount_due >= 0", name="ck_loan_payments_amount_due_nonneg"),
        CheckConstraint("principal_amount >= 0", name="ck_loan_payments_principal_nonneg"),
        CheckConstraint("interest_amount >= 0", name="ck_loan_payments_interest_nonneg"),
        CheckConstraint("late_fee >= 0", name="ck_loan_payments_late_fee_nonneg"),
        CheckConstraint("penalty_amount >= 0", name="ck_loan_payments_penalty_nonneg"),
        CheckConstraint("amount_paid IS NULL OR amount_paid > 0", name="ck_loan_payments_amount_paid_positive"),
        CheckConstraint(
            "status IN ('pending', 'scheduled', 'paid', 'overdue', 'missed', 'cancelled')",
            name="ck_loan_payments_status",
        ),
        CheckConstraint(
            "(status = 'paid') = (amount_paid IS NOT NULL AND paid_date IS NOT NULL)",
            name="ck_loan_payments_paid_fields",
        ),
        CheckConstraint("version >= 1", name="ck_loan_payments_version_positive"),
        Index("ix_loan_payments_status_due", "status", "due_date"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_id = Column(
        UUID(as_uuid=True),
        ForeignKey("loans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    payment_number = Column(Integer, nullable=False)
    scheduled_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    amount_due = Column(Money, nullable=False)
    principal_amount = Column(Money, nullable=False)
    interest_amount = Column(Money, nullable=False)
    late_fee = Column(Money, nullable=False, default=0)
    penalty_amount = Column(Money, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="scheduled")
    version = Column(Integer, nullable=False, default=1)

    amount_paid = Column(Money, nullable=True)
    principal_paid = Column(Money, nullable=True)
    interest_paid = Column(Money, nullable=True)
    paid_date = Column(Date, nullable=True)
    payment_method = Column(String(50), nullable=True)
    payment_reference = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    processed_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __mapper_args__ = {"version_id_col": version}
