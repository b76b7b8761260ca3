import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, Text, func, text
from sqlalchemy.dialects.postgresql import JSONB, UUID

from app.db.base import Base
from app.models.types import Money


class ApplicationPlan(Base):
    __tablename__ = "application_plans"
    __table_args__ = (
        Index(
            "uq_application_plans_one_active",
            "application_id",
            unique=True,
            postgresql_where=text("is_active"),
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_id = Column(
        UUID(as_uuid=True),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    plan_code = Column(
        String(50),
        ForeignKey("plans.code", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    is_active = Column(Boolean, nullable=False, server_default="true")
    custom_loan_amount = Column(Money, nullable=True)
    custom_max_amount = Column(Money, nullable=True)
    # interest_rate (fraction), duration (months), payment_schedule
    custom_terms = Column(JSONB, nullable=True)
    calculator_results = Column(JSONB, nullable=True)
    notes = Column(Text, nullable=True)
    assigned_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    assigned_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    deactivated_at = Column(DateTime(timezone=True), nullable=True)
