import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Numeric, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID

from app.db.base import Base
from app.models.types import Money


class Plan(Base):
    __tablename__ = "plans"
    __table_args__ = (
        CheckConstraint("min_income IS NULL OR min_income >= 0", name="ck_plans_min_income_nonneg"),
        CheckConstraint("min_assets IS NULL OR min_assets >= 0", name="ck_plans_min_assets_nonneg"),
        CheckConstraint("min_age IS NULL OR min_age >= 0", name="ck_plans_min_age_nonneg"),
        CheckConstraint(
            "tax_deduction_percent IS NULL OR (tax_deduction_percent >= 0 AND tax_deduction_percent <= 100)",
            name="ck_plans_tax_deduction_range",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    min_income = Column(Money, nullable=True)
    min_assets = Column(Money, nullable=True)
    min_age = Column(Numeric(5, 1), nullable=True)
    required_asset_types = Column(JSONB, nullable=False, default=list)
    requires_charitable_intent = Column(Boolean, nullable=False, server_default="true")
    tax_deduction_percent = Column(Numeric(5, 2), nullable=True)
    benefits = Column(JSONB, nullable=False, default=list)
    calculator_config = Column(JSONB, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, server_default="true", index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
