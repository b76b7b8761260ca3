import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB, UUID

from app.db.base import Base
from app.models.types import Money


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "role IN ('prospect', 'lead', 'member', 'partner', 'staff', 'admin', 'super_admin')",
            name="ck_users_role",
        ),
        CheckConstraint("annual_income IS NULL OR annual_income >= 0", name="ck_users_income_nonneg"),
        CheckConstraint("net_worth IS NULL OR net_worth >= 0", name="ck_users_net_worth_nonneg"),
        CheckConstraint("age IS NULL OR age >= 0", name="ck_users_age_nonneg"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True)
    full_name = Column(String(255), nullable=True)
    phone_number = Column(String(50), nullable=True)
    role = Column(String(30), nullable=False, default="prospect", index=True)
    departments = Column(JSONB, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, server_default="true")

    # Financial profile
    annual_income = Column(Money, nullable=True)
    net_worth = Column(Money, nullable=True)
    age = Column(Integer, nullable=True)
    asset_types = Column(JSONB, nullable=False, default=list)
    charitable_intent = Column(Boolean, nullable=True)
    tax_bracket = Column(String(20), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
