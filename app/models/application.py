import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID

from app.db.base import Base
from app.models.types import Money

APPLICATION_STATUSES = (
    "draft",
    "submitted",
    "under_review",
    "document_collection",
    "approved",
    "rejected",
    "funded",
    "cancelled",
    "closed",
)


class Application(Base):
    __tablename__ = "applications"
    __allow_unmapped__ = True
    __table_args__ = (
        CheckConstraint(
            "status IN ({})".format(", ".join(f"'{status}'" for status in APPLICATION_STATUSES)),
            name="ck_applications_status",
        ),
        CheckConstraint(
            "application_type IN ('loan', 'prequalification')",
            name="ck_applications_type",
        ),
        CheckConstraint(
            "requested_amount IS NULL OR requested_amount > 0",
            name="ck_applications_requested_amount_positive",
        ),
        CheckConstraint(
            "(status = 'rejected') = (rejection_reason IS NOT NULL AND length(btrim(rejection_reason)) > 0)",
            name="ck_applications_rejection_reason",
        ),
        CheckConstraint("version >= 1", name="ck_applications_version_positive"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    application_number = Column(String(50), nullable=False, unique=True)
    applicant_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status = Column(String(30), nullable=False, default="draft", index=True)
    application_type = Column(String(30), nullable=False, default="loan")
    version = Column(Integer, nullable=False, default=1)
    requested_amount = Column(Money, nullable=True)
    purpose = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    # Financial snapshot captured at submission
    annual_income_snapshot = Column(Money, nullable=True)
    net_worth_snapshot = Column(Money, nullable=True)
    tax_bracket_snapshot = Column(String(20), nullable=True)

    # Qualification metadata
    qualified = Column(Boolean, nullable=True)
    qualified_plan_codes = Column(JSONB, nullable=False, default=list)
    qualification_reasons = Column(JSONB, nullable=False, default=list)
    asset_types = Column(JSONB, nullable=False, default=list)
    age = Column(Integer, nullable=True)
    charitable_intent = Column(Boolean, nullable=True)

    assigned_departments = Column(JSONB, nullable=False, default=list)
    primary_staff_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    rejection_reason = Column(Text, nullable=True)
    closure_reason = Column(Text, nullable=True)

    submitted_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    documents_requested_at = Column(DateTime(timezone=True), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    funded_at = Column(DateTime(timezone=True), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __mapper_args__ = {"version_id_col": version}
