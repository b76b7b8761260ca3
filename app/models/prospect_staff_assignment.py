import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Text, func, text
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base


class ProspectStaffAssignment(Base):
    __tablename__ = "prospect_staff_assignments"
    __table_args__ = (
        Index(
            "uq_prospect_staff_assignments_active_pair",
            "staff_id",
            "prospect_id",
            unique=True,
            postgresql_where=text("is_active"),
        ),
        Index(
            "uq_prospect_staff_assignments_active_primary",
            "prospect_id",
            unique=True,
            postgresql_where=text("is_active AND is_primary"),
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    staff_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    prospect_id = Column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    is_active = Column(Boolean, nullable=False, server_default="true")
    is_primary = Column(Boolean, nullable=False, server_default="false")
    assignment_notes = Column(Text, nullable=True)
    assigned_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    assigned_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    unassigned_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    unassigned_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
