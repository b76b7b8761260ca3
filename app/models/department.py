import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID

from app.db.base import Base


class Department(Base):
    __tablename__ = "departments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, server_default="true")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class DepartmentPermission(Base):
    __tablename__ = "department_permissions"
    __table_args__ = (
        UniqueConstraint("department_name", "resource", name="uq_department_permissions_resource"),
        CheckConstraint(
            "resource IN ('applications', 'loans', 'plans', 'prospects')",
            name="ck_department_permissions_resource",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    department_name = Column(
        String(100),
        ForeignKey("departments.name", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
        index=True,
    )
    resource = Column(String(50), nullable=False)
    can_view = Column(Boolean, nullable=False, server_default="true")
    can_edit = Column(Boolean, nullable=False, server_default="false")
    can_delete = Column(Boolean, nullable=False, server_default="false")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
