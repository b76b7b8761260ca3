from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class StaffAssignmentCreate(BaseModel):
    staff_id: UUID
    is_primary: bool | None = None
    assignment_notes: str | None = Field(default=None, max_length=4000)


class StaffAssignmentUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    is_primary: bool | None = None
    assignment_notes: str | None = Field(default=None, max_length=4000)


class StaffAssignmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    staff_id: UUID
    prospect_id: UUID
    is_active: bool
    is_primary: bool
    assignment_notes: str | None = None
    assigned_by: UUID | None = None
    assigned_at: datetime | None = None
    unassigned_by: UUID | None = None
    unassigned_at: datetime | None = None


class StaffAssignmentListResponse(BaseModel):
    items: list[StaffAssignmentOut]
    total: int
