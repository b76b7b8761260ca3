from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from app.core.permissions import UserRole


@dataclass(slots=True, frozen=True)
class ActorContext:
    """Who is acting on a request, as resolved from a verified token."""

    actor_id: UUID
    role: str
    departments: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_admin(self) -> bool:
        return self.role in UserRole.admin_roles()

    @property
    def is_staff(self) -> bool:
        return self.role == UserRole.STAFF.value

    @property
    def is_external(self) -> bool:
        return not (self.is_admin or self.is_staff)
