from enum import Enum
from typing import List


class UserRole(str, Enum):
    PROSPECT = "prospect"
    LEAD = "lead"
    MEMBER = "member"
    PARTNER = "partner"
    STAFF = "staff"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"

    @classmethod
    def admin_roles(cls) -> set[str]:
        return {cls.ADMIN.value, cls.SUPER_ADMIN.value}

    @classmethod
    def external_roles(cls) -> set[str]:
        return {cls.PROSPECT.value, cls.LEAD.value, cls.MEMBER.value, cls.PARTNER.value}


class Resource(str, Enum):
    APPLICATIONS = "applications"
    LOANS = "loans"
    PLANS = "plans"
    PROSPECTS = "prospects"

    @classmethod
    def list_all(cls) -> List[str]:
        return [item.value for item in cls]


class Action(str, Enum):
    VIEW = "view"
    EDIT = "edit"
    DELETE = "delete"

    @property
    def column(self) -> str:
        return f"can_{self.value}"
