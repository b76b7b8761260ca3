from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.actor import ActorContext
from app.core.exceptions import AuthorizationError
from app.core.permissions import Action, Resource
from app.models.department import DepartmentPermission
from app.services import assignment_directory

logger = logging.getLogger(__name__)


async def check_permission(
    db: AsyncSession,
    actor: ActorContext,
    resource: Resource | str,
    action: Action | str,
) -> bool:
    """Department-scoped permission check; admins bypass department rows."""
    if actor.is_admin:
        return True
    if not actor.is_staff or not actor.departments:
        return False
    resource_value = resource.value if isinstance(resource, Resource) else str(resource)
    action_value = action if isinstance(action, Action) else Action(action)
    flag = getattr(DepartmentPermission, action_value.column)
    stmt = (
        select(DepartmentPermission.id)
        .where(
            DepartmentPermission.department_name.in_(list(actor.departments)),
            DepartmentPermission.resource == resource_value,
            flag.is_(True),
        )
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none() is not None


async def require_resource_action(
    db: AsyncSession,
    actor: ActorContext,
    resource: Resource,
    action: Action,
) -> None:
    if not await check_permission(db, actor, resource, action):
        logger.info(
            "Permission denied actor=%s resource=%s action=%s",
            actor.actor_id,
            resource.value,
            action.value,
        )
        raise AuthorizationError(
            f"Missing permission: {resource.value}.{action.value}",
            details={"resource": resource.value, "action": action.value},
        )


async def is_responsible_for(db: AsyncSession, actor: ActorContext, application: Any) -> bool:
    """Whether a staff member is linked to the application by department or assignment."""
    departments = set(application.assigned_departments or [])
    if not departments:
        return True
    if departments & set(actor.departments):
        return True
    if application.primary_staff_id is not None and application.primary_staff_id == actor.actor_id:
        return True
    return await assignment_directory.is_staff_assigned(db, actor.actor_id, application.applicant_id)


async def can_edit_application(db: AsyncSession, actor: ActorContext, application: Any) -> bool:
    if actor.is_admin:
        return True
    if not actor.is_staff:
        return False
    if not await check_permission(db, actor, Resource.APPLICATIONS, Action.EDIT):
        return False
    return await is_responsible_for(db, actor, application)


async def require_application_edit(db: AsyncSession, actor: ActorContext, application: Any) -> None:
    if not await can_edit_application(db, actor, application):
        raise AuthorizationError(
            "Not authorized to modify this application",
            details={"application_id": str(application.id)},
        )


async def can_view_application(db: AsyncSession, actor: ActorContext, application: Any) -> bool:
    if application.applicant_id == actor.actor_id:
        return True
    return await check_permission(db, actor, Resource.APPLICATIONS, Action.VIEW)


async def require_application_view(db: AsyncSession, actor: ActorContext, application: Any) -> None:
    if not await can_view_application(db, actor, application):
        raise AuthorizationError(
            "Not authorized to view this application",
            details={"application_id": str(application.id)},
        )


async def require_loan_view(db: AsyncSession, actor: ActorContext, loan: Any) -> None:
    if loan.applicant_id == actor.actor_id:
        return
    await require_resource_action(db, actor, Resource.LOANS, Action.VIEW)
