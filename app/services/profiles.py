from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.actor import ActorContext
from app.core.exceptions import NotFound, ValidationError
from app.core.permissions import Action, Resource
from app.models.user import User
from app.schemas.profile import ProfileUpdate
from app.services import authz
from app.services.audit import model_snapshot, record_audit_log

PROFILE_FIELDS = (
    "full_name",
    "phone_number",
    "annual_income",
    "net_worth",
    "age",
    "asset_types",
    "charitable_intent",
    "tax_bracket",
)


async def get_user(db: AsyncSession, user_id: UUID) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFound("User not found", details={"user_id": str(user_id)})
    return user


async def update_profile(
    db: AsyncSession,
    actor: ActorContext,
    user_id: UUID,
    payload: ProfileUpdate,
) -> User:
    """Apply profile edits for the owner, or for staff allowed to edit prospects."""
    if user_id != actor.actor_id:
        await authz.require_resource_action(db, actor, Resource.PROSPECTS, Action.EDIT)
    user = await get_user(db, user_id)
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        return user
    before = model_snapshot(user, exclude={"created_at", "updated_at"})
    for field, value in changes.items():
        if field not in PROFILE_FIELDS:
            raise ValidationError(f"{field} is not editable", details={"field": field})
        if field == "asset_types" and value is None:
            value = []
        setattr(user, field, value)
    await db.flush()
    record_audit_log(
        db,
        actor,
        action="profile.updated",
        resource_type="user",
        resource_id=user.id,
        old_value=before,
        new_value=model_snapshot(user, exclude={"created_at", "updated_at"}),
    )
    return user
