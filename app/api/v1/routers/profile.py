from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.actor import ActorContext
from app.core.limiter import limiter
from app.core.permissions import Action, Resource
from app.core.settings import settings
from app.schemas.applications import ApplicationOut, PrequalifyRequest, PrequalifyResponse
from app.schemas.profile import ProfileOut, ProfileUpdate
from app.services import applications, authz, profiles

router = APIRouter(tags=["profile"])


@router.get("/profile", response_model=ProfileOut, summary="Get the caller's financial profile")
async def get_profile(
    actor: ActorContext = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ProfileOut:
    user = await profiles.get_user(db, actor.actor_id)
    return ProfileOut.model_validate(user)


@router.patch("/profile", response_model=ProfileOut, summary="Update the caller's financial profile")
async def update_profile(
    payload: ProfileUpdate,
    actor: ActorContext = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ProfileOut:
    user = await profiles.update_profile(db, actor, actor.actor_id, payload)
    await db.commit()
    return ProfileOut.model_validate(user)


@router.get("/users/{user_id}/profile", response_model=ProfileOut, summary="Get a prospect's financial profile")
async def get_user_profile(
    user_id: UUID,
    actor: ActorContext = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ProfileOut:
    if user_id != actor.actor_id:
        await authz.require_resource_action(db, actor, Resource.PROSPECTS, Action.VIEW)
    user = await profiles.get_user(db, user_id)
    return ProfileOut.model_validate(user)


@router.patch("/users/{user_id}/profile", response_model=ProfileOut, summary="Update a prospect's financial profile")
async def update_user_profile(
    user_id: UUID,
    payload: ProfileUpdate,
    actor: ActorContext = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ProfileOut:
    user = await profiles.update_profile(db, actor, user_id, payload)
    await db.commit()
    return ProfileOut.model_validate(user)


@router.post(
    "/prequalify",
    response_model=PrequalifyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Evaluate the caller against the plan catalog and file a prequalification",
)
@limiter.limit(settings.evaluation_rate_limit)
async def prequalify(
    request: Request,
    payload: PrequalifyRequest,
    actor: ActorContext = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> PrequalifyResponse:
    application, result = await applications.prequalify(db, actor, payload)
    await db.commit()
    return PrequalifyResponse(application=ApplicationOut.model_validate(application), result=result)
