from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.actor import ActorContext
from app.core.limiter import limiter
from app.core.permissions import Action, Resource
from app.core.settings import settings
from app.schemas.plans import (
    FinancialProfileIn,
    PlanCreate,
    PlanListResponse,
    PlanOut,
    PlanUpdate,
    QualificationResult,
)
from app.services import authz, plan_catalog, profiles, qualifier

router = APIRouter(prefix="/plans", tags=["plans"])


@router.get("", response_model=PlanListResponse, summary="List plans in the catalog")
async def list_plans(
    include_inactive: bool = Query(default=False),
    actor: ActorContext = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> PlanListResponse:
    if include_inactive:
        await authz.require_resource_action(db, actor, Resource.PLANS, Action.VIEW)
    catalog = await plan_catalog.load_catalog(db, include_inactive=include_inactive)
    items = [PlanOut.model_validate(plan) for plan in catalog.plans]
    return PlanListResponse(items=items, total=len(items))


@router.post(
    "",
    response_model=PlanOut,
    status_code=status.HTTP_201_CREATED,
    summary="Add a plan to the catalog",
)
async def create_plan(
    payload: PlanCreate,
    actor: ActorContext = Depends(deps.require_internal_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> PlanOut:
    plan = await plan_catalog.create_plan(db, actor, payload)
    await db.commit()
    return PlanOut.model_validate(plan)


@router.post(
    "/evaluate",
    response_model=QualificationResult,
    summary="Evaluate a financial profile against active plans without saving anything",
)
@limiter.limit(settings.evaluation_rate_limit)
async def evaluate_plans(
    request: Request,
    payload: FinancialProfileIn,
    actor: ActorContext = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> QualificationResult:
    # Omitted fields fall back to the caller's stored profile.
    stored = qualifier.FinancialProfile.from_source(await profiles.get_user(db, actor.actor_id))
    provided = payload.model_fields_set
    profile = qualifier.FinancialProfile(
        annual_income=payload.annual_income if "annual_income" in provided else stored.annual_income,
        net_worth=payload.net_worth if "net_worth" in provided else stored.net_worth,
        age=payload.age if "age" in provided else stored.age,
        asset_types=tuple(payload.asset_types) if "asset_types" in provided else stored.asset_types,
        charitable_intent=(
            payload.charitable_intent if "charitable_intent" in provided else stored.charitable_intent
        ),
    )
    catalog = await plan_catalog.load_catalog(db)
    return qualifier.evaluate(profile, catalog)


@router.get("/{code}", response_model=PlanOut, summary="Get a plan by code")
async def get_plan(
    code: str,
    actor: ActorContext = Depends(deps.get_current_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> PlanOut:
    plan = await plan_catalog.get_plan(db, code.lower(), active_only=actor.is_external)
    return PlanOut.model_validate(plan)


@router.patch("/{code}", response_model=PlanOut, summary="Update a plan definition")
async def update_plan(
    code: str,
    payload: PlanUpdate,
    actor: ActorContext = Depends(deps.require_internal_actor),
    db: AsyncSession = Depends(deps.get_db_session),
) -> PlanOut:
    plan = await plan_catalog.update_plan(db, actor, code.lower(), payload)
    await db.commit()
    return PlanOut.model_validate(plan)
