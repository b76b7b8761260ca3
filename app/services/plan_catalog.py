from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.actor import ActorContext
from app.core.exceptions import PlanNotFound, ValidationError
from app.core.permissions import Action, Resource
from app.models.plan import Plan
from app.schemas.plans import PlanCreate, PlanUpdate
from app.services import authz
from app.services.audit import model_snapshot, record_audit_log

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanCatalog:
    """Immutable view over the plan definitions loaded for one evaluation."""

    plans: tuple[Plan, ...]

    @classmethod
    def of(cls, plans: Iterable[Plan]) -> "PlanCatalog":
        return cls(plans=tuple(sorted(plans, key=lambda plan: plan.code)))

    def active(self) -> list[Plan]:
        return [plan for plan in self.plans if plan.is_active]

    def get(self, code: str) -> Plan | None:
        for plan in self.plans:
            if plan.code == code:
                return plan
        return None

    def codes(self) -> list[str]:
        return [plan.code for plan in self.plans]


async def load_catalog(db: AsyncSession, *, include_inactive: bool = False) -> PlanCatalog:
    stmt = select(Plan).order_by(Plan.code)
    if not include_inactive:
        stmt = stmt.where(Plan.is_active.is_(True))
    result = await db.execute(stmt)
    return PlanCatalog.of(result.scalars().all())


async def get_plan(db: AsyncSession, code: str, *, active_only: bool = False) -> Plan:
    stmt = select(Plan).where(Plan.code == code)
    result = await db.execute(stmt)
    plan = result.scalar_one_or_none()
    if plan is None or (active_only and not plan.is_active):
        raise PlanNotFound(
            f"Plan '{code}' was not found" + (" or is inactive" if active_only else ""),
            details={"plan_code": code},
        )
    return plan


async def create_plan(db: AsyncSession, actor: ActorContext, payload: PlanCreate) -> Plan:
    await authz.require_resource_action(db, actor, Resource.PLANS, Action.EDIT)
    existing = await db.execute(select(Plan.id).where(Plan.code == payload.code))
    if existing.scalar_one_or_none() is not None:
        raise ValidationError(
            f"Plan code '{payload.code}' already exists",
            code="plan_code_exists",
            details={"plan_code": payload.code},
        )
    plan = Plan(**payload.model_dump())
    db.add(plan)
    await db.flush()
    record_audit_log(
        db,
        actor,
        action="plan.created",
        resource_type="plan",
        resource_id=plan.code,
        new_value=model_snapshot(plan),
    )
    logger.info("Plan created code=%s", plan.code)
    return plan


async def update_plan(db: AsyncSession, actor: ActorContext, code: str, payload: PlanUpdate) -> Plan:
    await authz.require_resource_action(db, actor, Resource.PLANS, Action.EDIT)
    plan = await get_plan(db, code)
    before = model_snapshot(plan)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if field in {"name", "requires_charitable_intent", "is_active"} and value is None:
            raise ValidationError(f"{field} cannot be null", details={"field": field})
        if field in {"required_asset_types", "benefits"} and value is None:
            value = []
        if field == "calculator_config" and value is None:
            value = {}
        setattr(plan, field, value)
    await db.flush()
    record_audit_log(
        db,
        actor,
        action="plan.updated",
        resource_type="plan",
        resource_id=plan.code,
        old_value=before,
        new_value=model_snapshot(plan),
    )
    return plan
