import asyncio
import logging
from decimal import Decimal

from sqlalchemy import select

from app.db.session import session_scope
from app.models.plan import Plan
from app.services.qualifier import LEGACY_CALCULATORS

logger = logging.getLogger(__name__)

DEFAULT_PLANS = (
    {
        "code": "defund",
        "name": "Donum Defund",
        "description": "Converts a high earner's annual tax liability into planned charitable giving.",
        "min_income": Decimal("200000"),
        "min_assets": None,
        "min_age": None,
        "required_asset_types": [],
        "benefits": [
            "Redirects income tax liability to charitable causes",
            "Level installments over the loan term",
        ],
    },
    {
        "code": "diversion",
        "name": "Donum Diversion",
        "description": "Funds charitable giving from retirement account distributions.",
        "min_income": None,
        "min_assets": Decimal("500000"),
        "min_age": Decimal("59.5"),
        "required_asset_types": [],
        "benefits": [
            "Uses penalty-free IRA distributions",
            "Spreads giving across the distribution schedule",
        ],
    },
    {
        "code": "divest",
        "name": "Donum Divest",
        "description": "Pairs a one-time asset sale with a charitable gift to offset capital gains.",
        "min_income": None,
        "min_assets": Decimal("500000"),
        "min_age": None,
        "required_asset_types": [],
        "benefits": [
            "Offsets capital gains on appreciated assets",
            "Single large gift financed over time",
        ],
    },
)


async def init_db() -> None:
    """
    Seed the plan catalog with the default plans; existing codes are left untouched.
    """
    async with session_scope() as session:
        logger.info("Seeding default plan catalog")
        result = await session.execute(select(Plan.code))
        existing = set(result.scalars().all())
        created = []
        for definition in DEFAULT_PLANS:
            if definition["code"] in existing:
                continue
            session.add(
                Plan(
                    **definition,
                    requires_charitable_intent=True,
                    calculator_config=dict(LEGACY_CALCULATORS[definition["code"]]),
                    is_active=True,
                )
            )
            created.append(definition["code"])
        if created:
            await session.flush()
            logger.info("Seeded plans: %s", ", ".join(created))
        else:
            logger.info("Default plans already present")


if __name__ == "__main__":
    asyncio.run(init_db())
