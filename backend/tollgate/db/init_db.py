"""Initialize the database schema and seed the plan catalog."""

from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from tollgate import crud, schemas
from tollgate.core.config import settings
from tollgate.core.logging import logger
from tollgate.core.shared_models import PlanType
from tollgate.models._base import Base
from tollgate.platform.billing.plan_logic import TRIAL_LIMITS

_ALL_MODULES = ["visitors", "appointments", "employees", "reports", "spot_passes"]

DEFAULT_PLANS = [
    schemas.PlanCreate(
        name="Free Trial",
        plan_type=PlanType.FREE,
        amount=Decimal("0"),
        trial_days=settings.FREE_TRIAL_DAYS,
        limits=schemas.PlanLimits(**TRIAL_LIMITS, spot_passes=0),
        modules=["visitors", "appointments", "employees"],
    ),
    schemas.PlanCreate(
        name="Weekly",
        plan_type=PlanType.WEEKLY,
        amount=Decimal("199"),
        modules=_ALL_MODULES,
    ),
    schemas.PlanCreate(
        name="Monthly",
        plan_type=PlanType.MONTHLY,
        amount=Decimal("599"),
        modules=_ALL_MODULES,
    ),
    schemas.PlanCreate(
        name="Quarterly",
        plan_type=PlanType.QUARTERLY,
        amount=Decimal("1599"),
        modules=_ALL_MODULES,
    ),
    schemas.PlanCreate(
        name="Yearly",
        plan_type=PlanType.YEARLY,
        amount=Decimal("5999"),
        modules=_ALL_MODULES,
    ),
]


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def seed_plans(db: AsyncSession) -> None:
    """Insert any default plan that is missing from the catalog."""
    for plan_in in DEFAULT_PLANS:
        existing = await crud.plan.get_by_name(db, name=plan_in.name)
        if existing is None:
            logger.info(f"Plan {plan_in.name} not found, creating...")
            await crud.plan.create(db, obj_in=plan_in)


async def init_db(engine: AsyncEngine, db: AsyncSession) -> None:
    """Create the schema and seed the plan catalog.

    Args:
    ----
        engine (AsyncEngine): The engine to create tables on.
        db (AsyncSession): The database session.
    """
    await create_tables(engine)
    await seed_plans(db)
