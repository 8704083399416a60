"""CRUD operations for the plan catalog."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tollgate import schemas
from tollgate.crud._base_system import CRUDBaseSystem
from tollgate.models import Plan


class CRUDPlan(CRUDBaseSystem[Plan, schemas.PlanCreate]):
    """CRUD operations for plans."""

    async def get_by_name(self, db: AsyncSession, *, name: str) -> Optional[Plan]:
        """Get a plan by its unique name."""
        result = await db.execute(select(Plan).where(Plan.name == name))
        return result.scalar_one_or_none()

    async def get_catalog(self, db: AsyncSession, *, active_only: bool = True) -> list[Plan]:
        """List plans ordered by price."""
        query = select(Plan).order_by(Plan.amount, Plan.name)
        if active_only:
            query = query.where(Plan.is_active.is_(True))
        result = await db.execute(query)
        return list(result.scalars().all())


plan = CRUDPlan(Plan)
