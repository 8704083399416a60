"""API endpoints for the plan catalog."""

from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tollgate import crud, schemas
from tollgate.api import deps
from tollgate.api.router import TrailingSlashRouter
from tollgate.core.exceptions import PlanNotFoundException

router = TrailingSlashRouter()


@router.get("", response_model=list[schemas.Plan])
async def list_plans(db: AsyncSession = Depends(deps.get_db)) -> list[schemas.Plan]:
    """List the active plans, cheapest first."""
    plans = await crud.plan.get_catalog(db, active_only=True)
    return [schemas.Plan.model_validate(plan, from_attributes=True) for plan in plans]


@router.get("/{plan_id}", response_model=schemas.Plan)
async def get_plan(plan_id: UUID, db: AsyncSession = Depends(deps.get_db)) -> schemas.Plan:
    """Get one plan."""
    plan = await crud.plan.get(db, plan_id)
    if plan is None:
        raise PlanNotFoundException(f"Plan {plan_id} not found")
    return schemas.Plan.model_validate(plan, from_attributes=True)
