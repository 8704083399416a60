"""Report endpoints gated by subscription entitlements."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tollgate import crud
from tollgate.api import deps
from tollgate.api.context import ApiContext
from tollgate.api.router import TrailingSlashRouter
from tollgate.core.shared_models import PlanType, ResourceKind
from tollgate.platform.billing.entitlements import require_premium, require_specific_plan
from tollgate.platform.billing.trial_limits import TrialLimitService

router = TrailingSlashRouter()


async def _usage_summary(
    db: AsyncSession, ctx: ApiContext, trial_limits: TrialLimitService
) -> dict[str, int]:
    return {
        kind.value: await trial_limits.count_active(db, ctx.tenant_id, kind)
        for kind in ResourceKind
    }


@router.get("/premium")
async def premium_report(
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
    trial_limits: TrialLimitService = Depends(deps.get_trial_limit_service),
) -> dict:
    """Usage report for tenants on any active paid plan."""
    subscription = await crud.subscription.get_live_by_tenant(db, tenant_id=ctx.tenant_id)
    require_premium(subscription)
    return {
        "plan_type": subscription.plan_type,
        "usage": await _usage_summary(db, ctx, trial_limits),
    }


@router.get("/plan/{plan_type}")
async def plan_report(
    plan_type: PlanType,
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
    trial_limits: TrialLimitService = Depends(deps.get_trial_limit_service),
) -> dict:
    """Usage report available only on exactly ``plan_type``."""
    subscription = await crud.subscription.get_live_by_tenant(db, tenant_id=ctx.tenant_id)
    require_specific_plan(subscription, plan_type)
    return {
        "plan_type": subscription.plan_type,
        "end_date": subscription.end_date.isoformat() if subscription.end_date else None,
        "usage": await _usage_summary(db, ctx, trial_limits),
    }
