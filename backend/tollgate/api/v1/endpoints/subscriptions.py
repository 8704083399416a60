"""API endpoints for a tenant's subscription.

Every endpoint acts on the caller's resolved tenant, so an employee sees
and manages the subscription of the admin who employs them.
"""

from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from tollgate import schemas
from tollgate.api import deps
from tollgate.api.context import ApiContext
from tollgate.api.router import TrailingSlashRouter
from tollgate.platform.billing.lifecycle import SubscriptionLifecycleService
from tollgate.platform.billing.trial_limits import TrialLimitService

router = TrailingSlashRouter()


@router.get("/current", response_model=Optional[schemas.Subscription])
async def get_current_subscription(
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
    lifecycle: SubscriptionLifecycleService = Depends(deps.get_lifecycle),
) -> Optional[schemas.Subscription]:
    """Get the tenant's live subscription, or null if there is none."""
    return await lifecycle.get_active_subscription(db, ctx.tenant_id)


@router.get("/history", response_model=list[schemas.Subscription])
async def get_subscription_history(
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
    lifecycle: SubscriptionLifecycleService = Depends(deps.get_lifecycle),
) -> list[schemas.Subscription]:
    """Get all of the tenant's subscriptions, newest first."""
    return await lifecycle.get_subscription_history(db, ctx.tenant_id)


@router.get("/trial-status", response_model=schemas.TrialStatus)
async def get_trial_status(
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
    trial_limits: TrialLimitService = Depends(deps.get_trial_limit_service),
) -> schemas.TrialStatus:
    """Get resource usage against the trial ceilings."""
    return await trial_limits.get_trial_status(db, ctx.tenant_id)


@router.post("/free-trial", response_model=schemas.Subscription, status_code=201)
async def start_free_trial(
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
    lifecycle: SubscriptionLifecycleService = Depends(deps.get_lifecycle),
) -> schemas.Subscription:
    """Start the free trial. Returns the running trial if there already is one.

    Fails with 409 if the tenant already has a live paid subscription.
    """
    subscription = await lifecycle.create_free_trial(db, ctx.tenant_id)
    ctx.logger.info(f"Free trial {subscription.id} ends {subscription.end_date}")
    return subscription


@router.post("/{subscription_id}/cancel", response_model=schemas.Subscription)
async def cancel_subscription(
    subscription_id: UUID,
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
    lifecycle: SubscriptionLifecycleService = Depends(deps.get_lifecycle),
) -> schemas.Subscription:
    """Cancel one of the tenant's live subscriptions and turn off auto-renew."""
    return await lifecycle.cancel_user_subscription(
        db, subscription_id, tenant_id=ctx.tenant_id
    )


@router.get("/stats", response_model=schemas.SubscriptionStats)
async def get_subscription_stats(
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
    lifecycle: SubscriptionLifecycleService = Depends(deps.get_lifecycle),
) -> schemas.SubscriptionStats:
    """Get counts by status and plan type across all tenants. Admin accounts only."""
    if not ctx.is_tenant_owner:
        raise HTTPException(status_code=403, detail="Only admin accounts can view statistics")
    return await lifecycle.get_subscription_stats(db)
