"""Dependencies that are used in the API endpoints."""

import uuid
from functools import lru_cache
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tollgate.api.context import ApiContext
from tollgate.core.logging import ContextualLogger, logger
from tollgate.core.ownership_service import ownership_resolver
from tollgate.core.ttl_store import TTLStore, get_ttl_store
from tollgate.db.session import get_db
from tollgate.integrations.razorpay_client import razorpay_client
from tollgate.integrations.stripe_client import stripe_client
from tollgate.platform.billing.checkout import CheckoutService
from tollgate.platform.billing.lifecycle import (
    SubscriptionLifecycleService,
    subscription_lifecycle,
)
from tollgate.platform.billing.trial_limits import TrialLimitService, trial_limit_service

__all__ = [
    "get_checkout_service",
    "get_context",
    "get_db",
    "get_lifecycle",
    "get_logger",
    "get_pending_checkout_store",
    "get_trial_limit_service",
]


def _parse_account_id(x_account_id: Optional[str]) -> UUID:
    if not x_account_id:
        raise HTTPException(status_code=401, detail="X-Account-ID header missing")
    try:
        return UUID(x_account_id)
    except ValueError as e:
        raise HTTPException(status_code=401, detail="X-Account-ID is not a valid id") from e


async def get_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
    x_account_id: Optional[str] = Header(None, alias="X-Account-ID"),
) -> ApiContext:
    """Create the API context for the request.

    The caller is identified by ``X-Account-ID`` (set by the upstream
    authentication gateway) and resolved to the tenant that owns its data.

    Raises:
    ------
        HTTPException: If the header is missing or malformed.
        TenantNotFoundException: If the account has no owning tenant.

    """
    request_id = getattr(request.state, "request_id", str(uuid.uuid4()))
    account_id = _parse_account_id(x_account_id)
    tenant_id = await ownership_resolver.resolve_tenant_id(db, account_id)

    return ApiContext(
        request_id=request_id,
        account_id=account_id,
        tenant_id=tenant_id,
        logger=logger.with_context(
            request_id=request_id,
            account_id=str(account_id),
            tenant_id=str(tenant_id),
            context_base="api",
        ),
    )


async def get_logger(context: ApiContext = Depends(get_context)) -> ContextualLogger:
    """Logger with the current request and tenant context."""
    return context.logger


def get_lifecycle() -> SubscriptionLifecycleService:
    """Subscription lifecycle service."""
    return subscription_lifecycle


def get_trial_limit_service() -> TrialLimitService:
    """Trial limit gate."""
    return trial_limit_service


@lru_cache
def get_pending_checkout_store() -> TTLStore:
    """Process-wide store for pending Razorpay orders."""
    return get_ttl_store()


def get_checkout_service(
    store: TTLStore = Depends(get_pending_checkout_store),
    lifecycle: SubscriptionLifecycleService = Depends(get_lifecycle),
) -> CheckoutService:
    """Checkout service wired to the configured provider clients."""
    return CheckoutService(
        store=store,
        stripe_client=stripe_client,
        razorpay_client=razorpay_client,
        lifecycle=lifecycle,
    )
