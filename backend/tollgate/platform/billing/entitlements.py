"""Entitlement decisions derived from a tenant's subscription.

All functions are pure: they read the given record and a point in time and
never touch the store. A missing subscription is never entitled.
"""

from datetime import datetime
from typing import Optional, Protocol

from tollgate.core.datetime_utils import to_naive_utc, utc_now_naive
from tollgate.core.exceptions import EntitlementDeniedException
from tollgate.core.shared_models import LIVE_STATUSES, PlanType, SubscriptionStatus


class SubscriptionLike(Protocol):
    """The attributes entitlement checks read."""

    status: str
    plan_type: str
    end_date: Optional[datetime]


def is_active(sub: Optional[SubscriptionLike], now: Optional[datetime] = None) -> bool:
    """Live status and an end date that is absent or still in the future."""
    if sub is None:
        return False
    if SubscriptionStatus(sub.status) not in LIVE_STATUSES:
        return False
    now = to_naive_utc(now) or utc_now_naive()
    end_date = to_naive_utc(sub.end_date)
    return end_date is None or end_date > now


def is_premium(sub: Optional[SubscriptionLike]) -> bool:
    """Any plan other than free."""
    return sub is not None and PlanType(sub.plan_type) != PlanType.FREE


def is_trialing(sub: Optional[SubscriptionLike]) -> bool:
    """Status is trialing."""
    return sub is not None and SubscriptionStatus(sub.status) == SubscriptionStatus.TRIALING


def require_active(sub: Optional[SubscriptionLike], now: Optional[datetime] = None) -> None:
    """Gate: the tenant must have an active subscription."""
    if not is_active(sub, now):
        raise EntitlementDeniedException(
            requirement="active",
            message="Upgrade required: no active subscription",
        )


def require_premium(sub: Optional[SubscriptionLike], now: Optional[datetime] = None) -> None:
    """Gate: the tenant must have an active paid subscription."""
    if not (is_premium(sub) and is_active(sub, now)):
        raise EntitlementDeniedException(requirement="premium")


def require_specific_plan(
    sub: Optional[SubscriptionLike],
    plan_type: PlanType | str,
    now: Optional[datetime] = None,
) -> None:
    """Gate: the tenant must have an active subscription of exactly ``plan_type``."""
    plan_type = PlanType(plan_type)
    if not is_active(sub, now) or PlanType(sub.plan_type) != plan_type:
        raise EntitlementDeniedException(
            requirement=plan_type.value,
            message=f"Upgrade required: this action requires the {plan_type.value} plan",
        )
