"""Pure business logic for plans and subscription periods.

This module contains the billing rules, separated from infrastructure
concerns like database and provider APIs.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional
from uuid import UUID

from tollgate.core.config import settings
from tollgate.core.shared_models import PlanType, ResourceKind, SubscriptionStatus

# Billing cycle lengths of paid plans
BILLING_CYCLE_DAYS = {
    PlanType.WEEKLY: 7,
    PlanType.MONTHLY: 30,
    PlanType.QUARTERLY: 90,
    PlanType.YEARLY: 365,
}

# Ceilings enforced while a tenant is trialing
TRIAL_LIMITS = {
    ResourceKind.EMPLOYEES.value: 5,
    ResourceKind.VISITORS.value: 20,
    ResourceKind.APPOINTMENTS.value: 20,
}

UNLIMITED = -1


def cycle_length(plan_type: PlanType | str) -> timedelta:
    """Length of one period of the given plan type."""
    plan_type = PlanType(plan_type)
    if plan_type == PlanType.FREE:
        return timedelta(days=settings.FREE_TRIAL_DAYS)
    return timedelta(days=BILLING_CYCLE_DAYS[plan_type])


def compute_end_date(plan_type: PlanType | str, start: datetime) -> datetime:
    """End of the first period that starts at ``start``."""
    return start + cycle_length(plan_type)


def is_paid_plan(plan_type: PlanType | str) -> bool:
    """Whether the plan type is a paid tier."""
    return PlanType(plan_type) != PlanType.FREE


def trial_limit_for(resource_kind: ResourceKind | str) -> int:
    """Trial ceiling for a resource kind."""
    return TRIAL_LIMITS[ResourceKind(resource_kind).value]


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount (rupees, dollars) to minor units (paise, cents)."""
    return int((Decimal(amount) * 100).to_integral_value())


@dataclass
class PaidSubscriptionDraft:
    """Values for a new paid subscription, computed from a plan."""

    tenant_id: UUID
    plan_id: UUID
    plan_type: PlanType
    status: SubscriptionStatus
    start_date: datetime
    end_date: datetime
    trial_end_date: Optional[datetime]
    amount: Decimal
    currency: str


def draft_paid_subscription(
    *,
    tenant_id: UUID,
    plan_id: UUID,
    plan_type: PlanType | str,
    amount: Decimal,
    currency: str,
    now: datetime,
) -> PaidSubscriptionDraft:
    """Compute the record created when a paid plan is purchased.

    A purchase always starts an active period; the plan's own trial days do
    not apply to a plan that has already been paid for.
    """
    plan_type = PlanType(plan_type)
    if not is_paid_plan(plan_type):
        raise ValueError("A free plan cannot be purchased")
    return PaidSubscriptionDraft(
        tenant_id=tenant_id,
        plan_id=plan_id,
        plan_type=plan_type,
        status=SubscriptionStatus.ACTIVE,
        start_date=now,
        end_date=compute_end_date(plan_type, now),
        trial_end_date=None,
        amount=Decimal(amount),
        currency=currency,
    )
