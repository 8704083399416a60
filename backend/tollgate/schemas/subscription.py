"""Subscription schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, computed_field

from tollgate.core.datetime_utils import utc_now_naive
from tollgate.core.shared_models import PaymentProvider, PlanType, SubscriptionStatus


class SubscriptionCreate(BaseModel):
    """Subscription creation schema, used only by the lifecycle orchestrator."""

    model_config = ConfigDict(use_enum_values=True)

    tenant_id: UUID
    plan_id: Optional[UUID] = None
    plan_type: PlanType
    status: SubscriptionStatus
    start_date: datetime
    end_date: Optional[datetime] = None
    trial_end_date: Optional[datetime] = None
    is_auto_renew: bool = False
    amount: Decimal = Decimal("0")
    currency: str = "inr"
    billing_cycle: PlanType
    provider: Optional[PaymentProvider] = None
    provider_customer_id: Optional[str] = None
    provider_subscription_id: Optional[str] = None
    provider_order_id: Optional[str] = None
    provider_payment_id: Optional[str] = None
    extra_metadata: Dict[str, Any] = Field(default_factory=dict)


class Subscription(BaseModel):
    """Subscription schema returned to callers."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    tenant_id: UUID
    plan_id: Optional[UUID] = None
    plan_type: PlanType
    status: SubscriptionStatus
    start_date: datetime
    end_date: Optional[datetime] = None
    trial_end_date: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    is_auto_renew: bool
    amount: Decimal
    currency: str
    billing_cycle: PlanType
    provider: Optional[PaymentProvider] = None
    provider_customer_id: Optional[str] = None
    provider_subscription_id: Optional[str] = None
    provider_order_id: Optional[str] = None
    provider_payment_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("extra_metadata", "metadata"),
    )
    created_at: datetime

    @computed_field
    @property
    def is_trialing(self) -> bool:
        """Whether the subscription is inside a trial window."""
        return self.status == SubscriptionStatus.TRIALING

    @computed_field
    @property
    def days_remaining(self) -> Optional[int]:
        """Whole days until ``end_date``, never negative."""
        if self.end_date is None:
            return None
        remaining = self.end_date - utc_now_naive()
        return max(0, remaining.days + (1 if remaining.seconds > 0 else 0))


class SubscriptionStats(BaseModel):
    """Aggregate subscription counts."""

    total: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict)
    by_plan_type: Dict[str, int] = Field(default_factory=dict)
    paid_revenue: Dict[str, Decimal] = Field(
        default_factory=dict, description="Sum of paid subscription amounts per currency"
    )
