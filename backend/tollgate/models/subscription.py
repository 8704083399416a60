"""Subscription model."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import JSON
from sqlalchemy import UUID as SA_UUID
from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Numeric, String, text
from sqlalchemy.orm import Mapped, mapped_column

from tollgate.models._base import TenantBase

_LIVE_PREDICATE = text("status IN ('trialing', 'active', 'past_due')")


class Subscription(TenantBase):
    """A tenant's subscription record, current or historical."""

    __tablename__ = "subscription"

    plan_id: Mapped[Optional[UUID]] = mapped_column(
        SA_UUID, ForeignKey("plan.id", ondelete="SET NULL"), nullable=True
    )
    plan_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    end_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=False), nullable=True, index=True
    )
    trial_end_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=False), nullable=True
    )
    canceled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=False), nullable=True
    )
    is_auto_renew: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="inr", nullable=False)
    billing_cycle: Mapped[str] = mapped_column(String(20), nullable=False)

    # Provider correlation
    provider: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    provider_customer_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    provider_subscription_id: Mapped[Optional[str]] = mapped_column(
        String, nullable=True, index=True
    )
    provider_order_id: Mapped[Optional[str]] = mapped_column(String, nullable=True, index=True)
    provider_payment_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    # "metadata" is reserved on declarative classes
    extra_metadata: Mapped[dict] = mapped_column("metadata", JSON, default=dict, nullable=False)

    __table_args__ = (
        # At most one trialing/active/past_due subscription per tenant
        Index(
            "uq_subscription_one_live_per_tenant",
            "tenant_id",
            unique=True,
            sqlite_where=_LIVE_PREDICATE,
            postgresql_where=_LIVE_PREDICATE,
        ),
    )
