"""Provider-neutral payment events.

Each provider has its own event model; the union is discriminated on
``provider`` so downstream code never inspects payload shapes.
"""

from datetime import datetime
from typing import Annotated, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from tollgate.core.shared_models import PaymentEventType, PaymentProvider, WebhookOutcome


class _PaymentEventBase(BaseModel):
    """Fields shared by every provider event."""

    model_config = ConfigDict(frozen=True)

    event_type: PaymentEventType
    provider_event_type: str = Field(..., description="Event name as sent by the provider")
    provider_order_id: str
    provider_payment_id: str
    tenant_id: UUID
    plan_id: Optional[UUID] = None
    raw_payload_digest: str = Field(..., description="sha256 hex digest of the raw body")

    @property
    def idempotency_key(self) -> str:
        """Natural key of the event: provider, order and payment ids."""
        return f"{self.provider.value}:{self.provider_order_id}:{self.provider_payment_id}"


class StripePaymentEvent(_PaymentEventBase):
    """Event normalized from a Stripe webhook."""

    provider: Literal[PaymentProvider.STRIPE] = PaymentProvider.STRIPE
    customer_id: Optional[str] = None
    subscription_id: Optional[str] = None
    email: Optional[str] = None


class RazorpayPaymentEvent(_PaymentEventBase):
    """Event normalized from a Razorpay webhook or client-side verification."""

    provider: Literal[PaymentProvider.RAZORPAY] = PaymentProvider.RAZORPAY
    amount_minor: Optional[int] = Field(None, description="Amount in paise")
    currency: Optional[str] = None
    email: Optional[str] = None


PaymentEvent = Annotated[
    Union[StripePaymentEvent, RazorpayPaymentEvent], Field(discriminator="provider")
]


class PaymentEventRecord(BaseModel):
    """Stored idempotency record."""

    model_config = ConfigDict(from_attributes=True)

    key: str
    provider: PaymentProvider
    event_type: PaymentEventType
    tenant_id: Optional[UUID] = None
    raw_payload_digest: str
    first_seen_at: datetime
    outcome: WebhookOutcome
    subscription_id: Optional[UUID] = None
    detail: Optional[str] = None


class WebhookResult(BaseModel):
    """Result of handling one webhook delivery."""

    outcome: WebhookOutcome
    idempotency_key: Optional[str] = None
    subscription_id: Optional[UUID] = None
    detail: Optional[str] = None
