"""Checkout flows for Stripe and Razorpay."""

import time
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from tollgate import crud, schemas
from tollgate.core.config import settings
from tollgate.core.exceptions import (
    ExternalServiceError,
    InvalidStateError,
    NotFoundException,
    PlanNotFoundException,
    SubscriptionConflictException,
    WebhookSignatureError,
)
from tollgate.core.logging import ContextualLogger
from tollgate.core.logging import logger as default_logger
from tollgate.core.shared_models import PaymentEventType, PaymentProvider
from tollgate.core.ttl_store import TTLStore
from tollgate.integrations.razorpay_client import RazorpayClient
from tollgate.integrations.stripe_client import StripeClient
from tollgate.models import Plan
from tollgate.platform.billing.lifecycle import (
    SubscriptionLifecycleService,
    subscription_lifecycle,
)
from tollgate.platform.billing.plan_logic import is_paid_plan, to_minor_units
from tollgate.platform.billing.providers.razorpay_adapter import (
    RazorpayAdapter,
    verify_payment_signature,
)

PENDING_ORDER_TTL_SECONDS = 30 * 60


def _pending_order_key(order_id: str) -> str:
    return f"razorpay_order:{order_id}"


class CheckoutService:
    """Starts provider checkouts and confirms client-side Razorpay payments.

    Every checkout carries the tenant and plan ids to the provider so the
    resulting webhooks can be attributed without a lookup.
    """

    def __init__(
        self,
        store: TTLStore,
        stripe_client: Optional[StripeClient] = None,
        razorpay_client: Optional[RazorpayClient] = None,
        lifecycle: Optional[SubscriptionLifecycleService] = None,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the service.

        Args:
            store: TTL store holding pending Razorpay orders
            stripe_client: Stripe client; None when Stripe is disabled
            razorpay_client: Razorpay client; None when Razorpay is disabled
            lifecycle: Lifecycle service that applies confirmed payments
            logger: Optional contextual logger for structured logging
        """
        self.store = store
        self.stripe_client = stripe_client
        self.razorpay_client = razorpay_client
        self.lifecycle = lifecycle or subscription_lifecycle
        self.logger = logger or default_logger.with_context(component="checkout")

    async def _purchasable_plan(self, db: AsyncSession, plan_id: UUID) -> Plan:
        plan = await crud.plan.get(db, plan_id)
        if plan is None or not plan.is_active:
            raise PlanNotFoundException(f"Plan {plan_id} not found")
        if not is_paid_plan(plan.plan_type):
            raise InvalidStateError("The free plan is started with the free trial, not purchased")
        return plan

    async def create_stripe_checkout(
        self, db: AsyncSession, tenant_id: UUID, request: schemas.CheckoutRequest
    ) -> schemas.StripeCheckoutSession:
        """Create a Stripe subscription checkout session for a paid plan."""
        if self.stripe_client is None:
            raise ExternalServiceError("Stripe", "Stripe is not enabled")
        plan = await self._purchasable_plan(db, request.plan_id)

        session = await self.stripe_client.create_plan_checkout_session(
            plan_name=plan.name,
            plan_type=plan.plan_type,
            amount=plan.amount,
            currency=plan.currency,
            success_url=request.success_url or f"{settings.APP_URL}/billing/success",
            cancel_url=request.cancel_url or f"{settings.APP_URL}/billing/cancel",
            metadata={
                "tenant_id": str(tenant_id),
                "plan_id": str(plan.id),
                "email": request.email,
            },
            customer_email=request.email,
        )
        self.logger.with_context(tenant_id=str(tenant_id)).info(
            f"Created Stripe checkout session {session.id} for plan {plan.name}"
        )
        return schemas.StripeCheckoutSession(session_id=session.id, url=session.url)

    async def create_free_verification(
        self, db: AsyncSession, tenant_id: UUID, request: schemas.FreeVerificationRequest
    ) -> schemas.StripeCheckoutSession:
        """Create the card-verification session whose completion starts the free trial."""
        if self.stripe_client is None:
            raise ExternalServiceError("Stripe", "Stripe is not enabled")

        live = await crud.subscription.get_live_by_tenant(db, tenant_id=tenant_id)
        if live is not None and is_paid_plan(live.plan_type):
            raise SubscriptionConflictException("Tenant already has a live paid subscription")

        session = await self.stripe_client.create_free_verification_session(
            success_url=request.success_url or f"{settings.APP_URL}/billing/success",
            cancel_url=request.cancel_url or f"{settings.APP_URL}/billing/cancel",
            metadata={"tenant_id": str(tenant_id), "email": request.email},
            customer_email=request.email,
        )
        return schemas.StripeCheckoutSession(session_id=session.id, url=session.url)

    async def create_razorpay_order(
        self, db: AsyncSession, tenant_id: UUID, request: schemas.CheckoutRequest
    ) -> schemas.RazorpayOrder:
        """Create a Razorpay order and remember it until the client confirms payment."""
        if self.razorpay_client is None:
            raise ExternalServiceError("Razorpay", "Razorpay is not enabled")
        plan = await self._purchasable_plan(db, request.plan_id)

        amount_minor = to_minor_units(plan.amount)
        currency = plan.currency.upper()
        receipt = f"plan_{plan.id}_{int(time.time())}"
        notes = {
            "tenant_id": str(tenant_id),
            "plan_id": str(plan.id),
            "email": request.email or "",
        }
        order = await self.razorpay_client.create_order(
            amount_minor=amount_minor, currency=currency, receipt=receipt, notes=notes
        )

        await self.store.set(
            _pending_order_key(order["id"]),
            {
                "tenant_id": str(tenant_id),
                "plan_id": str(plan.id),
                "amount": amount_minor,
                "currency": currency,
                "email": request.email,
            },
            PENDING_ORDER_TTL_SECONDS,
        )
        self.logger.with_context(tenant_id=str(tenant_id)).info(
            f"Created Razorpay order {order['id']} for plan {plan.name}"
        )
        return schemas.RazorpayOrder(
            order_id=order["id"],
            amount=amount_minor,
            currency=currency,
            receipt=order.get("receipt") or receipt,
            key_id=self.razorpay_client.key_id,
        )

    async def verify_razorpay_payment(
        self, db: AsyncSession, tenant_id: UUID, request: schemas.RazorpayVerifyRequest
    ) -> schemas.WebhookResult:
        """Confirm a payment reported by the browser and activate the plan.

        Uses the same idempotency key as the ``order.paid`` webhook, so
        whichever arrives second is deduplicated.

        Raises:
        ------
            WebhookSignatureError: If the payment signature does not match.
            NotFoundException: If the order is unknown, expired, or another tenant's.

        """
        if not verify_payment_signature(
            request.razorpay_order_id,
            request.razorpay_payment_id,
            request.razorpay_signature,
            key_secret=self.razorpay_client.key_secret if self.razorpay_client else None,
        ):
            raise WebhookSignatureError(PaymentProvider.RAZORPAY.value, "Invalid payment signature")

        pending = await self.store.get(_pending_order_key(request.razorpay_order_id))
        if pending is None or pending.get("tenant_id") != str(tenant_id):
            raise NotFoundException("Checkout order not found or expired")

        notes = {
            "tenant_id": pending["tenant_id"],
            "plan_id": pending["plan_id"],
            "email": pending.get("email"),
        }
        event = RazorpayAdapter().build_event(
            event_type=PaymentEventType.ORDER_PAID,
            provider_event_type="client.verified",
            payment={
                "id": request.razorpay_payment_id,
                "order_id": request.razorpay_order_id,
                "amount": pending.get("amount"),
                "currency": pending.get("currency"),
            },
            order={"id": request.razorpay_order_id, "notes": notes},
            raw_body=f"{request.razorpay_order_id}|{request.razorpay_payment_id}".encode(),
        )
        return await self.lifecycle.apply_payment_event(db, event)
