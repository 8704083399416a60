"""Stripe API client for billing operations.

This module provides a clean interface to the Stripe API,
handling all direct Stripe interactions without business logic.
"""

from decimal import Decimal
from typing import Any, Dict, Optional

import stripe

from tollgate.core.config import settings
from tollgate.core.exceptions import ExternalServiceError
from tollgate.core.shared_models import PlanType
from tollgate.platform.billing.plan_logic import to_minor_units

# Stripe recurring intervals per plan type
RECURRING_INTERVALS = {
    PlanType.WEEKLY: {"interval": "week", "interval_count": 1},
    PlanType.MONTHLY: {"interval": "month", "interval_count": 1},
    PlanType.QUARTERLY: {"interval": "month", "interval_count": 3},
    PlanType.YEARLY: {"interval": "year", "interval_count": 1},
}


class StripeClient:
    """Client for Stripe API operations."""

    def __init__(self, api_key: Optional[str] = None):
        """Initialize Stripe client."""
        if not settings.STRIPE_ENABLED and api_key is None:
            raise ValueError("Stripe is not enabled in settings")

        stripe.api_key = api_key or settings.STRIPE_SECRET_KEY
        stripe.max_network_retries = 2
        self.webhook_secret = settings.STRIPE_WEBHOOK_SECRET

    def _sanitize_text(self, text: str) -> str:
        """Sanitize text for Stripe API (ASCII-only)."""
        if not text:
            return text
        return text.encode("ascii", "replace").decode("ascii")

    def _clean_metadata(self, metadata: Optional[Dict[str, str]]) -> Dict[str, str]:
        """Clean metadata values for Stripe."""
        if not metadata:
            return {}

        return {
            self._sanitize_text(str(key)): self._sanitize_text(str(value))
            for key, value in metadata.items()
            if value is not None
        }

    async def create_plan_checkout_session(
        self,
        *,
        plan_name: str,
        plan_type: PlanType,
        amount: Decimal,
        currency: str,
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
        customer_email: Optional[str] = None,
    ) -> stripe.checkout.Session:
        """Create a subscription checkout session for a catalog plan.

        Tenant and plan ids ride along as metadata on both the session and the
        subscription, so checkout and invoice webhooks can be attributed.
        """
        try:
            clean_metadata = self._clean_metadata(metadata)
            params: Dict[str, Any] = {
                "mode": "subscription",
                "line_items": [
                    {
                        "price_data": {
                            "currency": currency.lower(),
                            "unit_amount": to_minor_units(amount),
                            "recurring": RECURRING_INTERVALS[PlanType(plan_type)],
                            "product_data": {"name": self._sanitize_text(plan_name)},
                        },
                        "quantity": 1,
                    }
                ],
                "success_url": self._sanitize_text(success_url),
                "cancel_url": self._sanitize_text(cancel_url),
                "client_reference_id": clean_metadata.get("tenant_id"),
                "metadata": clean_metadata,
                "subscription_data": {"metadata": clean_metadata},
            }
            if customer_email:
                params["customer_email"] = customer_email

            return await stripe.checkout.Session.create_async(**params)
        except stripe.StripeError as e:
            raise ExternalServiceError(
                service_name="Stripe",
                message=f"Failed to create checkout session: {str(e)}",
            ) from e

    async def create_free_verification_session(
        self,
        *,
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
        customer_email: Optional[str] = None,
    ) -> stripe.checkout.Session:
        """Create a setup-mode session that verifies a card before the free trial starts."""
        try:
            clean_metadata = self._clean_metadata({**metadata, "type": "free_verification"})
            params: Dict[str, Any] = {
                "mode": "setup",
                "payment_method_types": ["card"],
                "success_url": self._sanitize_text(success_url),
                "cancel_url": self._sanitize_text(cancel_url),
                "client_reference_id": clean_metadata.get("tenant_id"),
                "metadata": clean_metadata,
            }
            if customer_email:
                params["customer_email"] = customer_email

            return await stripe.checkout.Session.create_async(**params)
        except stripe.StripeError as e:
            raise ExternalServiceError(
                service_name="Stripe",
                message=f"Failed to create verification session: {str(e)}",
            ) from e

    async def cancel_subscription(self, subscription_id: str) -> stripe.Subscription:
        """Cancel a subscription immediately."""
        try:
            return await stripe.Subscription.cancel_async(subscription_id)
        except stripe.StripeError as e:
            raise ExternalServiceError(
                service_name="Stripe",
                message=f"Failed to cancel subscription: {str(e)}",
            ) from e


# Singleton instance
stripe_client = StripeClient() if settings.STRIPE_ENABLED else None
