"""Stripe webhook adapter."""

from typing import Optional

import stripe

from tollgate.core.config import settings
from tollgate.core.exceptions import UnattributableEventError
from tollgate.core.shared_models import PaymentEventType, PaymentProvider
from tollgate.platform.billing.providers.base import (
    ProviderAdapter,
    first_present,
    parse_uuid,
    payload_digest,
    unwrap_entity,
)
from tollgate.schemas.payment_event import StripePaymentEvent

FREE_VERIFICATION = "free_verification"

TENANT_KEYS = ("tenant_id", "userId")
PLAN_KEYS = ("plan_id", "planId")


def _from_metadata(metadata: dict, keys: tuple[str, ...]) -> Optional[str]:
    return first_present(*(metadata.get(key) for key in keys))


def _event_object_from_envelope(payload: dict) -> dict:
    """Standard event: ``{"type": ..., "data": {"object": {...}}}``."""
    return unwrap_entity(payload["data"].get("object"))


def _event_object_from_direct(payload: dict) -> dict:
    """Flattened event: ``{"type": ..., "object": {...}}``."""
    return unwrap_entity(payload.get("object"))


def extract_event_object(payload: dict) -> dict:
    """Pick the object out of either event shape."""
    if isinstance(payload.get("data"), dict):
        return _event_object_from_envelope(payload)
    return _event_object_from_direct(payload)


def _invoice_metadata(invoice: dict) -> dict:
    """Subscription metadata copied onto an invoice, wherever this API version puts it."""
    candidates = [
        (invoice.get("subscription_details") or {}).get("metadata"),
        ((invoice.get("parent") or {}).get("subscription_details") or {}).get("metadata"),
        invoice.get("metadata"),
    ]
    lines = (invoice.get("lines") or {}).get("data") or []
    if lines:
        candidates.append(lines[0].get("metadata"))
    merged: dict = {}
    for candidate in reversed(candidates):
        if candidate:
            merged.update(candidate)
    return merged


def _invoice_subscription_id(invoice: dict) -> Optional[str]:
    subscription = invoice.get("subscription")
    if isinstance(subscription, dict):
        subscription = subscription.get("id")
    nested = ((invoice.get("parent") or {}).get("subscription_details") or {}).get(
        "subscription"
    )
    return first_present(subscription, nested)


class StripeAdapter(ProviderAdapter):
    """Normalizes Stripe checkout, invoice and subscription events."""

    provider = PaymentProvider.STRIPE

    def __init__(
        self,
        webhook_secret: Optional[str] = None,
        tolerance_seconds: Optional[int] = None,
    ):
        """Initialize the adapter.

        Args:
            webhook_secret: Signing secret; defaults to STRIPE_WEBHOOK_SECRET
            tolerance_seconds: Max payload age; defaults to STRIPE_WEBHOOK_TOLERANCE_SECONDS
        """
        self.webhook_secret = webhook_secret or settings.STRIPE_WEBHOOK_SECRET
        self.tolerance_seconds = (
            tolerance_seconds
            if tolerance_seconds is not None
            else settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS
        )

    def verify_signature(self, raw_body: bytes, signature_header: Optional[str]) -> bool:
        """Check the ``stripe-signature`` header."""
        if not signature_header or not self.webhook_secret:
            return False
        try:
            stripe.WebhookSignature.verify_header(
                raw_body.decode("utf-8"),
                signature_header,
                self.webhook_secret,
                self.tolerance_seconds,
            )
        except (stripe.SignatureVerificationError, UnicodeDecodeError):
            return False
        return True

    def normalize(self, payload: dict, raw_body: bytes) -> Optional[StripePaymentEvent]:
        """Map checkout and invoice events to payment events."""
        event_type = payload.get("type")
        obj = extract_event_object(payload)

        if event_type == "checkout.session.completed":
            return self._from_checkout_session(event_type, obj, raw_body)
        if event_type == "invoice.payment_succeeded":
            return self._from_invoice(event_type, obj, raw_body, failed=False)
        if event_type == "invoice.payment_failed":
            return self._from_invoice(event_type, obj, raw_body, failed=True)
        if event_type == "customer.subscription.deleted":
            return self._from_subscription_deleted(event_type, obj, raw_body)
        return None

    def _from_checkout_session(
        self, event_type: str, session: dict, raw_body: bytes
    ) -> Optional[StripePaymentEvent]:
        metadata = session.get("metadata") or {}

        if metadata.get("type") == FREE_VERIFICATION:
            normalized_type = PaymentEventType.TRIAL_VERIFIED
            payment_id = first_present(session.get("setup_intent"), session.get("id"))
        elif session.get("payment_status") == "paid":
            normalized_type = PaymentEventType.ORDER_PAID
            payment_id = first_present(
                session.get("payment_intent"), session.get("subscription"), session.get("id")
            )
        else:
            # Async payment methods complete later via invoice events
            return None

        tenant_id = parse_uuid(
            _from_metadata(metadata, TENANT_KEYS) or session.get("client_reference_id")
        )
        plan_id = parse_uuid(_from_metadata(metadata, PLAN_KEYS))
        self._require_attribution(normalized_type, tenant_id, plan_id)
        session_id = self._require_id(session)

        return StripePaymentEvent(
            event_type=normalized_type,
            provider_event_type=event_type,
            provider_order_id=session_id,
            provider_payment_id=payment_id,
            tenant_id=tenant_id,
            plan_id=plan_id,
            raw_payload_digest=payload_digest(raw_body),
            customer_id=first_present(session.get("customer")),
            subscription_id=first_present(session.get("subscription")),
            email=first_present(
                metadata.get("email"), (session.get("customer_details") or {}).get("email")
            ),
        )

    def _from_invoice(
        self, event_type: str, invoice: dict, raw_body: bytes, failed: bool
    ) -> Optional[StripePaymentEvent]:
        # The first invoice of a subscription is covered by checkout.session.completed
        if not failed and invoice.get("billing_reason") == "subscription_create":
            return None

        subscription_id = _invoice_subscription_id(invoice)
        invoice_id = self._require_id(invoice)
        metadata = _invoice_metadata(invoice)

        if failed:
            normalized_type = PaymentEventType.PAYMENT_FAILED
            # Each retry of the same invoice is a distinct event
            payment_id = f"{invoice_id}:attempt{invoice.get('attempt_count') or 1}"
        else:
            normalized_type = PaymentEventType.PAYMENT_CAPTURED
            payment_id = invoice_id

        tenant_id = parse_uuid(_from_metadata(metadata, TENANT_KEYS))
        plan_id = parse_uuid(_from_metadata(metadata, PLAN_KEYS))
        self._require_attribution(normalized_type, tenant_id, plan_id)

        return StripePaymentEvent(
            event_type=normalized_type,
            provider_event_type=event_type,
            provider_order_id=subscription_id or invoice_id,
            provider_payment_id=payment_id,
            tenant_id=tenant_id,
            plan_id=plan_id,
            raw_payload_digest=payload_digest(raw_body),
            customer_id=first_present(invoice.get("customer")),
            subscription_id=subscription_id,
            email=first_present(metadata.get("email"), invoice.get("customer_email")),
        )

    def _from_subscription_deleted(
        self, event_type: str, subscription: dict, raw_body: bytes
    ) -> StripePaymentEvent:
        """Subscription ended at Stripe (dunning exhausted, dashboard or portal cancel)."""
        metadata = subscription.get("metadata") or {}
        tenant_id = parse_uuid(_from_metadata(metadata, TENANT_KEYS))
        self._require_attribution(PaymentEventType.SUBSCRIPTION_CANCELED, tenant_id, None)
        subscription_id = self._require_id(subscription)

        return StripePaymentEvent(
            event_type=PaymentEventType.SUBSCRIPTION_CANCELED,
            provider_event_type=event_type,
            provider_order_id=subscription_id,
            # A subscription is deleted once; its id alone keys the event
            provider_payment_id="deleted",
            tenant_id=tenant_id,
            plan_id=parse_uuid(_from_metadata(metadata, PLAN_KEYS)),
            raw_payload_digest=payload_digest(raw_body),
            customer_id=first_present(subscription.get("customer")),
            subscription_id=subscription_id,
            email=first_present(metadata.get("email")),
        )

    def _require_id(self, obj: dict) -> str:
        object_id = first_present(obj.get("id"))
        if object_id is None:
            raise UnattributableEventError(
                self.provider.value, f"Missing {obj.get('object') or 'object'} id"
            )
        return object_id
