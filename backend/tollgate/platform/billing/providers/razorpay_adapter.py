"""Razorpay webhook adapter."""

import hashlib
import hmac
from typing import Optional

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
from tollgate.schemas.payment_event import RazorpayPaymentEvent

EVENT_TYPES = {
    "payment.captured": PaymentEventType.PAYMENT_CAPTURED,
    "order.paid": PaymentEventType.ORDER_PAID,
    "payment.failed": PaymentEventType.PAYMENT_FAILED,
}

TENANT_KEYS = ("tenant_id", "userId")
PLAN_KEYS = ("plan_id", "planId")


def hmac_sha256_hex(secret: str, message: bytes) -> str:
    """Hex HMAC-SHA256 as Razorpay computes it."""
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_payment_signature(
    order_id: str, payment_id: str, signature: str, key_secret: Optional[str] = None
) -> bool:
    """Verify the signature returned to the browser after a checkout completes."""
    key_secret = key_secret or settings.RAZORPAY_KEY_SECRET
    if not key_secret or not signature:
        return False
    expected = hmac_sha256_hex(key_secret, f"{order_id}|{payment_id}".encode("utf-8"))
    return hmac.compare_digest(expected, signature)


def _entities_from_envelope(payload: dict) -> tuple[dict, dict]:
    """Webhook shape: ``{"event": ..., "payload": {"payment": {...}, "order": {...}}}``."""
    body = payload["payload"]
    return unwrap_entity(body.get("payment")), unwrap_entity(body.get("order"))


def _entities_from_direct(payload: dict) -> tuple[dict, dict]:
    """Flat shape: ``{"event": ..., "payment": {...}, "order": {...}}``."""
    return unwrap_entity(payload.get("payment")), unwrap_entity(payload.get("order"))


def extract_entities(payload: dict) -> tuple[dict, dict]:
    """Return (payment, order) from either payload shape."""
    if isinstance(payload.get("payload"), dict):
        return _entities_from_envelope(payload)
    return _entities_from_direct(payload)


class RazorpayAdapter(ProviderAdapter):
    """Normalizes Razorpay payment and order events."""

    provider = PaymentProvider.RAZORPAY

    def __init__(self, webhook_secret: Optional[str] = None):
        """Initialize the adapter.

        Args:
            webhook_secret: Webhook secret; defaults to RAZORPAY_WEBHOOK_SECRET
        """
        self.webhook_secret = webhook_secret or settings.RAZORPAY_WEBHOOK_SECRET

    def verify_signature(self, raw_body: bytes, signature_header: Optional[str]) -> bool:
        """Check the ``x-razorpay-signature`` header."""
        if not signature_header or not self.webhook_secret:
            return False
        expected = hmac_sha256_hex(self.webhook_secret, raw_body)
        return hmac.compare_digest(expected, signature_header)

    def normalize(self, payload: dict, raw_body: bytes) -> Optional[RazorpayPaymentEvent]:
        """Map payment and order events to payment events."""
        event_name = payload.get("event")
        event_type = EVENT_TYPES.get(event_name)
        if event_type is None:
            return None

        payment, order = extract_entities(payload)
        return self.build_event(
            event_type=event_type,
            provider_event_type=event_name,
            payment=payment,
            order=order,
            raw_body=raw_body,
        )

    def build_event(
        self,
        *,
        event_type: PaymentEventType,
        provider_event_type: str,
        payment: dict,
        order: dict,
        raw_body: bytes,
    ) -> RazorpayPaymentEvent:
        """Build an event from payment and order entities.

        Also used by client-side verification, where the entities come from
        the pending order instead of a webhook.
        """
        order_id = first_present(order.get("id"), order.get("order_id"), payment.get("order_id"))
        payment_id = first_present(payment.get("id"), payment.get("payment_id"))
        order_notes = order.get("notes") or {}
        payment_notes = payment.get("notes") or {}

        def _note(keys: tuple[str, ...]) -> Optional[str]:
            return first_present(
                *(order_notes.get(key) for key in keys),
                *(payment_notes.get(key) for key in keys),
            )

        tenant_id = parse_uuid(_note(TENANT_KEYS))
        plan_id = parse_uuid(_note(PLAN_KEYS))
        self._require_attribution(event_type, tenant_id, plan_id)
        if not order_id or not payment_id:
            raise UnattributableEventError(self.provider.value, "Missing order or payment id")

        return RazorpayPaymentEvent(
            event_type=event_type,
            provider_event_type=provider_event_type,
            provider_order_id=order_id,
            provider_payment_id=payment_id,
            tenant_id=tenant_id,
            plan_id=plan_id,
            raw_payload_digest=payload_digest(raw_body),
            amount_minor=payment.get("amount") or order.get("amount"),
            currency=first_present(payment.get("currency"), order.get("currency")),
            email=first_present(_note(("email",)), payment.get("email")),
        )
