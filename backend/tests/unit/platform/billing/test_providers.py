"""Unit tests for the Stripe and Razorpay adapters."""

import time
import uuid

import pytest

from tollgate.core.exceptions import UnattributableEventError
from tollgate.core.shared_models import PaymentEventType, PaymentProvider
from tollgate.platform.billing.providers import RazorpayAdapter, StripeAdapter, get_adapter
from tollgate.platform.billing.providers.base import payload_digest
from tollgate.platform.billing.providers.razorpay_adapter import (
    hmac_sha256_hex,
    verify_payment_signature,
)
from tests.helpers.payloads import (
    razorpay_payload,
    sign_razorpay,
    sign_stripe,
    stripe_checkout_payload,
    stripe_invoice_payload,
    stripe_subscription_deleted_payload,
    to_body,
)

TENANT = uuid.uuid4()
PLAN = uuid.uuid4()


def normalize(adapter, payload):
    body = to_body(payload)
    return adapter.normalize(payload, body)


def test_get_adapter():
    assert isinstance(get_adapter(PaymentProvider.STRIPE), StripeAdapter)
    assert isinstance(get_adapter(PaymentProvider.RAZORPAY), RazorpayAdapter)


class TestRazorpayNormalize:
    @pytest.mark.parametrize("envelope", [True, False])
    @pytest.mark.parametrize("notes_on", ["order", "payment"])
    def test_both_shapes_give_the_same_event(self, envelope, notes_on):
        payload = razorpay_payload(
            "order.paid", tenant_id=TENANT, plan_id=PLAN, envelope=envelope, notes_on=notes_on
        )

        event = normalize(RazorpayAdapter(), payload)

        assert event.event_type == PaymentEventType.ORDER_PAID
        assert event.provider == PaymentProvider.RAZORPAY
        assert event.tenant_id == TENANT
        assert event.plan_id == PLAN
        assert event.idempotency_key == "razorpay:order_test_1:pay_test_1"
        assert event.amount_minor == 59900

    def test_captured_and_order_paid_share_a_key(self):
        adapter = RazorpayAdapter()
        captured = normalize(
            adapter, razorpay_payload("payment.captured", tenant_id=TENANT, plan_id=PLAN)
        )
        paid = normalize(adapter, razorpay_payload("order.paid", tenant_id=TENANT, plan_id=PLAN))

        assert captured.event_type == PaymentEventType.PAYMENT_CAPTURED
        assert captured.idempotency_key == paid.idempotency_key

    def test_order_notes_win_over_payment_notes(self):
        payload = razorpay_payload("order.paid", tenant_id=TENANT, plan_id=PLAN)
        other_tenant = str(uuid.uuid4())
        payload["payload"]["payment"]["entity"]["notes"] = {"tenant_id": other_tenant}

        event = normalize(RazorpayAdapter(), payload)

        assert event.tenant_id == TENANT

    def test_camel_case_note_keys_are_accepted(self):
        payload = razorpay_payload("order.paid", tenant_id=None, plan_id=None)
        payload["payload"]["order"]["entity"]["notes"] = {
            "userId": str(TENANT),
            "planId": str(PLAN),
        }

        event = normalize(RazorpayAdapter(), payload)

        assert event.tenant_id == TENANT
        assert event.plan_id == PLAN

    def test_missing_plan_is_unattributable(self):
        payload = razorpay_payload("order.paid", tenant_id=TENANT, plan_id=None)
        with pytest.raises(UnattributableEventError):
            normalize(RazorpayAdapter(), payload)

    def test_malformed_tenant_is_unattributable(self):
        payload = razorpay_payload("order.paid", tenant_id=None, plan_id=PLAN)
        payload["payload"]["order"]["entity"]["notes"]["tenant_id"] = "not-a-uuid"
        with pytest.raises(UnattributableEventError):
            normalize(RazorpayAdapter(), payload)

    def test_failed_payment_needs_no_plan(self):
        payload = razorpay_payload("payment.failed", tenant_id=TENANT, plan_id=None)
        event = normalize(RazorpayAdapter(), payload)
        assert event.event_type == PaymentEventType.PAYMENT_FAILED
        assert event.plan_id is None

    def test_unknown_event_is_ignored(self):
        payload = razorpay_payload("refund.created", tenant_id=TENANT, plan_id=PLAN)
        assert normalize(RazorpayAdapter(), payload) is None

    def test_digest_is_over_raw_body(self):
        payload = razorpay_payload("order.paid", tenant_id=TENANT, plan_id=PLAN)
        body = to_body(payload)
        event = RazorpayAdapter().normalize(payload, body)
        assert event.raw_payload_digest == payload_digest(body)


class TestRazorpaySignatures:
    def test_webhook_signature(self):
        adapter = RazorpayAdapter(webhook_secret="whsec")
        body = b'{"event": "order.paid"}'

        assert adapter.verify_signature(body, sign_razorpay(body, "whsec")) is True
        assert adapter.verify_signature(body, sign_razorpay(body, "other")) is False
        assert adapter.verify_signature(body + b" ", sign_razorpay(body, "whsec")) is False
        assert adapter.verify_signature(body, None) is False

    def test_payment_signature(self):
        signature = hmac_sha256_hex("key_secret", b"order_1|pay_1")

        assert verify_payment_signature("order_1", "pay_1", signature, "key_secret") is True
        assert verify_payment_signature("order_1", "pay_2", signature, "key_secret") is False
        assert verify_payment_signature("order_1", "pay_1", "", "key_secret") is False


class TestStripeNormalize:
    @pytest.mark.parametrize("envelope", [True, False])
    def test_checkout_completed(self, envelope):
        payload = stripe_checkout_payload(tenant_id=TENANT, plan_id=PLAN, envelope=envelope)

        event = normalize(StripeAdapter(), payload)

        assert event.event_type == PaymentEventType.ORDER_PAID
        assert event.provider_order_id == "cs_test_1"
        assert event.provider_payment_id == "sub_test_1"
        assert event.subscription_id == "sub_test_1"
        assert event.customer_id == "cus_test_1"
        assert event.tenant_id == TENANT

    def test_free_verification_needs_no_plan(self):
        payload = stripe_checkout_payload(tenant_id=TENANT, plan_id=None, free_verification=True)

        event = normalize(StripeAdapter(), payload)

        assert event.event_type == PaymentEventType.TRIAL_VERIFIED
        assert event.provider_payment_id == "seti_test_1"
        assert event.plan_id is None

    def test_unpaid_checkout_is_ignored(self):
        payload = stripe_checkout_payload(tenant_id=TENANT, plan_id=PLAN)
        payload["data"]["object"]["payment_status"] = "unpaid"
        assert normalize(StripeAdapter(), payload) is None

    def test_client_reference_id_names_the_tenant(self):
        payload = stripe_checkout_payload(tenant_id=None, plan_id=PLAN)
        payload["data"]["object"]["client_reference_id"] = str(TENANT)
        assert normalize(StripeAdapter(), payload).tenant_id == TENANT

    def test_checkout_without_tenant_is_unattributable(self):
        payload = stripe_checkout_payload(tenant_id=None, plan_id=PLAN)
        with pytest.raises(UnattributableEventError):
            normalize(StripeAdapter(), payload)

    def test_renewal_invoice(self):
        payload = stripe_invoice_payload(
            "invoice.payment_succeeded", tenant_id=TENANT, plan_id=PLAN, invoice_id="in_7"
        )

        event = normalize(StripeAdapter(), payload)

        assert event.event_type == PaymentEventType.PAYMENT_CAPTURED
        assert event.provider_order_id == "sub_test_1"
        assert event.provider_payment_id == "in_7"

    def test_first_invoice_is_left_to_checkout(self):
        payload = stripe_invoice_payload(
            "invoice.payment_succeeded",
            tenant_id=TENANT,
            plan_id=PLAN,
            billing_reason="subscription_create",
        )
        assert normalize(StripeAdapter(), payload) is None

    def test_each_failed_attempt_has_its_own_key(self):
        adapter = StripeAdapter()
        first = normalize(
            adapter,
            stripe_invoice_payload(
                "invoice.payment_failed", tenant_id=TENANT, plan_id=None, attempt_count=1
            ),
        )
        second = normalize(
            adapter,
            stripe_invoice_payload(
                "invoice.payment_failed", tenant_id=TENANT, plan_id=None, attempt_count=2
            ),
        )

        assert first.event_type == PaymentEventType.PAYMENT_FAILED
        assert first.provider_payment_id == "in_test_1:attempt1"
        assert first.idempotency_key != second.idempotency_key

    def test_invoice_metadata_from_newer_api_shape(self):
        payload = stripe_invoice_payload(
            "invoice.payment_succeeded", tenant_id=None, plan_id=None
        )
        invoice = payload["data"]["object"]
        invoice.pop("subscription")
        invoice["parent"] = {
            "subscription_details": {
                "subscription": "sub_new",
                "metadata": {"tenant_id": str(TENANT), "plan_id": str(PLAN)},
            }
        }

        event = normalize(StripeAdapter(), payload)

        assert event.subscription_id == "sub_new"
        assert event.tenant_id == TENANT
        assert event.plan_id == PLAN

    def test_checkout_without_session_id_is_unattributable(self):
        payload = stripe_checkout_payload(tenant_id=TENANT, plan_id=PLAN)
        payload["data"]["object"].pop("id")

        with pytest.raises(UnattributableEventError) as exc_info:
            normalize(StripeAdapter(), payload)

        assert "checkout.session" in exc_info.value.message

    def test_subscription_deleted(self):
        payload = stripe_subscription_deleted_payload(tenant_id=TENANT, subscription_id="sub_9")

        event = normalize(StripeAdapter(), payload)

        assert event.event_type == PaymentEventType.SUBSCRIPTION_CANCELED
        assert event.provider_order_id == "sub_9"
        assert event.subscription_id == "sub_9"
        assert event.plan_id is None
        assert event.idempotency_key == "stripe:sub_9:deleted"

    def test_subscription_deleted_without_tenant_is_unattributable(self):
        payload = stripe_subscription_deleted_payload(tenant_id=None)
        with pytest.raises(UnattributableEventError):
            normalize(StripeAdapter(), payload)

    def test_subscription_deleted_without_id_is_unattributable(self):
        payload = stripe_subscription_deleted_payload(tenant_id=TENANT, subscription_id=None)
        with pytest.raises(UnattributableEventError):
            normalize(StripeAdapter(), payload)

    def test_unhandled_type_is_ignored(self):
        assert normalize(StripeAdapter(), {"type": "customer.created", "data": {"object": {}}}) is None


class TestStripeSignature:
    def test_valid_and_invalid_signatures(self):
        adapter = StripeAdapter(webhook_secret="whsec_unit", tolerance_seconds=300)
        body = to_body(stripe_checkout_payload(tenant_id=TENANT, plan_id=PLAN))

        assert adapter.verify_signature(body, sign_stripe(body, "whsec_unit")) is True
        assert adapter.verify_signature(body, sign_stripe(body, "whsec_other")) is False
        assert adapter.verify_signature(body, "garbage") is False
        assert adapter.verify_signature(body, None) is False

    def test_stale_timestamp_is_rejected(self):
        adapter = StripeAdapter(webhook_secret="whsec_unit", tolerance_seconds=300)
        body = to_body(stripe_checkout_payload(tenant_id=TENANT, plan_id=PLAN))
        stale = sign_stripe(body, "whsec_unit", timestamp=int(time.time()) - 3600)

        assert adapter.verify_signature(body, stale) is False
