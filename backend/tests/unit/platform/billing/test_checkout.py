"""Unit tests for the checkout service."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from tollgate import schemas
from tollgate.core.exceptions import (
    ExternalServiceError,
    InvalidStateError,
    NotFoundException,
    PlanNotFoundException,
    SubscriptionConflictException,
    WebhookSignatureError,
)
from tollgate.core.shared_models import PlanType, SubscriptionStatus, WebhookOutcome
from tollgate.core.ttl_store import InMemoryTTLStore
from tollgate.platform.billing.checkout import PENDING_ORDER_TTL_SECONDS, CheckoutService
from tollgate.platform.billing.providers.razorpay_adapter import hmac_sha256_hex
from tests.helpers.payloads import razorpay_event

KEY_SECRET = "rzp_unit_key_secret"


@pytest.fixture
def razorpay_client():
    client = MagicMock()
    client.key_id = "rzp_unit_key"
    client.key_secret = KEY_SECRET
    client.create_order = AsyncMock(
        side_effect=lambda **kwargs: {"id": "order_unit_1", "receipt": kwargs["receipt"]}
    )
    return client


@pytest.fixture
def stripe_client():
    client = MagicMock()
    session = SimpleNamespace(id="cs_unit_1", url="https://checkout.stripe.test/cs_unit_1")
    client.create_plan_checkout_session = AsyncMock(return_value=session)
    client.create_free_verification_session = AsyncMock(return_value=session)
    return client


@pytest.fixture
def store():
    return InMemoryTTLStore()


@pytest.fixture
def checkout(store, stripe_client, razorpay_client, lifecycle):
    return CheckoutService(
        store,
        stripe_client=stripe_client,
        razorpay_client=razorpay_client,
        lifecycle=lifecycle,
    )


def verify_request(order_id="order_unit_1", payment_id="pay_unit_1", secret=KEY_SECRET):
    return schemas.RazorpayVerifyRequest(
        razorpay_order_id=order_id,
        razorpay_payment_id=payment_id,
        razorpay_signature=hmac_sha256_hex(secret, f"{order_id}|{payment_id}".encode()),
    )


class TestRazorpayOrder:
    async def test_order_is_created_and_remembered(
        self, db, admin, plans, checkout, razorpay_client, store
    ):
        monthly = plans[PlanType.MONTHLY]

        order = await checkout.create_razorpay_order(
            db, admin.id, schemas.CheckoutRequest(plan_id=monthly.id, email="owner@example.com")
        )

        assert order.order_id == "order_unit_1"
        assert order.amount == 59900
        assert order.currency == "INR"
        assert order.key_id == "rzp_unit_key"
        assert order.receipt.startswith(f"plan_{monthly.id}_")

        kwargs = razorpay_client.create_order.await_args.kwargs
        assert kwargs["notes"]["tenant_id"] == str(admin.id)
        assert kwargs["notes"]["plan_id"] == str(monthly.id)

        pending = await store.get("razorpay_order:order_unit_1")
        assert pending["tenant_id"] == str(admin.id)
        assert pending["amount"] == 59900
        assert PENDING_ORDER_TTL_SECONDS == 1800

    async def test_free_plan_cannot_be_ordered(self, db, admin, plans, checkout):
        with pytest.raises(InvalidStateError):
            await checkout.create_razorpay_order(
                db, admin.id, schemas.CheckoutRequest(plan_id=plans[PlanType.FREE].id)
            )

    async def test_unknown_plan(self, db, admin, checkout):
        with pytest.raises(PlanNotFoundException):
            await checkout.create_razorpay_order(
                db, admin.id, schemas.CheckoutRequest(plan_id="00000000-0000-0000-0000-000000000000")
            )

    async def test_disabled_razorpay(self, db, admin, plans, store, lifecycle):
        service = CheckoutService(store, lifecycle=lifecycle)
        with pytest.raises(ExternalServiceError):
            await service.create_razorpay_order(
                db, admin.id, schemas.CheckoutRequest(plan_id=plans[PlanType.WEEKLY].id)
            )


class TestRazorpayVerify:
    async def place_order(self, db, admin, plans, checkout):
        return await checkout.create_razorpay_order(
            db, admin.id, schemas.CheckoutRequest(plan_id=plans[PlanType.MONTHLY].id)
        )

    async def test_verify_activates_once(self, db, admin, plans, checkout, lifecycle):
        await self.place_order(db, admin, plans, checkout)

        first = await checkout.verify_razorpay_payment(db, admin.id, verify_request())
        second = await checkout.verify_razorpay_payment(db, admin.id, verify_request())

        assert first.outcome == WebhookOutcome.PROCESSED
        assert second.outcome == WebhookOutcome.DEDUPLICATED
        active = await lifecycle.get_active_subscription(db, admin.id)
        assert active.status == SubscriptionStatus.ACTIVE
        assert active.plan_type == PlanType.MONTHLY

    async def test_webhook_after_verify_is_deduplicated(
        self, db, admin, plans, checkout, lifecycle
    ):
        await self.place_order(db, admin, plans, checkout)
        await checkout.verify_razorpay_payment(db, admin.id, verify_request())

        result = await lifecycle.apply_payment_event(
            db,
            razorpay_event(
                tenant_id=admin.id,
                plan_id=plans[PlanType.MONTHLY].id,
                order_id="order_unit_1",
                payment_id="pay_unit_1",
            ),
        )

        assert result.outcome == WebhookOutcome.DEDUPLICATED

    async def test_bad_signature(self, db, admin, plans, checkout):
        await self.place_order(db, admin, plans, checkout)
        with pytest.raises(WebhookSignatureError):
            await checkout.verify_razorpay_payment(
                db, admin.id, verify_request(secret="wrong_secret")
            )

    async def test_other_tenants_order(self, db, admin, make_account, plans, checkout):
        await self.place_order(db, admin, plans, checkout)
        intruder = await make_account()

        with pytest.raises(NotFoundException):
            await checkout.verify_razorpay_payment(db, intruder.id, verify_request())

    async def test_unknown_order(self, db, admin, checkout):
        with pytest.raises(NotFoundException):
            await checkout.verify_razorpay_payment(
                db, admin.id, verify_request(order_id="order_missing")
            )


class TestStripeCheckout:
    async def test_checkout_carries_tenant_and_plan(
        self, db, admin, plans, checkout, stripe_client
    ):
        yearly = plans[PlanType.YEARLY]

        session = await checkout.create_stripe_checkout(
            db, admin.id, schemas.CheckoutRequest(plan_id=yearly.id)
        )

        assert session.session_id == "cs_unit_1"
        kwargs = stripe_client.create_plan_checkout_session.await_args.kwargs
        assert kwargs["metadata"]["tenant_id"] == str(admin.id)
        assert kwargs["metadata"]["plan_id"] == str(yearly.id)
        assert kwargs["plan_type"] == PlanType.YEARLY.value
        assert kwargs["success_url"].endswith("/billing/success")

    async def test_disabled_stripe(self, db, admin, plans, store, lifecycle):
        service = CheckoutService(store, lifecycle=lifecycle)
        with pytest.raises(ExternalServiceError):
            await service.create_stripe_checkout(
                db, admin.id, schemas.CheckoutRequest(plan_id=plans[PlanType.YEARLY].id)
            )

    async def test_free_verification(self, db, admin, checkout, stripe_client):
        session = await checkout.create_free_verification(
            db, admin.id, schemas.FreeVerificationRequest()
        )

        assert session.url.endswith("cs_unit_1")
        kwargs = stripe_client.create_free_verification_session.await_args.kwargs
        assert kwargs["metadata"]["tenant_id"] == str(admin.id)

    async def test_free_verification_conflicts_with_paid_plan(
        self, db, admin, plans, checkout, lifecycle
    ):
        await lifecycle.apply_payment_event(
            db, razorpay_event(tenant_id=admin.id, plan_id=plans[PlanType.MONTHLY].id)
        )
        with pytest.raises(SubscriptionConflictException):
            await checkout.create_free_verification(
                db, admin.id, schemas.FreeVerificationRequest()
            )
