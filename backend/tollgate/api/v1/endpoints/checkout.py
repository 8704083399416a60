"""API endpoints for starting and confirming checkouts."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tollgate import schemas
from tollgate.api import deps
from tollgate.api.context import ApiContext
from tollgate.api.router import TrailingSlashRouter
from tollgate.platform.billing.checkout import CheckoutService

router = TrailingSlashRouter()


@router.post("/stripe", response_model=schemas.StripeCheckoutSession)
async def create_stripe_checkout(
    request: schemas.CheckoutRequest,
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
    checkout: CheckoutService = Depends(deps.get_checkout_service),
) -> schemas.StripeCheckoutSession:
    """Create a Stripe checkout session for a paid plan.

    The plan is activated by the ``checkout.session.completed`` webhook.
    """
    return await checkout.create_stripe_checkout(db, ctx.tenant_id, request)


@router.post("/stripe/free-verification", response_model=schemas.StripeCheckoutSession)
async def create_free_verification(
    request: schemas.FreeVerificationRequest,
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
    checkout: CheckoutService = Depends(deps.get_checkout_service),
) -> schemas.StripeCheckoutSession:
    """Create the card-verification session that starts the free trial on completion."""
    return await checkout.create_free_verification(db, ctx.tenant_id, request)


@router.post("/razorpay", response_model=schemas.RazorpayOrder)
async def create_razorpay_order(
    request: schemas.CheckoutRequest,
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
    checkout: CheckoutService = Depends(deps.get_checkout_service),
) -> schemas.RazorpayOrder:
    """Create a Razorpay order for a paid plan."""
    return await checkout.create_razorpay_order(db, ctx.tenant_id, request)


@router.post("/razorpay/verify", response_model=schemas.WebhookResult)
async def verify_razorpay_payment(
    request: schemas.RazorpayVerifyRequest,
    db: AsyncSession = Depends(deps.get_db),
    ctx: ApiContext = Depends(deps.get_context),
    checkout: CheckoutService = Depends(deps.get_checkout_service),
) -> schemas.WebhookResult:
    """Confirm a Razorpay payment from the browser and activate the plan.

    Safe to call more than once, and safe to race the ``order.paid`` webhook.
    """
    result = await checkout.verify_razorpay_payment(db, ctx.tenant_id, request)
    ctx.logger.info(f"Razorpay payment verified: {result.outcome.value}")
    return result
