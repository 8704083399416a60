"""Payment provider webhook endpoints.

Response codes tell the provider whether to redeliver:

    200  processed, duplicate, ignored or permanently dropped; do not retry
    400  payload names no tenant or plan; nothing was recorded
    401  signature missing or invalid
    503  transient failure, nothing was committed; retry
"""

from typing import Optional

from fastapi import Depends, Header, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from tollgate import schemas
from tollgate.api import deps
from tollgate.api.router import TrailingSlashRouter
from tollgate.core.config import settings
from tollgate.core.shared_models import PaymentProvider, WebhookOutcome
from tollgate.platform.billing.lifecycle import SubscriptionLifecycleService
from tollgate.platform.billing.webhook_handler import PaymentWebhookProcessor

router = TrailingSlashRouter()


def _response(result: schemas.WebhookResult) -> JSONResponse:
    status_code = 503 if result.outcome == WebhookOutcome.FAILED else 200
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


def _disabled(provider: PaymentProvider) -> JSONResponse:
    return _response(
        schemas.WebhookResult(
            outcome=WebhookOutcome.IGNORED, detail=f"{provider.value} is not enabled"
        )
    )


@router.post("/stripe", include_in_schema=False)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
    db: AsyncSession = Depends(deps.get_db),
    lifecycle: SubscriptionLifecycleService = Depends(deps.get_lifecycle),
) -> JSONResponse:
    """Handle Stripe checkout and invoice events."""
    if not settings.STRIPE_ENABLED:
        return _disabled(PaymentProvider.STRIPE)

    # Signature is computed over the exact bytes received
    payload = await request.body()
    processor = PaymentWebhookProcessor(db, lifecycle=lifecycle)
    result = await processor.handle(PaymentProvider.STRIPE, payload, stripe_signature)
    return _response(result)


@router.post("/razorpay", include_in_schema=False)
async def razorpay_webhook(
    request: Request,
    razorpay_signature: Optional[str] = Header(None, alias="x-razorpay-signature"),
    db: AsyncSession = Depends(deps.get_db),
    lifecycle: SubscriptionLifecycleService = Depends(deps.get_lifecycle),
) -> JSONResponse:
    """Handle Razorpay payment and order events."""
    if not settings.RAZORPAY_ENABLED:
        return _disabled(PaymentProvider.RAZORPAY)

    payload = await request.body()
    processor = PaymentWebhookProcessor(db, lifecycle=lifecycle)
    result = await processor.handle(PaymentProvider.RAZORPAY, payload, razorpay_signature)
    return _response(result)
