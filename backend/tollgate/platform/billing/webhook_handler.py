"""Payment webhook processing: verify, normalize, apply, report."""

import json
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from tollgate import schemas
from tollgate.core.exceptions import UnattributableEventError, WebhookSignatureError
from tollgate.core.logging import ContextualLogger
from tollgate.core.logging import logger as default_logger
from tollgate.core.shared_models import PaymentProvider, WebhookOutcome
from tollgate.platform.billing.lifecycle import (
    SubscriptionLifecycleService,
    subscription_lifecycle,
)
from tollgate.platform.billing.notifier import LoggingObserver, WebhookObserver
from tollgate.platform.billing.providers import ProviderAdapter, get_adapter


class PaymentWebhookProcessor:
    """Handles one provider webhook delivery end to end.

    Outcomes:
        processed / deduplicated / ignored / dropped: acknowledged, the
            provider should not retry.
        failed: transient failure, nothing was committed and the provider
            should redeliver.

    Signature and attribution failures raise instead, since there is no
    event to record for them.
    """

    def __init__(
        self,
        db: AsyncSession,
        lifecycle: Optional[SubscriptionLifecycleService] = None,
        observer: Optional[WebhookObserver] = None,
        adapters: Optional[dict[PaymentProvider, ProviderAdapter]] = None,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the processor.

        Args:
            db: Database session for the delivery
            lifecycle: Lifecycle service that applies the event
            observer: Receives every delivery and its outcome
            adapters: Adapter per provider; built from settings when omitted
            logger: Optional contextual logger for structured logging
        """
        self.db = db
        self.lifecycle = lifecycle or subscription_lifecycle
        self.observer = observer or LoggingObserver()
        self.adapters = adapters or {}
        self.logger = logger or default_logger.with_context(component="payment_webhook")

    def _adapter(self, provider: PaymentProvider) -> ProviderAdapter:
        if provider not in self.adapters:
            self.adapters[provider] = get_adapter(provider)
        return self.adapters[provider]

    @staticmethod
    def _normalize(
        adapter: ProviderAdapter, payload: dict, raw_body: bytes
    ) -> Optional[schemas.PaymentEvent]:
        try:
            return adapter.normalize(payload, raw_body)
        except (KeyError, TypeError, AttributeError, ValidationError) as e:
            raise UnattributableEventError(
                adapter.provider.value, f"Malformed payload: {e}"
            ) from e

    async def handle(
        self, provider: PaymentProvider, raw_body: bytes, signature: Optional[str]
    ) -> schemas.WebhookResult:
        """Process one delivery.

        Raises:
        ------
            WebhookSignatureError: If the signature is missing or does not match.
            UnattributableEventError: If the payload is malformed or names no tenant or plan.

        """
        provider = PaymentProvider(provider)
        log = self.logger.with_context(provider=provider.value)
        adapter = self._adapter(provider)

        if not adapter.verify_signature(raw_body, signature):
            log.warning("Rejected webhook with invalid signature")
            raise WebhookSignatureError(provider.value)

        try:
            payload = json.loads(raw_body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise UnattributableEventError(provider.value, f"Malformed payload: {e}") from e
        if not isinstance(payload, dict):
            raise UnattributableEventError(provider.value, "Payload is not a JSON object")

        try:
            event = self._normalize(adapter, payload, raw_body)
        except UnattributableEventError as e:
            log.error(f"Unattributable webhook: {e.message}")
            self.observer.observe(
                None, schemas.WebhookResult(outcome=WebhookOutcome.DROPPED, detail=e.message)
            )
            raise

        if event is None:
            result = schemas.WebhookResult(
                outcome=WebhookOutcome.IGNORED,
                detail=f"Unhandled event type {payload.get('type') or payload.get('event')}",
            )
            self.observer.observe(None, result)
            return result

        log = log.with_context(
            event_type=event.event_type.value, idempotency_key=event.idempotency_key
        )
        try:
            result = await self.lifecycle.apply_payment_event(self.db, event, log)
        except Exception as e:
            # Nothing was committed; the provider retries the delivery
            log.error(f"Failed to apply payment event: {e}", exc_info=True)
            result = schemas.WebhookResult(
                outcome=WebhookOutcome.FAILED,
                idempotency_key=event.idempotency_key,
                detail=str(e),
            )

        self.observer.observe(event, result)
        return result
