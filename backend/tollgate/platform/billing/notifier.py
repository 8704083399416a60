"""Downstream notifications and webhook observation hooks.

Notifications run only after the transaction that caused them has
committed, and only in the delivery that won the idempotency claim.
"""

from typing import Optional, Protocol

from tollgate import schemas
from tollgate.core.logging import ContextualLogger
from tollgate.core.logging import logger as default_logger


class SubscriptionNotifier(Protocol):
    """Receives subscription lifecycle notifications."""

    async def subscription_activated(self, subscription: schemas.Subscription) -> None:
        """A new trial or paid subscription became live."""
        ...

    async def subscription_canceled(self, subscription: schemas.Subscription) -> None:
        """A subscription was canceled by its tenant."""
        ...

    async def payment_failed(self, subscription: schemas.Subscription) -> None:
        """A renewal payment failed and the subscription is past due."""
        ...


class LoggingNotifier:
    """Notifier that records notifications in the log.

    Email and messaging delivery live outside this service; they subscribe to
    these log lines.
    """

    def __init__(self, logger: Optional[ContextualLogger] = None):
        """Initialize the notifier."""
        self.logger = logger or default_logger.with_context(component="notifier")

    def _log(self, kind: str, subscription: schemas.Subscription) -> None:
        self.logger.with_context(
            tenant_id=str(subscription.tenant_id),
            subscription_id=str(subscription.id),
            notification=kind,
        ).info(f"Notification {kind} for tenant {subscription.tenant_id}")

    async def subscription_activated(self, subscription: schemas.Subscription) -> None:
        self._log("subscription_activated", subscription)

    async def subscription_canceled(self, subscription: schemas.Subscription) -> None:
        self._log("subscription_canceled", subscription)

    async def payment_failed(self, subscription: schemas.Subscription) -> None:
        self._log("payment_failed", subscription)


class WebhookObserver(Protocol):
    """Sees every webhook delivery and its outcome, separate from control flow."""

    def observe(
        self, event: Optional[schemas.PaymentEvent], result: schemas.WebhookResult
    ) -> None:
        """Record one delivery."""
        ...


class LoggingObserver:
    """Observer that logs one structured line per delivery."""

    def __init__(self, logger: Optional[ContextualLogger] = None):
        """Initialize the observer."""
        self.logger = logger or default_logger.with_context(component="webhook_observer")

    def observe(
        self, event: Optional[schemas.PaymentEvent], result: schemas.WebhookResult
    ) -> None:
        """Log the delivery outcome."""
        dimensions = {"outcome": result.outcome.value}
        if event is not None:
            dimensions.update(
                provider=event.provider.value,
                event_type=event.event_type.value,
                tenant_id=str(event.tenant_id),
                idempotency_key=event.idempotency_key,
            )
        self.logger.with_context(**dimensions).info(
            f"Webhook {result.outcome.value}" + (f": {result.detail}" if result.detail else "")
        )
