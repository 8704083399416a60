"""Subscription lifecycle orchestration.

Single writer of subscription state. Every mutation for a tenant runs under
that tenant's lock and inside one transaction; notifications are sent after
the commit.

State machine::

    (none) --free trial--> trialing --pay--> active --payment failed--> past_due
       |                      |                 |                          |
       +-------pay------------+-----------------+--------renewal-----------+--> active
    trialing/active/past_due --cancel (user or provider)--> canceled
    trialing/active/past_due --end_date passed--> expired
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tollgate import crud, schemas
from tollgate.core.datetime_utils import utc_now_naive
from tollgate.core.exceptions import (
    ExternalServiceError,
    InvalidStateError,
    PlanNotFoundException,
    SubscriptionConflictException,
    SubscriptionNotFoundException,
)
from tollgate.core.logging import ContextualLogger
from tollgate.core.logging import logger as default_logger
from tollgate.core.shared_models import (
    LIVE_STATUSES,
    PaymentEventType,
    PaymentProvider,
    PlanType,
    SubscriptionStatus,
    WebhookOutcome,
)
from tollgate.core.tenant_locks import TenantLockRegistry, acquire_advisory_lock, tenant_locks
from tollgate.db.unit_of_work import UnitOfWork
from tollgate.models import Subscription
from tollgate.platform.billing.idempotency import IdempotencyGate, idempotency_gate
from tollgate.platform.billing.notifier import LoggingNotifier, SubscriptionNotifier
from tollgate.platform.billing.plan_logic import (
    compute_end_date,
    cycle_length,
    draft_paid_subscription,
    is_paid_plan,
)
from tollgate.platform.billing.providers.base import payload_digest

PendingNotification = Callable[[], Awaitable[None]]


@dataclass
class _Applied:
    """What the orchestration of one payment event did."""

    outcome: WebhookOutcome
    subscription: Optional[Subscription] = None
    detail: Optional[str] = None
    notifications: list[PendingNotification] = field(default_factory=list)


class SubscriptionLifecycleService:
    """Applies trials, payments, cancellations and expiry to subscriptions."""

    def __init__(
        self,
        notifier: Optional[SubscriptionNotifier] = None,
        locks: Optional[TenantLockRegistry] = None,
        gate: Optional[IdempotencyGate] = None,
        stripe_client=None,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the service.

        Args:
            notifier: Receives post-commit notifications
            locks: Per-tenant lock registry
            gate: Idempotency gate for payment events
            stripe_client: Client used to cancel Stripe subscriptions; None disables it
            logger: Optional contextual logger for structured logging
        """
        self.notifier = notifier or LoggingNotifier()
        self.locks = locks or tenant_locks
        self.gate = gate or idempotency_gate
        self.stripe_client = stripe_client
        self.logger = logger or default_logger.with_context(component="subscription_lifecycle")

    # Reads

    async def get_active_subscription(
        self, db: AsyncSession, tenant_id: UUID
    ) -> Optional[schemas.Subscription]:
        """The tenant's trialing, active or past_due subscription, if any."""
        subscription = await crud.subscription.get_live_by_tenant(db, tenant_id=tenant_id)
        if subscription is None:
            return None
        return schemas.Subscription.model_validate(subscription, from_attributes=True)

    async def get_subscription_history(
        self, db: AsyncSession, tenant_id: UUID
    ) -> list[schemas.Subscription]:
        """All of the tenant's subscriptions, newest first."""
        subscriptions = await crud.subscription.get_history(db, tenant_id=tenant_id)
        return [
            schemas.Subscription.model_validate(sub, from_attributes=True)
            for sub in subscriptions
        ]

    async def get_subscription_stats(self, db: AsyncSession) -> schemas.SubscriptionStats:
        """Counts by status and plan type, and paid revenue."""
        return await crud.subscription.get_stats(db)

    # Free trial

    async def create_free_trial(
        self,
        db: AsyncSession,
        tenant_id: UUID,
        *,
        provider: Optional[PaymentProvider] = None,
        provider_customer_id: Optional[str] = None,
    ) -> schemas.Subscription:
        """Start the free trial, or return the one that is already running.

        Raises:
        ------
            SubscriptionConflictException: If the tenant has a live paid subscription.

        """
        async with self.locks.hold(tenant_id):
            try:
                await acquire_advisory_lock(db, tenant_id)
                applied = await self._start_free_trial(
                    db,
                    tenant_id,
                    provider=provider,
                    provider_customer_id=provider_customer_id,
                )
                await db.commit()
            except IntegrityError:
                # Another process inserted a live record between our read and insert
                await db.rollback()
                existing = await crud.subscription.get_live_by_tenant(db, tenant_id=tenant_id)
                if existing is not None and _is_running_free_trial(existing):
                    return schemas.Subscription.model_validate(existing, from_attributes=True)
                raise SubscriptionConflictException()
            except Exception:
                await db.rollback()
                raise

        if applied.outcome == WebhookOutcome.IGNORED:
            raise SubscriptionConflictException(applied.detail)

        await self._send(applied.notifications)
        return schemas.Subscription.model_validate(applied.subscription, from_attributes=True)

    async def assign_free_plan_to_new_account(
        self, db: AsyncSession, tenant_id: UUID
    ) -> schemas.Subscription:
        """Give a newly registered tenant the free trial."""
        return await self.create_free_trial(db, tenant_id)

    async def _start_free_trial(
        self,
        db: AsyncSession,
        tenant_id: UUID,
        *,
        provider: Optional[PaymentProvider] = None,
        provider_customer_id: Optional[str] = None,
        provider_order_id: Optional[str] = None,
        provider_payment_id: Optional[str] = None,
    ) -> _Applied:
        """Insert a free trial within the caller's transaction and tenant lock."""
        existing = await crud.subscription.get_live_by_tenant(db, tenant_id=tenant_id)
        if existing is not None:
            if _is_running_free_trial(existing):
                return _Applied(outcome=WebhookOutcome.PROCESSED, subscription=existing)
            return _Applied(
                outcome=WebhookOutcome.IGNORED,
                subscription=existing,
                detail="Tenant already has a live paid subscription",
            )

        free_plan = await self._free_plan(db)
        now = utc_now_naive()
        end_date = compute_end_date(PlanType.FREE, now)
        subscription = await crud.subscription.create(
            db,
            obj_in=schemas.SubscriptionCreate(
                tenant_id=tenant_id,
                plan_id=free_plan.id if free_plan else None,
                plan_type=PlanType.FREE,
                status=SubscriptionStatus.TRIALING,
                start_date=now,
                end_date=end_date,
                trial_end_date=end_date,
                is_auto_renew=False,
                currency=free_plan.currency if free_plan else "inr",
                billing_cycle=PlanType.FREE,
                provider=provider,
                provider_customer_id=provider_customer_id,
                provider_order_id=provider_order_id,
                provider_payment_id=provider_payment_id,
            ),
            uow=UnitOfWork(db),
        )
        self.logger.with_context(tenant_id=str(tenant_id)).info(
            f"Started free trial until {end_date.isoformat()}"
        )
        snapshot = schemas.Subscription.model_validate(subscription, from_attributes=True)
        return _Applied(
            outcome=WebhookOutcome.PROCESSED,
            subscription=subscription,
            notifications=[lambda: self.notifier.subscription_activated(snapshot)],
        )

    async def _free_plan(self, db: AsyncSession):
        for plan in await crud.plan.get_catalog(db, active_only=True):
            if plan.plan_type == PlanType.FREE.value:
                return plan
        return None

    # Payments

    async def create_paid_subscription_from_plan(
        self,
        db: AsyncSession,
        *,
        tenant_id: UUID,
        plan_id: UUID,
        provider: PaymentProvider,
        provider_order_id: str,
        provider_payment_id: str,
    ) -> schemas.WebhookResult:
        """Activate a paid plan for a confirmed payment, at most once per order and payment.

        Goes through the idempotency gate like a webhook delivery would, so a
        client-side confirmation and the provider's webhook for the same
        payment converge on one subscription.
        """
        digest_source = f"{provider.value}:{provider_order_id}:{provider_payment_id}"
        event_fields = dict(
            event_type=PaymentEventType.ORDER_PAID,
            provider_event_type="client.verified",
            provider_order_id=provider_order_id,
            provider_payment_id=provider_payment_id,
            tenant_id=tenant_id,
            plan_id=plan_id,
            raw_payload_digest=payload_digest(digest_source.encode()),
        )
        if provider == PaymentProvider.STRIPE:
            event = schemas.StripePaymentEvent(**event_fields)
        else:
            event = schemas.RazorpayPaymentEvent(**event_fields)
        return await self.apply_payment_event(db, event)

    async def apply_payment_event(
        self,
        db: AsyncSession,
        event: schemas.PaymentEvent,
        log: Optional[ContextualLogger] = None,
    ) -> schemas.WebhookResult:
        """Claim the event key and apply the event, in one transaction.

        A delivery that loses the claim returns the stored outcome and changes
        nothing.
        """
        log = (log or self.logger).with_context(
            tenant_id=str(event.tenant_id), idempotency_key=event.idempotency_key
        )

        async with self.locks.hold(event.tenant_id):
            try:
                await acquire_advisory_lock(db, event.tenant_id)
                claim = await self.gate.claim(db, event)
                if not claim.won:
                    log.info(f"Duplicate delivery, first outcome was {claim.record.outcome}")
                    return schemas.WebhookResult(
                        outcome=WebhookOutcome.DEDUPLICATED,
                        idempotency_key=event.idempotency_key,
                        subscription_id=claim.record.subscription_id,
                        detail=claim.record.outcome,
                    )

                applied = await self._orchestrate(db, event, log)
                subscription_id = applied.subscription.id if applied.subscription else None
                self.gate.complete(claim, applied.outcome, subscription_id, applied.detail)
                await UnitOfWork(db).commit()
            except Exception:
                await db.rollback()
                raise

        await self._send(applied.notifications)
        return schemas.WebhookResult(
            outcome=applied.outcome,
            idempotency_key=event.idempotency_key,
            subscription_id=subscription_id,
            detail=applied.detail,
        )

    async def _orchestrate(
        self, db: AsyncSession, event: schemas.PaymentEvent, log: ContextualLogger
    ) -> _Applied:
        if event.event_type == PaymentEventType.TRIAL_VERIFIED:
            return await self._start_free_trial(
                db,
                event.tenant_id,
                provider=event.provider,
                provider_customer_id=getattr(event, "customer_id", None),
                provider_order_id=event.provider_order_id,
                provider_payment_id=event.provider_payment_id,
            )
        if event.event_type == PaymentEventType.PAYMENT_FAILED:
            return await self._mark_past_due(db, event, log)
        if event.event_type == PaymentEventType.SUBSCRIPTION_CANCELED:
            return await self._cancel_from_provider(db, event, log)

        try:
            return await self._activate_paid(db, event, log)
        except (PlanNotFoundException, InvalidStateError) as e:
            # Permanent: redelivery cannot fix it, so the key is burned with this outcome
            log.error(f"Dropping payment event: {e}")
            return _Applied(outcome=WebhookOutcome.DROPPED, detail=str(e))

    async def _activate_paid(
        self, db: AsyncSession, event: schemas.PaymentEvent, log: ContextualLogger
    ) -> _Applied:
        existing = await crud.subscription.get_by_provider_payment(
            db,
            provider=event.provider.value,
            provider_order_id=event.provider_order_id,
            provider_payment_id=event.provider_payment_id,
        )
        if existing is not None:
            return _Applied(
                outcome=WebhookOutcome.PROCESSED,
                subscription=existing,
                detail="Subscription already exists for this payment",
            )

        subscription_ref = getattr(event, "subscription_id", None)
        if event.event_type == PaymentEventType.PAYMENT_CAPTURED and subscription_ref:
            renewed = await self._renew(db, event, subscription_ref, log)
            if renewed is not None:
                return renewed

        return await self._insert_paid_subscription(db, event, log)

    async def _insert_paid_subscription(
        self, db: AsyncSession, event: schemas.PaymentEvent, log: ContextualLogger
    ) -> _Applied:
        plan = await crud.plan.get(db, event.plan_id)
        if plan is None or not plan.is_active:
            raise PlanNotFoundException(f"Plan {event.plan_id} not found")
        if not is_paid_plan(plan.plan_type):
            raise InvalidStateError(f"Plan {plan.name} is not a paid plan")

        now = utc_now_naive()
        draft = draft_paid_subscription(
            tenant_id=event.tenant_id,
            plan_id=plan.id,
            plan_type=plan.plan_type,
            amount=plan.amount,
            currency=plan.currency,
            now=now,
        )

        uow = UnitOfWork(db)
        superseded = await crud.subscription.supersede_live(
            db, tenant_id=event.tenant_id, canceled_at=now, uow=uow
        )
        subscription = await crud.subscription.create(
            db,
            obj_in=schemas.SubscriptionCreate(
                tenant_id=draft.tenant_id,
                plan_id=draft.plan_id,
                plan_type=draft.plan_type,
                status=draft.status,
                start_date=draft.start_date,
                end_date=draft.end_date,
                trial_end_date=draft.trial_end_date,
                is_auto_renew=event.provider == PaymentProvider.STRIPE,
                amount=draft.amount,
                currency=draft.currency,
                billing_cycle=draft.plan_type,
                provider=event.provider,
                provider_customer_id=getattr(event, "customer_id", None),
                provider_subscription_id=getattr(event, "subscription_id", None),
                provider_order_id=event.provider_order_id,
                provider_payment_id=event.provider_payment_id,
                extra_metadata={"email": event.email} if event.email else {},
            ),
            uow=uow,
        )
        log.info(
            f"Activated plan {plan.name} until {draft.end_date.isoformat()}"
            f" (superseded {superseded})"
        )
        snapshot = schemas.Subscription.model_validate(subscription, from_attributes=True)
        return _Applied(
            outcome=WebhookOutcome.PROCESSED,
            subscription=subscription,
            notifications=[lambda: self.notifier.subscription_activated(snapshot)],
        )

    async def _renew(
        self,
        db: AsyncSession,
        event: schemas.PaymentEvent,
        subscription_ref: str,
        log: ContextualLogger,
    ) -> Optional[_Applied]:
        """Extend the live subscription a recurring payment belongs to."""
        live = await crud.subscription.get_live_by_provider_reference(
            db,
            tenant_id=event.tenant_id,
            provider=event.provider.value,
            reference=subscription_ref,
        )
        if live is None:
            return None

        now = utc_now_naive()
        period_start = max(live.end_date or now, now)
        new_end = period_start + cycle_length(live.billing_cycle)
        updated = await crud.subscription.transition(
            db,
            subscription_id=live.id,
            to_status=SubscriptionStatus.ACTIVE,
            from_statuses=LIVE_STATUSES,
            values={"end_date": new_end, "provider_payment_id": event.provider_payment_id},
            uow=UnitOfWork(db),
        )
        if not updated:
            return None
        await db.refresh(live)
        log.info(f"Renewed subscription {live.id} until {new_end.isoformat()}")
        return _Applied(outcome=WebhookOutcome.PROCESSED, subscription=live)

    async def _mark_past_due(
        self, db: AsyncSession, event: schemas.PaymentEvent, log: ContextualLogger
    ) -> _Applied:
        live = await crud.subscription.get_live_by_provider_reference(
            db,
            tenant_id=event.tenant_id,
            provider=event.provider.value,
            reference=event.provider_order_id,
        )
        if live is None:
            return _Applied(
                outcome=WebhookOutcome.IGNORED,
                detail="No live subscription for this failed payment",
            )

        updated = await crud.subscription.transition(
            db,
            subscription_id=live.id,
            to_status=SubscriptionStatus.PAST_DUE,
            from_statuses=(SubscriptionStatus.ACTIVE,),
            uow=UnitOfWork(db),
        )
        if not updated:
            return _Applied(
                outcome=WebhookOutcome.IGNORED,
                subscription=live,
                detail=f"Subscription is {live.status}, not active",
            )
        await db.refresh(live)
        log.warning(f"Subscription {live.id} is past due")
        snapshot = schemas.Subscription.model_validate(live, from_attributes=True)
        return _Applied(
            outcome=WebhookOutcome.PROCESSED,
            subscription=live,
            notifications=[lambda: self.notifier.payment_failed(snapshot)],
        )

    async def _cancel_from_provider(
        self, db: AsyncSession, event: schemas.PaymentEvent, log: ContextualLogger
    ) -> _Applied:
        """Mirror a cancellation that happened at the provider."""
        live = await crud.subscription.get_live_by_provider_reference(
            db,
            tenant_id=event.tenant_id,
            provider=event.provider.value,
            reference=event.provider_order_id,
        )
        if live is None:
            return _Applied(
                outcome=WebhookOutcome.IGNORED,
                detail="No live subscription for this provider subscription",
            )

        updated = await crud.subscription.transition(
            db,
            subscription_id=live.id,
            to_status=SubscriptionStatus.CANCELED,
            from_statuses=LIVE_STATUSES,
            values={"is_auto_renew": False, "canceled_at": utc_now_naive()},
            uow=UnitOfWork(db),
        )
        if not updated:
            return _Applied(
                outcome=WebhookOutcome.IGNORED,
                subscription=live,
                detail=f"Subscription is already {live.status}",
            )
        await db.refresh(live)
        log.info(f"Subscription {live.id} canceled at {event.provider.value}")
        snapshot = schemas.Subscription.model_validate(live, from_attributes=True)
        return _Applied(
            outcome=WebhookOutcome.PROCESSED,
            subscription=live,
            notifications=[lambda: self.notifier.subscription_canceled(snapshot)],
        )

    # Cancellation and expiry

    async def cancel_user_subscription(
        self,
        db: AsyncSession,
        subscription_id: UUID,
        *,
        tenant_id: Optional[UUID] = None,
    ) -> schemas.Subscription:
        """Cancel a live subscription and turn off auto-renew.

        Args:
            db: Database session
            subscription_id: Subscription to cancel
            tenant_id: When given, the subscription must belong to this tenant

        Raises:
        ------
            SubscriptionNotFoundException: If it does not exist (for this tenant).
            InvalidStateError: If it is already canceled or expired.

        """
        subscription = await crud.subscription.get(db, subscription_id)
        if subscription is None or (tenant_id is not None and subscription.tenant_id != tenant_id):
            raise SubscriptionNotFoundException(f"Subscription {subscription_id} not found")

        async with self.locks.hold(subscription.tenant_id):
            try:
                await acquire_advisory_lock(db, subscription.tenant_id)
                updated = await crud.subscription.transition(
                    db,
                    subscription_id=subscription.id,
                    to_status=SubscriptionStatus.CANCELED,
                    from_statuses=LIVE_STATUSES,
                    values={"is_auto_renew": False, "canceled_at": utc_now_naive()},
                    uow=UnitOfWork(db),
                )
                if not updated:
                    await db.rollback()
                    await db.refresh(subscription)
                    raise InvalidStateError(
                        f"Subscription {subscription_id} is already {subscription.status}"
                    )
                await UnitOfWork(db).commit()
            except InvalidStateError:
                raise
            except Exception:
                await db.rollback()
                raise

        await db.refresh(subscription)
        snapshot = schemas.Subscription.model_validate(subscription, from_attributes=True)
        self.logger.with_context(tenant_id=str(snapshot.tenant_id)).info(
            f"Canceled subscription {snapshot.id}"
        )
        await self._cancel_at_provider(snapshot)
        await self._send([lambda: self.notifier.subscription_canceled(snapshot)])
        return snapshot

    async def _cancel_at_provider(self, subscription: schemas.Subscription) -> None:
        """Stop provider-side renewals; the local cancellation stands either way."""
        if (
            self.stripe_client is None
            or subscription.provider != PaymentProvider.STRIPE
            or not subscription.provider_subscription_id
        ):
            return
        try:
            await self.stripe_client.cancel_subscription(subscription.provider_subscription_id)
        except ExternalServiceError as e:
            self.logger.with_context(tenant_id=str(subscription.tenant_id)).error(
                f"Failed to cancel Stripe subscription {subscription.provider_subscription_id}: {e}"
            )

    async def process_expired_subscriptions(
        self, db: AsyncSession, now: Optional[datetime] = None
    ) -> int:
        """Expire every live subscription whose end date has passed.

        Each row is moved with a compare-and-set on status and end date, so a
        concurrent payment that renewed or replaced the record wins, and a
        second sweep finds nothing left to do.

        Returns:
        -------
            int: Number of subscriptions expired by this run.

        """
        now = now or utc_now_naive()
        due = await crud.subscription.get_due_for_expiry(db, now=now)
        # End the read transaction before taking tenant locks
        await db.commit()

        expired = 0
        for subscription_id, tenant_id in due:
            async with self.locks.hold(tenant_id):
                try:
                    await acquire_advisory_lock(db, tenant_id)
                    updated = await crud.subscription.transition(
                        db,
                        subscription_id=subscription_id,
                        to_status=SubscriptionStatus.EXPIRED,
                        from_statuses=LIVE_STATUSES,
                        values={"is_auto_renew": False},
                        now=now,
                        uow=UnitOfWork(db),
                    )
                    await UnitOfWork(db).commit()
                except Exception:
                    await db.rollback()
                    raise
            if updated:
                expired += 1
                self.logger.with_context(tenant_id=str(tenant_id)).info(
                    f"Expired subscription {subscription_id}"
                )

        if expired:
            self.logger.info(f"Expiry sweep expired {expired} subscription(s)")
        return expired

    async def _send(self, notifications: list[PendingNotification]) -> None:
        """Run post-commit notifications; a failing notifier never undoes the commit."""
        for notify in notifications:
            try:
                await notify()
            except Exception as e:
                self.logger.error(f"Notification failed: {e}", exc_info=True)


def _is_running_free_trial(subscription: Subscription) -> bool:
    return (
        subscription.plan_type == PlanType.FREE.value
        and subscription.status == SubscriptionStatus.TRIALING.value
    )


subscription_lifecycle = SubscriptionLifecycleService()
