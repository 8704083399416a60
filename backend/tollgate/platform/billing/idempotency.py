"""Webhook idempotency gate.

The claim on an event key is an INSERT against a unique column, made as the
first write of the transaction that also applies the event. Whoever commits
the insert owns the event; every other delivery of the same key gets the
stored outcome back.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tollgate import crud, schemas
from tollgate.core.datetime_utils import utc_now_naive
from tollgate.core.shared_models import WebhookOutcome
from tollgate.models import PaymentEventRecord


@dataclass
class Claim:
    """Result of claiming an event key."""

    won: bool
    record: PaymentEventRecord


class IdempotencyGate:
    """Insert-if-absent over payment event keys."""

    async def claim(self, db: AsyncSession, event: schemas.PaymentEvent) -> Claim:
        """Claim ``event.idempotency_key`` inside the current transaction.

        On a lost claim the transaction is rolled back and the winner's record
        is returned.
        """
        record = PaymentEventRecord(
            key=event.idempotency_key,
            provider=event.provider.value,
            event_type=event.event_type.value,
            tenant_id=event.tenant_id,
            raw_payload_digest=event.raw_payload_digest,
            first_seen_at=utc_now_naive(),
            outcome=WebhookOutcome.PROCESSED.value,
        )
        try:
            await crud.payment_event_record.insert(db, record=record)
        except IntegrityError:
            await db.rollback()
            prior = await crud.payment_event_record.get_by_key(db, key=event.idempotency_key)
            if prior is None:
                # Unique violation on a key that is gone again: the other claim rolled back
                raise
            return Claim(won=False, record=prior)
        return Claim(won=True, record=record)

    def complete(
        self,
        claim: Claim,
        outcome: WebhookOutcome,
        subscription_id=None,
        detail: Optional[str] = None,
    ) -> None:
        """Store the outcome on a won claim; committed with the rest of the transaction."""
        claim.record.outcome = outcome.value
        claim.record.subscription_id = subscription_id
        claim.record.detail = detail

    async def prune(
        self, db: AsyncSession, *, retention: timedelta, now: Optional[datetime] = None
    ) -> int:
        """Delete records older than the retention window."""
        cutoff = (now or utc_now_naive()) - retention
        return await crud.payment_event_record.prune(db, older_than=cutoff)


idempotency_gate = IdempotencyGate()
