"""CRUD operations for payment event idempotency records."""

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from tollgate.models import PaymentEventRecord


class CRUDPaymentEventRecord:
    """Idempotency records are written once and only read afterwards.

    There is no generic update: the outcome is set on the instance that was
    inserted in the same transaction.
    """

    async def get_by_key(self, db: AsyncSession, *, key: str) -> Optional[PaymentEventRecord]:
        """Get the record for an idempotency key."""
        result = await db.execute(select(PaymentEventRecord).where(PaymentEventRecord.key == key))
        return result.scalar_one_or_none()

    async def insert(self, db: AsyncSession, *, record: PaymentEventRecord) -> PaymentEventRecord:
        """Insert and flush so a duplicate key fails immediately with IntegrityError."""
        db.add(record)
        await db.flush()
        return record

    async def prune(self, db: AsyncSession, *, older_than: datetime) -> int:
        """Delete records first seen before ``older_than``. Returns the number deleted."""
        result = await db.execute(
            delete(PaymentEventRecord).where(PaymentEventRecord.first_seen_at < older_than)
        )
        await db.commit()
        return result.rowcount


payment_event_record = CRUDPaymentEventRecord()
