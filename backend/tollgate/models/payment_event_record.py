"""Idempotency record for processed payment events."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import UUID as SA_UUID
from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tollgate.core.datetime_utils import utc_now_naive
from tollgate.models._base import Base


class PaymentEventRecord(Base):
    """One row per distinct provider event key.

    The row is inserted as the first write of the processing transaction, so
    the unique key is the only admission check for concurrent deliveries.
    """

    __tablename__ = "payment_event_record"

    key: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    provider: Mapped[str] = mapped_column(String(20), nullable=False)
    event_type: Mapped[str] = mapped_column(String(40), nullable=False)
    tenant_id: Mapped[Optional[UUID]] = mapped_column(SA_UUID, nullable=True)
    raw_payload_digest: Mapped[str] = mapped_column(String(64), nullable=False)
    first_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=utc_now_naive, nullable=False, index=True
    )
    outcome: Mapped[str] = mapped_column(String(20), nullable=False)
    subscription_id: Mapped[Optional[UUID]] = mapped_column(SA_UUID, nullable=True)
    detail: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
