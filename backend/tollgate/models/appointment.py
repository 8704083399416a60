"""Appointment model."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from tollgate.models._base import SoftDeleteMixin, TenantBase


class Appointment(TenantBase, SoftDeleteMixin):
    """Appointment booked under a tenant."""

    __tablename__ = "appointment"

    title: Mapped[str] = mapped_column(String, nullable=False)
    scheduled_for: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=False), nullable=True
    )
