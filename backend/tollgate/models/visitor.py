"""Visitor model."""

from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from tollgate.models._base import SoftDeleteMixin, TenantBase


class Visitor(TenantBase, SoftDeleteMixin):
    """Visitor registered by a tenant."""

    __tablename__ = "visitor"

    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String, nullable=True)
