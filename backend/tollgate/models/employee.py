"""Employee model."""

from typing import Optional
from uuid import UUID

from sqlalchemy import UUID as SA_UUID
from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from tollgate.models._base import SoftDeleteMixin, TenantBase


class Employee(TenantBase, SoftDeleteMixin):
    """A delegated worker record, created by a tenant owner.

    ``tenant_id`` is the creator (admin) account. ``account_id`` links the
    worker's own login account when it is known.
    """

    __tablename__ = "employee"

    account_id: Mapped[Optional[UUID]] = mapped_column(
        SA_UUID, ForeignKey("account.id", ondelete="SET NULL"), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=False, index=True)
    department: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
