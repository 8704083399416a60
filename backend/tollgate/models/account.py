"""Account model."""

from typing import Optional

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from tollgate.models._base import Base


class Account(Base):
    """An authenticated caller: a tenant owner (admin) or a delegated worker."""

    __tablename__ = "account"

    email: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    full_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    role: Mapped[str] = mapped_column(String(20), default="admin", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
