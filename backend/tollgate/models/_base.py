"""Base models for the application."""

import uuid

from sqlalchemy import UUID, Boolean, Column, DateTime, ForeignKey
from sqlalchemy.ext.declarative import declared_attr
from sqlalchemy.orm import DeclarativeBase

from tollgate.core.datetime_utils import utc_now_naive


class Base(DeclarativeBase):
    """Base class for all models."""

    id = Column(UUID, primary_key=True, default=uuid.uuid4, nullable=False)
    created_at = Column(DateTime, default=utc_now_naive, nullable=False)
    modified_at = Column(DateTime, default=utc_now_naive, onupdate=utc_now_naive, nullable=False)


class TenantBase(Base):
    """Base class for tenant-scoped tables."""

    __abstract__ = True

    @declared_attr
    def tenant_id(cls):
        """Owning tenant (the admin account id)."""
        return Column(
            UUID, ForeignKey("account.id", ondelete="CASCADE"), nullable=False, index=True
        )


class SoftDeleteMixin:
    """Mixin for soft-deletable tenant resources."""

    @declared_attr
    def is_deleted(cls):
        return Column(Boolean, default=False, nullable=False)

    @declared_attr
    def deleted_at(cls):
        return Column(DateTime, nullable=True)
