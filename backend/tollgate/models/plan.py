"""Plan catalog model."""

from decimal import Decimal

from sqlalchemy import JSON, Boolean, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from tollgate.models._base import Base


class Plan(Base):
    """A purchasable plan."""

    __tablename__ = "plan"

    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    plan_type: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="inr", nullable=False)
    trial_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # {"employees": int, "visitors": int, "appointments": int, "spot_passes": int}
    limits: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    modules: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
