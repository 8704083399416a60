"""Plan catalog schemas."""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from tollgate.core.shared_models import PlanType


class PlanLimits(BaseModel):
    """Per-resource quotas attached to a plan."""

    employees: int = -1
    visitors: int = -1
    appointments: int = -1
    spot_passes: int = -1


class PlanBase(BaseModel):
    """Plan base schema."""

    model_config = ConfigDict(use_enum_values=True)

    name: str = Field(..., description="Unique plan name")
    plan_type: PlanType = Field(..., description="Plan type, also the billing cycle")
    amount: Decimal = Field(default=Decimal("0"), ge=0, description="Price per billing cycle")
    currency: str = Field(default="inr", min_length=3, max_length=3)
    trial_days: int = Field(default=0, ge=0)
    limits: PlanLimits = Field(default_factory=PlanLimits)
    modules: list[str] = Field(default_factory=list, description="Feature keys included")
    is_active: bool = True


class PlanCreate(PlanBase):
    """Plan creation schema."""

    pass


class Plan(PlanBase):
    """Plan schema."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: UUID
