"""Trial limit schemas."""

from typing import Dict, Literal, Union

from pydantic import BaseModel

from tollgate.core.shared_models import ResourceKind


class TrialLimitUsage(BaseModel):
    """Usage of one resource kind against its ceiling. ``limit == -1`` means unlimited."""

    limit: int
    current: int
    reached: bool


class TrialStatus(BaseModel):
    """Trial status of a tenant."""

    is_trial: bool
    limits: Dict[ResourceKind, TrialLimitUsage]


class Allow(BaseModel):
    """The resource may be created."""

    decision: Literal["allow"] = "allow"


class Deny(BaseModel):
    """The trial ceiling has been reached."""

    decision: Literal["deny"] = "deny"
    resource_kind: ResourceKind
    limit: int
    current: int
    reason: str


TrialLimitDecision = Union[Allow, Deny]
