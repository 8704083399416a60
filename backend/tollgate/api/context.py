"""Request context for API endpoints."""

from typing import Any, Dict
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from tollgate.core.logging import ContextualLogger


class ApiContext(BaseModel):
    """Who is calling, which tenant they act for, and a logger bound to both."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    request_id: str
    account_id: UUID
    tenant_id: UUID

    # Contextual logger with request and tenant dimensions pre-configured
    logger: ContextualLogger

    @property
    def is_tenant_owner(self) -> bool:
        """Whether the caller is the admin account that owns the tenant."""
        return self.account_id == self.tenant_id

    def __str__(self) -> str:
        """String representation for logging."""
        return (
            f"ApiContext(request_id={self.request_id[:8]}..., "
            f"account={self.account_id}, tenant={self.tenant_id})"
        )

    def to_serializable_dict(self) -> Dict[str, Any]:
        """Convert to a serializable dictionary."""
        return {
            "request_id": self.request_id,
            "account_id": str(self.account_id),
            "tenant_id": str(self.tenant_id),
        }
