"""Common interface of payment provider adapters."""

import hashlib
from abc import ABC, abstractmethod
from typing import Any, Optional
from uuid import UUID

from tollgate.core.exceptions import UnattributableEventError
from tollgate.core.shared_models import PaymentEventType, PaymentProvider
from tollgate.schemas.payment_event import PaymentEvent


def payload_digest(raw_body: bytes) -> str:
    """sha256 hex digest of the raw request body."""
    return hashlib.sha256(raw_body).hexdigest()


def unwrap_entity(obj: Any) -> dict:
    """Return ``obj["entity"]`` for wrapped objects and ``obj`` itself otherwise."""
    if not isinstance(obj, dict):
        return {}
    entity = obj.get("entity")
    if isinstance(entity, dict):
        return entity
    return obj


def first_present(*values: Any) -> Optional[str]:
    """First value that is not None or empty, as a string."""
    for value in values:
        if value not in (None, ""):
            return str(value)
    return None


def parse_uuid(value: Optional[str]) -> Optional[UUID]:
    """Parse a UUID from metadata, returning None for missing or malformed values."""
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


class ProviderAdapter(ABC):
    """Translates one provider's webhooks into provider-neutral payment events."""

    provider: PaymentProvider

    # Event types whose tenant must also name a plan
    PLAN_REQUIRED = (PaymentEventType.PAYMENT_CAPTURED, PaymentEventType.ORDER_PAID)

    @abstractmethod
    def verify_signature(self, raw_body: bytes, signature_header: Optional[str]) -> bool:
        """Check the provider signature over the unparsed request body."""

    @abstractmethod
    def normalize(self, payload: dict, raw_body: bytes) -> Optional[PaymentEvent]:
        """Build a payment event from a verified payload.

        Returns None for event types this system does not act on.

        Raises:
        ------
            UnattributableEventError: If tenant or plan metadata is missing.

        """

    def _require_attribution(
        self,
        event_type: PaymentEventType,
        tenant_id: Optional[UUID],
        plan_id: Optional[UUID],
    ) -> None:
        if tenant_id is None:
            raise UnattributableEventError(self.provider.value, "Missing tenant_id in metadata")
        if event_type in self.PLAN_REQUIRED and plan_id is None:
            raise UnattributableEventError(self.provider.value, "Missing plan_id in metadata")
