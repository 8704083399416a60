"""Shared exceptions module."""

from typing import Optional

from pydantic import ValidationError


class TollgateException(Exception):
    """Base exception for Tollgate services."""

    pass


class NotFoundException(TollgateException):
    """Exception raised when an object is not found."""

    def __init__(self, message: Optional[str] = "Object not found"):
        """Create a new NotFoundException instance.

        Args:
        ----
            message (str, optional): The error message. Has default message.

        """
        self.message = message
        super().__init__(self.message)


class TenantNotFoundException(NotFoundException):
    """Raised when a caller cannot be resolved to an owning tenant."""

    def __init__(self, account_id: Optional[str] = None):
        """Create a new TenantNotFoundException instance."""
        message = "Tenant not found"
        if account_id:
            message = f"No tenant found for account {account_id}"
        super().__init__(message)


class SubscriptionNotFoundException(NotFoundException):
    """Raised when a subscription does not exist."""

    pass


class PlanNotFoundException(NotFoundException):
    """Raised when a plan id is not in the catalog."""

    pass


class WebhookSignatureError(TollgateException):
    """Exception raised when a webhook signature is missing or invalid."""

    def __init__(self, provider: str, message: Optional[str] = "Invalid webhook signature"):
        """Create a new WebhookSignatureError instance.

        Args:
        ----
            provider (str): The payment provider that sent the webhook.
            message (str, optional): The error message. Has default message.

        """
        self.provider = provider
        self.message = message
        super().__init__(f"{provider}: {message}")


class EntitlementDeniedException(TollgateException):
    """Exception raised when a tenant is not entitled to a feature."""

    def __init__(
        self,
        requirement: Optional[str] = None,
        message: Optional[str] = None,
    ):
        """Create a new EntitlementDeniedException instance.

        Args:
        ----
            requirement (str, optional): The entitlement that was required (active, premium, plan).
            message (str, optional): Custom error message. If not provided, generates one.

        """
        if message is None:
            if requirement:
                message = f"Upgrade required: this action requires a {requirement} subscription"
            else:
                message = "Upgrade required"

        self.requirement = requirement
        self.message = message
        super().__init__(self.message)


class TrialLimitExceededException(TollgateException):
    """Exception raised when a trialing tenant reaches a resource ceiling."""

    def __init__(
        self,
        resource_kind: Optional[str] = None,
        limit: Optional[int] = None,
        current_usage: Optional[int] = None,
        message: Optional[str] = None,
    ):
        """Create a new TrialLimitExceededException instance.

        Args:
        ----
            resource_kind (str, optional): The kind of resource that hit the ceiling.
            limit (int, optional): The trial ceiling.
            current_usage (int, optional): The current count.
            message (str, optional): Custom error message. If not provided, generates one.

        """
        if message is None:
            if resource_kind:
                message = f"Trial limit reached for {resource_kind}"
                if limit is not None and current_usage is not None:
                    message += f": {current_usage}/{limit}"
            else:
                message = "Trial limit reached"

        self.resource_kind = resource_kind
        self.limit = limit
        self.current_usage = current_usage
        self.message = message
        super().__init__(self.message)


class SubscriptionConflictException(TollgateException):
    """Exception raised when a second live subscription would be created for a tenant."""

    def __init__(self, message: Optional[str] = "Tenant already has a live subscription"):
        """Create a new SubscriptionConflictException instance."""
        self.message = message
        super().__init__(self.message)


class UnattributableEventError(TollgateException):
    """Exception raised when a webhook payload carries no tenant or plan."""

    def __init__(self, provider: str, message: Optional[str] = "Missing tenant or plan metadata"):
        """Create a new UnattributableEventError instance.

        Args:
        ----
            provider (str): The payment provider that sent the event.
            message (str, optional): The error message. Has default message.

        """
        self.provider = provider
        self.message = message
        super().__init__(f"{provider}: {message}")


class StoreUnavailableError(TollgateException):
    """Exception raised when the subscription store cannot be reached."""

    def __init__(self, message: Optional[str] = "Subscription store unavailable"):
        """Create a new StoreUnavailableError instance."""
        self.message = message
        super().__init__(self.message)


class ExternalServiceError(TollgateException):
    """Exception raised when an external service fails."""

    def __init__(self, service_name: str, message: Optional[str] = "External service failed"):
        """Create a new ExternalServiceError instance.

        Args:
        ----
            service_name (str): The name of the external service.
            message (str, optional): The error message. Has default message.

        """
        self.service_name = service_name
        self.message = message
        super().__init__(f"{service_name}: {message}")


class InvalidStateError(TollgateException):
    """Exception raised when an object is in an invalid state.

    Used for lifecycle transitions that are not allowed from the current status,
    e.g. canceling an already expired subscription.
    """

    def __init__(self, message: Optional[str] = "Object is in an invalid state"):
        """Create a new InvalidStateError instance.

        Args:
        ----
            message (str, optional): The error message. Has default message.

        """
        self.message = message
        super().__init__(self.message)


def unpack_validation_error(exc: ValidationError) -> dict:
    """Unpack a Pydantic validation error into a dictionary.

    Args:
    ----
        exc (ValidationError): The Pydantic validation error.

    Returns:
    -------
        dict: The dictionary representation of the validation error.

    """
    error_messages = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        error_messages.append({field: error["msg"]})

    return {"errors": error_messages}
