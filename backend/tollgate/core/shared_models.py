"""Shared models for the backend."""

from enum import Enum


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status."""

    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    EXPIRED = "expired"


# A tenant holds at most one subscription in one of these states
LIVE_STATUSES = (
    SubscriptionStatus.TRIALING,
    SubscriptionStatus.ACTIVE,
    SubscriptionStatus.PAST_DUE,
)

TERMINAL_STATUSES = (SubscriptionStatus.CANCELED, SubscriptionStatus.EXPIRED)


class PlanType(str, Enum):
    """Plan type, doubling as the billing cycle of paid plans."""

    FREE = "free"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class AccountRole(str, Enum):
    """Account role."""

    ADMIN = "admin"
    EMPLOYEE = "employee"


class ResourceKind(str, Enum):
    """Tenant-scoped resources counted against trial ceilings."""

    EMPLOYEES = "employees"
    VISITORS = "visitors"
    APPOINTMENTS = "appointments"


class PaymentProvider(str, Enum):
    """Supported payment providers."""

    STRIPE = "stripe"
    RAZORPAY = "razorpay"


class PaymentEventType(str, Enum):
    """Provider-neutral payment event type."""

    PAYMENT_CAPTURED = "payment_captured"
    PAYMENT_FAILED = "payment_failed"
    ORDER_PAID = "order_paid"
    TRIAL_VERIFIED = "trial_verified"
    SUBSCRIPTION_CANCELED = "subscription_canceled"


class WebhookOutcome(str, Enum):
    """Externally observable result of a webhook delivery."""

    PROCESSED = "processed"
    DEDUPLICATED = "deduplicated"
    IGNORED = "ignored"
    DROPPED = "dropped"
    FAILED = "failed"
