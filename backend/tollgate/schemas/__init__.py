"""Schemas for the application."""

from .account import (
    Account,
    AccountCreate,
    Appointment,
    AppointmentCreate,
    Employee,
    EmployeeCreate,
    Visitor,
    VisitorCreate,
)
from .checkout import (
    CheckoutRequest,
    FreeVerificationRequest,
    RazorpayOrder,
    RazorpayVerifyRequest,
    StripeCheckoutSession,
)
from .payment_event import (
    PaymentEvent,
    PaymentEventRecord,
    RazorpayPaymentEvent,
    StripePaymentEvent,
    WebhookResult,
)
from .plan import Plan, PlanCreate, PlanLimits
from .subscription import Subscription, SubscriptionCreate, SubscriptionStats
from .trial import Allow, Deny, TrialLimitDecision, TrialLimitUsage, TrialStatus

# flake8: noqa: F401
