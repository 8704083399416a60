"""Models for the application."""

from .account import Account
from .appointment import Appointment
from .employee import Employee
from .payment_event_record import PaymentEventRecord
from .plan import Plan
from .subscription import Subscription
from .visitor import Visitor

# flake8: noqa: F401
