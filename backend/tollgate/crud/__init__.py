"""CRUD operations for the application."""

from .crud_account import account
from .crud_appointment import appointment
from .crud_employee import employee
from .crud_payment_event_record import payment_event_record
from .crud_plan import plan
from .crud_subscription import subscription
from .crud_visitor import visitor

# flake8: noqa: F401
