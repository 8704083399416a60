"""Common test fixtures and configuration for pytest.

Settings are read when ``tollgate`` is first imported, so the test
environment is set here before any fixture module imports it.
"""

import os

os.environ.setdefault("SQLALCHEMY_ASYNC_DATABASE_URI", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOCAL_DEVELOPMENT", "true")
os.environ.setdefault("STRIPE_ENABLED", "false")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("RAZORPAY_ENABLED", "false")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "rzp_test_key_secret")
os.environ.setdefault("RAZORPAY_WEBHOOK_SECRET", "rzp_test_webhook_secret")

# Import all fixtures so they are automatically available for all tests
from tests.fixtures.common import (  # noqa: E402, F401
    admin,
    db,
    db_engine,
    lifecycle,
    make_account,
    make_employee,
    mock_notifier,
    plans,
    session_factory,
)
