"""Main module of the FastAPI application.

This module sets up the FastAPI application, its middleware and exception
handlers, and the background subscription scheduler.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from tollgate.api.middleware import (
    add_request_id,
    entitlement_denied_exception_handler,
    exception_logging_middleware,
    invalid_state_exception_handler,
    log_requests,
    not_found_exception_handler,
    tollgate_exception_handler,
    trial_limit_exceeded_exception_handler,
    validation_exception_handler,
    webhook_signature_exception_handler,
)
from tollgate.api.router import TrailingSlashRouter
from tollgate.api.v1.api import api_router
from tollgate.core.config import settings
from tollgate.core.exceptions import (
    EntitlementDeniedException,
    InvalidStateError,
    NotFoundException,
    TollgateException,
    TrialLimitExceededException,
    WebhookSignatureError,
)
from tollgate.core.logging import logger
from tollgate.db.init_db import init_db
from tollgate.db.session import AsyncSessionLocal, async_engine
from tollgate.platform.scheduler import subscription_scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events.

    Creates the schema, seeds the plan catalog and runs the expiry scheduler.
    """
    async with AsyncSessionLocal() as db:
        await init_db(async_engine, db)

    if settings.SCHEDULER_ENABLED:
        logger.info("Starting subscription scheduler...")
        await subscription_scheduler.start()

    yield

    if subscription_scheduler.running:
        await subscription_scheduler.stop()


# Create FastAPI app with our custom router and disable FastAPI's built-in redirects
app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url="/openapi.json",
    lifespan=lifespan,
    router=TrailingSlashRouter(),
    redirect_slashes=False,
)

app.include_router(api_router)

# Register middleware directly
app.middleware("http")(add_request_id)
app.middleware("http")(log_requests)
app.middleware("http")(exception_logging_middleware)

# Register exception handlers
app.exception_handler(RequestValidationError)(validation_exception_handler)
app.exception_handler(ValidationError)(validation_exception_handler)
app.exception_handler(NotFoundException)(not_found_exception_handler)
app.exception_handler(EntitlementDeniedException)(entitlement_denied_exception_handler)
app.exception_handler(TrialLimitExceededException)(trial_limit_exceeded_exception_handler)
app.exception_handler(WebhookSignatureError)(webhook_signature_exception_handler)
app.exception_handler(InvalidStateError)(invalid_state_exception_handler)

# Everything else derived from TollgateException
app.exception_handler(TollgateException)(tollgate_exception_handler)
