"""Middleware for the FastAPI application.

This module contains middleware that process requests and responses, and the
handlers that map Tollgate exceptions to HTTP responses.
"""

import time
import traceback
import uuid
from typing import Union

from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from tollgate.core.config import settings
from tollgate.core.exceptions import (
    EntitlementDeniedException,
    ExternalServiceError,
    InvalidStateError,
    NotFoundException,
    StoreUnavailableError,
    SubscriptionConflictException,
    TollgateException,
    TrialLimitExceededException,
    UnattributableEventError,
    WebhookSignatureError,
    unpack_validation_error,
)
from tollgate.core.logging import logger


async def add_request_id(request: Request, call_next: callable) -> Response:
    """Middleware to generate and add a request ID to the request for tracing.

    Args:
    ----
        request (Request): The incoming request.
        call_next (callable): The next middleware in the chain.

    Returns:
    -------
        Response: The response to the incoming request.

    """
    request.state.request_id = str(uuid.uuid4())
    response = await call_next(request)
    response.headers["X-Request-ID"] = request.state.request_id
    return response


async def log_requests(request: Request, call_next: callable) -> Response:
    """Middleware to log incoming requests."""
    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time
    logger.info(
        f"Handled request {request.method} {request.url.path} in {duration:.2f} seconds. "
        f"Response code: {response.status_code}"
    )
    return response


async def exception_logging_middleware(request: Request, call_next: callable) -> Response:
    """Middleware to log unhandled exceptions.

    Args:
    ----
        request (Request): The incoming request.
        call_next (callable): The next middleware in the chain.

    Returns:
    -------
        Response: The response to the incoming request.

    """
    try:
        return await call_next(request)
    except Exception as exc:
        logger.error(f"Unhandled exception: {exc}\n{traceback.format_exc()}")

        response_content = {
            "detail": f"Internal Server Error: {exc.__class__.__name__}: {str(exc)}"
        }
        # Include stack trace only in development mode
        if settings.LOCAL_DEVELOPMENT or settings.DEBUG:
            response_content["trace"] = traceback.format_exc()

        return JSONResponse(status_code=500, content=response_content)


# Exception handlers
async def validation_exception_handler(
    request: Request, exc: Union[RequestValidationError, ValidationError]
) -> JSONResponse:
    """Exception handler for validation errors that occur during request processing.

    Returns:
    -------
        JSONResponse: A 422 Unprocessable Entity status response that details the validation
            errors, one ``{location: message}`` entry per error.

    Example of JSON output:
        {
            "errors": [
                {"body.plan_id": "Input should be a valid UUID"},
            ]
        }

    """
    error_messages = unpack_validation_error(exc)
    logger.error(f"Validation error: {error_messages}")
    return JSONResponse(status_code=422, content=error_messages)


async def not_found_exception_handler(request: Request, exc: NotFoundException) -> JSONResponse:
    """Exception handler for NotFoundException.

    Returns:
    -------
        JSONResponse: A 404 Not Found status response that details the error message.

    """
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def entitlement_denied_exception_handler(
    request: Request, exc: EntitlementDeniedException
) -> JSONResponse:
    """Exception handler for EntitlementDeniedException.

    Returns:
    -------
        JSONResponse: A 403 Forbidden status response with the required entitlement.

    """
    return JSONResponse(
        status_code=403,
        content={"detail": exc.message, "requirement": exc.requirement, "upgrade_required": True},
    )


async def trial_limit_exceeded_exception_handler(
    request: Request, exc: TrialLimitExceededException
) -> JSONResponse:
    """Exception handler for TrialLimitExceededException.

    Returns:
    -------
        JSONResponse: A 403 Forbidden status response with the ceiling and current usage.

    """
    return JSONResponse(
        status_code=403,
        content={
            "detail": exc.message,
            "resource_kind": exc.resource_kind,
            "limit": exc.limit,
            "current": exc.current_usage,
            "upgrade_required": True,
        },
    )


async def webhook_signature_exception_handler(
    request: Request, exc: WebhookSignatureError
) -> JSONResponse:
    """Exception handler for WebhookSignatureError (401)."""
    return JSONResponse(status_code=401, content={"detail": exc.message})


async def invalid_state_exception_handler(request: Request, exc: InvalidStateError) -> JSONResponse:
    """Exception handler for InvalidStateError.

    Returns:
    -------
        JSONResponse: A 400 Bad Request status response that details the error message.

    """
    return JSONResponse(status_code=400, content={"detail": str(exc)})


async def tollgate_exception_handler(request: Request, exc: TollgateException) -> JSONResponse:
    """Generic exception handler for all TollgateException types.

    Maps the remaining exception types to HTTP status codes based on their
    semantic meaning.
    """
    status_code_map = {
        # 400 Bad Request - payload cannot be attributed to a tenant or plan
        UnattributableEventError: 400,
        # 409 Conflict - a second live subscription would be created
        SubscriptionConflictException: 409,
        # 502 Bad Gateway - payment provider call failed
        ExternalServiceError: 502,
        # 503 Service Unavailable - subscription store unreachable
        StoreUnavailableError: 503,
    }

    status_code = status_code_map.get(type(exc), 500)
    if status_code >= 500:
        logger.error(f"{exc.__class__.__name__}: {exc}")

    return JSONResponse(status_code=status_code, content={"detail": str(exc)})
