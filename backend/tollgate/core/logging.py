"""The logging configuration module."""

import json
import logging
import sys
from datetime import datetime
from typing import Optional

_RESERVED_RECORD_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "getMessage",
    "custom_dimensions",
    "exc_info",
    "exc_text",
    "stack_info",
}


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Custom dimensions attached by the contextual logger are emitted under
    ``custom_dimensions`` so that log pipelines can filter on tenant, provider, etc.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON.

        Args:
        ----
            record (logging.LogRecord): The log record to format

        Returns:
        -------
            str: JSON-formatted log message

        """
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if getattr(record, "custom_dimensions", None):
            log_entry["custom_dimensions"] = record.custom_dimensions

        for key, value in record.__dict__.items():
            if key in _RESERVED_RECORD_KEYS:
                continue
            try:
                json.dumps(value)
                log_entry[key] = value
            except (TypeError, ValueError):
                log_entry[key] = str(value)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class _ContextualLogger(logging.LoggerAdapter):
    """A LoggerAdapter that attaches custom dimensions to every record."""

    def __init__(
        self,
        logger: logging.Logger,
        dimensions: Optional[dict] = None,
    ) -> None:
        """Initialize the contextual logger.

        Args:
        ----
            logger (logging.Logger): Base logger instance
            dimensions (Optional[dict]): Custom dimensions for structured logging

        """
        super().__init__(logger, {})
        self.dimensions = dimensions or {}

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        """Attach custom dimensions to the record."""
        if "extra" not in kwargs:
            kwargs["extra"] = {}

        if self.dimensions:
            kwargs["extra"]["custom_dimensions"] = {
                **kwargs["extra"].get("custom_dimensions", {}),
                **self.dimensions,
            }

        return msg, kwargs

    def with_context(self, **dimensions: str | int | float | bool) -> "_ContextualLogger":
        """Create a new logger with additional context dimensions.

        Args:
        ----
            dimensions: Keyword arguments to add to dimensions

        Returns:
        -------
            _ContextualLogger: New logger instance with updated dimensions

        """
        new_dimensions = {**self.dimensions, **dimensions}
        return _ContextualLogger(self.logger, new_dimensions)


ContextualLogger = _ContextualLogger


class LoggerConfigurator:
    """Configures loggers with support for context dimensions.

    The base context is injected at the dependency level (API request, webhook
    delivery, scheduler tick). Dimensions typically carry request_id, tenant_id,
    provider and event_type, and can be extended per operation:

    ```python
    log = logger.with_context(tenant_id=str(tenant_id), operation="cancel")
    log.info("Canceling subscription")
    ```

    Configuration:
    -------------
    - Text format when LOCAL_DEVELOPMENT=True, JSON otherwise
    - LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    @staticmethod
    def configure_logger(
        name: str,
        dimensions: Optional[dict] = None,
    ) -> _ContextualLogger:
        """Configure and return a logger with the given name and initial context.

        Args:
        ----
            name (str): Logger name (typically __name__)
            dimensions (Optional[dict]): Initial custom dimensions

        Returns:
        -------
            _ContextualLogger: Configured logger with context support

        """
        logger = logging.getLogger(name)

        # Import settings here to avoid circular imports
        from tollgate.core.config import settings

        log_level = settings.LOG_LEVEL.upper()
        logger.setLevel(getattr(logging, log_level, logging.INFO))
        logger.propagate = False

        if hasattr(logger, "_tollgate_configured"):
            return _ContextualLogger(logger, dimensions)

        logger.handlers.clear()
        stream_handler = logging.StreamHandler(sys.stdout)

        if settings.LOCAL_DEVELOPMENT:
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        else:
            formatter = JSONFormatter()

        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)
        logger._tollgate_configured = True

        return _ContextualLogger(logger, dimensions)


# Default logger instance
logger = LoggerConfigurator.configure_logger(__name__)
