"""Logging and observability configuration using Pydantic Logfire.

This module provides standardized logging utilities and configuration.
All modules should use Python's standard logging library (logging.getLogger(__name__)),
and Logfire will automatically capture and enrich these logs.

Standard usage:
    import logging
    logger = logging.getLogger(__name__)
    logger.info("Message", extra={"key": "value"})

Structured logging utilities:
    log_with_context(logger, "info", "Message", task_id="123", user_id="abc")
"""

import logging

import logfire
from fastapi import FastAPI

from llamaio.core.config import Settings, constants


def configure_logfire(app_settings: Settings) -> None:
    """Configure Pydantic Logfire with token from environment.

    Routes records from Python's standard logging into Logfire.
    """
    logfire.configure(
        token=app_settings.logfire_token,
        service_name=constants.APP_NAME,
        service_version=constants.APP_VERSION,
        environment=app_settings.environment,
        send_to_logfire="if-token-present",
    )
    logging.basicConfig(level=logging.INFO, handlers=[logfire.LogfireLoggingHandler()])

    logger = logging.getLogger(__name__)
    logger.info("Logfire configured successfully")


def instrument_fastapi(app: FastAPI) -> None:
    """Add Logfire instrumentation to FastAPI application."""
    logfire.instrument_fastapi(app)
    logger = logging.getLogger(__name__)
    logger.info("FastAPI instrumentation configured")


def span(name: str) -> logfire.LogfireSpan:
    """Create a custom span for service layer functions.

    Usage:
        with span("task_service.create_task"):
            # Your service logic here
            pass
    """
    return logfire.span(name)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    **context: object,
) -> None:
    """Log a message with structured context fields.

    Args:
        logger: Logger instance to use
        level: Log level ("debug", "info", "warning", "error", "critical")
        message: Log message
        **context: Additional context fields (task_id, user_id, collection, etc.)

    Usage:
        log_with_context(logger, "info", "Task assigned", task_id="123", user_id="abc")
    """
    log_method = getattr(logger, level.lower())
    log_method(message, extra=context)
