"""
Error handling utilities for consistent logging and user notification.

Views catch failures at the action boundary and turn them into a flashed
message (or a JSON error for the upload endpoints). The helpers here keep
the log records structured and the user-facing text generic: server error
bodies are never shown verbatim.
"""

import logging
import sys
from typing import Any

import requests
from flask import current_app, flash

from gallery_admin.errors import (
    AuthenticationError,
    AuthorizationError,
    GalleryAdminError,
    ValidationError,
)

# Failures a view may turn into a notification instead of a 500
HANDLED_ERRORS = (GalleryAdminError, requests.RequestException)


def safe_log_error(
    logger: logging.Logger,
    message: str,
    exc_info: bool | BaseException | tuple | None = True,
    level: int = logging.ERROR,
    **extra_context: Any,
) -> None:
    """
    Log an error with structured context and exception information.

    Args:
        logger: The logger instance to use
        message: Human-readable error message
        exc_info: Exception info (True for current exception, exception object, or tuple)
        level: Log level (default: ERROR)
        **extra_context: Additional context fields to include in the log

    Example:
        try:
            services.categories.create(category)
        except requests.RequestException as e:
            safe_log_error(
                current_app.logger,
                "Category create failed",
                exc_info=e,
                category_name=category.name,
            )
    """
    context = {"error_context": extra_context, "has_exception": exc_info is not None}

    if exc_info:
        if isinstance(exc_info, BaseException):
            context["exception_type"] = type(exc_info).__name__
            context["exception_message"] = str(exc_info)
        elif exc_info is True:
            exc_type, exc_value, _ = sys.exc_info()
            if exc_type:
                context["exception_type"] = exc_type.__name__
                context["exception_message"] = str(exc_value)

    logger.log(level, message, exc_info=exc_info, extra=context)


def user_message(exc: BaseException, fallback: str) -> str:
    """
    Map a failure to the text shown to the user.

    Authorization, authentication and validation errors carry console-made
    messages that are safe to show. Transport and API errors collapse to
    ``fallback`` so server internals never reach the page.
    """
    if isinstance(exc, (AuthorizationError, AuthenticationError)):
        return str(exc)
    if isinstance(exc, ValidationError):
        return "; ".join(m for messages in exc.errors.values() for m in messages)
    return fallback


def log_level_for(exc: BaseException) -> int:
    # Refusals are expected outcomes, not faults
    if isinstance(exc, GalleryAdminError):
        return logging.WARNING
    return logging.ERROR


def flash_failure(exc: BaseException, fallback: str, **context: Any) -> str:
    """Log ``exc`` and flash its user-facing message; returns the message."""
    message = user_message(exc, fallback)
    safe_log_error(
        current_app.logger,
        fallback,
        exc_info=exc,
        level=log_level_for(exc),
        **context,
    )
    flash(message, "danger")
    return message


def handle_api_exception(
    exc: BaseException,
    fallback: str,
    **extra_context: Any,
) -> tuple[dict[str, Any], int]:
    """
    Log ``exc`` and build a JSON error body for the upload endpoints.

    Returns:
        Tuple of (JSON response dict, status code)
    """
    safe_log_error(
        current_app.logger,
        fallback,
        exc_info=exc,
        level=log_level_for(exc),
        **extra_context,
    )
    if isinstance(exc, AuthorizationError):
        status_code = 403
    elif isinstance(exc, AuthenticationError):
        status_code = 401
    elif isinstance(exc, ValidationError):
        status_code = 400
    else:
        status_code = 502
    body: dict[str, Any] = {"success": False, "error": user_message(exc, fallback)}
    if isinstance(exc, ValidationError):
        body["errors"] = exc.errors
    return body, status_code
