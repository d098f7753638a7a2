"""
Structured logging configuration using structlog.

This module provides the console's logging setup:
- Structured JSON files for parsing and analysis
- Request context on every event (endpoint, path, signed-in email)
- Component log level filtering
- Human-readable console output in development
- Size-based log rotation
- Redaction of credentials (passwords, tokens, cookies)

Usage in Flask:
    from gallery_admin.structured_logging import configure_structlog
    configure_structlog(app)

Usage in code:
    import structlog
    logger = structlog.get_logger(__name__)
    logger.info("category_created", resource_id="c-1")
"""
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import structlog
from pythonjsonlogger.json import JsonFormatter

# Module-level guard to avoid duplicate configuration
_STRUCTLOG_CONFIGURED = False

SENSITIVE_KEYS = (
    "password",
    "secret",
    "token",
    "authorization",
    "cookie",
    "csrf_token",
)


def _ensure_dir(path: str) -> None:
    """Ensure directory exists."""
    Path(path).mkdir(parents=True, exist_ok=True)


def get_log_dir(instance_path: str, override: str | None = None) -> str:
    """Resolve the directory where log files will be stored.

    Order of preference:
    1) explicit override argument
    2) LOG_DIR env var
    3) <instance_path>/logs
    """
    base = override or os.environ.get("LOG_DIR")
    if not base:
        base = os.path.join(instance_path, "logs")
    _ensure_dir(base)
    return base


def add_request_context(logger, method_name, event_dict):
    """Add Flask request context to log events."""
    from flask import has_request_context, request
    from flask_login import current_user

    if has_request_context():
        event_dict["endpoint"] = request.endpoint
        event_dict["method"] = request.method
        event_dict["path"] = request.path
        event_dict["remote_addr"] = request.remote_addr
        user = current_user._get_current_object() if current_user else None
        if user is not None and user.is_authenticated:
            event_dict["user_email"] = user.email
    return event_dict


def filter_polling(logger, method_name, event_dict):
    """Drop INFO-level events emitted while serving upload progress polls."""
    if event_dict.get("level") == "info":
        if str(event_dict.get("path", "")).endswith("/upload/status"):
            raise structlog.DropEvent
    return event_dict


def censor_sensitive_data(logger, method_name, event_dict):
    """Redact values whose keys look like credentials."""
    for key in list(event_dict.keys()):
        if any(sens in key.lower() for sens in SENSITIVE_KEYS):
            event_dict[key] = "***REDACTED***"
    return event_dict


def _build_json_handler(path: str, level: int) -> RotatingFileHandler:
    """Build a rotating file handler with JSON formatting."""
    # 10 MB per file, keep 5 backups
    handler = RotatingFileHandler(path, maxBytes=10 * 1024 * 1024, backupCount=5)
    handler.setLevel(level)
    handler.setFormatter(
        JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    return handler


def _build_console_handler(
    level: int, use_colors: bool = True
) -> logging.StreamHandler:
    """Build a console handler with human-readable formatting."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if use_colors and sys.stderr.isatty():
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s [%(levelname)-8s] %(name)-25s: %(message)s",
                datefmt="%H:%M:%S",
            )
        )
    else:
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    return handler


def get_log_level(app_config: dict | None = None) -> int:
    """Determine log level from config or environment."""
    if app_config and "LOG_LEVEL" in app_config:
        level_name = str(app_config["LOG_LEVEL"])
    else:
        level_name = os.environ.get("LOG_LEVEL", "INFO")

    return getattr(logging, level_name.upper(), logging.INFO)


def configure_component_loggers(base_level: int) -> None:
    """Configure log levels for specific components.

    - Werkzeug: only warnings (suppress request logs) unless DEBUG
    - urllib3/requests/botocore: only warnings
    - App: use base level
    """
    logging.getLogger("werkzeug").setLevel(
        logging.DEBUG if base_level <= logging.DEBUG else logging.WARNING
    )
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    # boto logs request bodies at DEBUG, which include credentials
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)


def configure_structlog(app) -> dict:
    """Configure structlog for the Flask application.

    Args:
        app: Flask app instance (must have .instance_path and .config)

    Returns:
        dict with keys: log_dir, app_log, error_log
    """
    global _STRUCTLOG_CONFIGURED

    # Never configure file logging in tests
    if app.config.get("TESTING"):
        if not _STRUCTLOG_CONFIGURED:
            structlog.configure(
                processors=[
                    structlog.processors.add_log_level,
                    censor_sensitive_data,
                    structlog.processors.TimeStamper(fmt="iso"),
                    structlog.dev.ConsoleRenderer(),
                ],
                wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
                context_class=dict,
                logger_factory=structlog.PrintLoggerFactory(),
                cache_logger_on_first_use=True,
            )
            _STRUCTLOG_CONFIGURED = True
        return {"log_dir": "", "app_log": "", "error_log": ""}

    log_dir = get_log_dir(app.instance_path)
    app_log_path = os.path.join(log_dir, "app.json")
    error_log_path = os.path.join(log_dir, "error.json")

    level = get_log_level(app.config)

    if not _STRUCTLOG_CONFIGURED:
        root = logging.getLogger()
        root.setLevel(level)
        root.handlers.clear()

        root.addHandler(_build_json_handler(app_log_path, level))
        # Separate error log (WARNING and above only)
        root.addHandler(_build_json_handler(error_log_path, logging.WARNING))
        root.addHandler(_build_console_handler(level, use_colors=app.debug))

        configure_component_loggers(level)

        processors = [
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_logger_name,
            structlog.processors.CallsiteParameterAdder(
                {
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.LINENO,
                }
            ),
            add_request_context,
            filter_polling,
            censor_sensitive_data,
            structlog.stdlib.render_to_log_kwargs,
        ]

        structlog.configure(
            processors=processors,
            wrapper_class=structlog.make_filtering_bound_logger(level),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        _STRUCTLOG_CONFIGURED = True

    logger = structlog.get_logger(__name__)
    logger.debug(
        "logging_configured",
        log_dir=log_dir,
        level=logging.getLevelName(level),
    )

    return {"log_dir": log_dir, "app_log": app_log_path, "error_log": error_log_path}
