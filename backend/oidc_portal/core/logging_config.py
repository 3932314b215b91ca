"""
Structured logging configuration.

Sets up structlog on top of stdlib logging. Logs are JSON formatted in
production for log aggregation tools and human-readable in development.

Usage:
    from oidc_portal.core.logging_config import setup_logging, get_logger

    # At app startup
    setup_logging()

    # In your code
    logger = get_logger(__name__)
    logger.info("auth_redirect", provider="google")
"""

import logging
import sys
from typing import Any

import structlog
from pythonjsonlogger import jsonlogger

from oidc_portal.config import settings
from oidc_portal.utils.logging_utils import redact_emails_in_text

# Session fields that must never reach a log line
_SECRET_KEYS = frozenset(
    {"code_verifier", "state", "code", "client_secret", "id_token", "access_token", "sid"}
)


def pii_redaction_processor(logger: Any, method_name: str, event_dict: dict) -> dict:
    """structlog processor: mask emails and drop flow secrets from every event."""
    for key, value in list(event_dict.items()):
        if key in _SECRET_KEYS:
            event_dict[key] = "[REDACTED]"
        elif isinstance(value, str):
            event_dict[key] = redact_emails_in_text(value)
    return event_dict


def setup_logging() -> None:
    """
    Configure structured logging for the application.

    Sets up both stdlib logging and structlog. In production, logs are JSON
    formatted; in development, logs are human-readable text.
    """
    use_json = settings.LOG_FORMAT == "json" or settings.ENVIRONMENT == "production"

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        pii_redaction_processor,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if use_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _configure_uvicorn_logging(use_json)

    # Outbound IdP calls are logged by the identity services themselves
    logging.getLogger("httpx").setLevel(logging.WARNING)
    if settings.ENVIRONMENT == "production":
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _configure_uvicorn_logging(use_json: bool = False) -> None:
    """Configure uvicorn's access and error logs with JSON formatting."""
    if not use_json:
        return

    formatter = jsonlogger.JsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s",
        rename_fields={"asctime": "timestamp", "levelname": "level"},
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    for logger_name in ["uvicorn", "uvicorn.access", "uvicorn.error"]:
        logger = logging.getLogger(logger_name)
        logger.handlers.clear()
        logger.addHandler(handler)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Structured logger with context support

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("auth_callback_failed", provider="microsoft", error="state_mismatch")
    """
    return structlog.get_logger(name)
