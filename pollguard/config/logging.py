"""
Structured logging configuration for PollGuard.

This module provides structured JSON logging using structlog, with request
correlation IDs and redaction of sensitive context fields.
"""

import logging
import sys
import uuid
from collections.abc import Callable, Mapping
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any

import structlog

REDACTED = "[REDACTED]"

# Key-name fragments that mark a context field as sensitive. Matching is a
# case-insensitive substring test, so "refreshToken" and "X-Auth-Key" are both
# caught. This is a heuristic: a secret stored under an unanticipated key name
# is logged as-is.
SENSITIVE_KEY_FRAGMENTS: tuple[str, ...] = (
    "password",
    "token",
    "secret",
    "key",
    "auth",
    "session",
    "cookie",
    "csrf",
)


@dataclass
class LoggingConfig:
    """Logging configuration."""

    suppressed_loggers: dict[str, str] = field(
        default_factory=lambda: {
            "httpx": "WARNING",
            "httpcore": "WARNING",
            "asyncio": "WARNING",
            "uvicorn.access": "WARNING",
        }
    )
    request_id_length: int = 8
    colors: bool = True


_logging_config = LoggingConfig()


request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def get_request_id() -> str:
    """Get the current request ID from context."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set a new request ID in context. Generates one if not provided."""
    new_id = request_id or str(uuid.uuid4())[: _logging_config.request_id_length]
    request_id_var.set(new_id)
    return new_id


def is_sensitive_key(key: str) -> bool:
    """Check a field name against the sensitive key deny-list."""
    lowered = key.lower()
    return any(fragment in lowered for fragment in SENSITIVE_KEY_FRAGMENTS)


def redact_sensitive(value: Any) -> Any:
    """
    Return a copy of `value` with sensitive mapping entries replaced.

    Walks nested dicts, lists and tuples. Non-container values are
    returned unchanged.
    """
    if isinstance(value, Mapping):
        return {
            k: REDACTED if is_sensitive_key(str(k)) else redact_sensitive(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact_sensitive(item) for item in value]
    return value


def redact_context(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Structlog processor that redacts the `context` field of log events."""
    if "context" in event_dict:
        event_dict["context"] = redact_sensitive(event_dict["context"])
    return event_dict


def add_request_id(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Structlog processor to add request ID to log events."""
    request_id = get_request_id()
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARN, ERROR)
        json_format: If True, output JSON logs; otherwise, use console format
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors: list[Callable] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        add_request_id,
        redact_context,
    ]

    if json_format:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=_logging_config.colors),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    for logger_name, logger_level in _logging_config.suppressed_loggers.items():
        suppressed_level = getattr(logging, logger_level.upper(), logging.WARNING)
        logging.getLogger(logger_name).setLevel(suppressed_level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structlog logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)
