"""
Security event logging.

Receives structured events from the rate limiter, CSRF service and session
guardian. Context dictionaries are redacted by key name before emission;
see `pollguard.config.logging.SENSITIVE_KEY_FRAGMENTS`.
"""

import logging
from typing import Any

import structlog

from pollguard.config.logging import redact_sensitive
from pollguard.constants import SESSION_HANDLE_VISIBLE_CHARS

_audit_logger = structlog.wrap_logger(
    logging.getLogger("pollguard.security"),
    wrapper_class=structlog.stdlib.BoundLogger,
)

LOG_LEVELS = ("debug", "info", "warning", "error")


class AuditEvent:
    """Constants for security event types."""

    # Authentication events
    AUTH_LOGIN_SUCCESS = "auth.login_success"
    AUTH_LOGIN_FAILURE = "auth.login_failure"
    AUTH_REGISTER_SUCCESS = "auth.register_success"
    AUTH_REGISTER_FAILURE = "auth.register_failure"
    AUTH_LOGOUT = "auth.logout"

    # Session events
    SESSION_INITIALIZE = "session.initialize"
    SESSION_EXTEND = "session.extend"
    SESSION_EXPIRED = "session.expired"
    SESSION_TERMINATE = "session.terminate"

    # Security events
    SECURITY_RATE_LIMIT = "security.rate_limit"
    SECURITY_RATE_LIMIT_BLOCK = "security.rate_limit_block"
    SECURITY_CSRF_VIOLATION = "security.csrf_violation"
    SECURITY_UNSAFE_REDIRECT = "security.unsafe_redirect"

    # Internal errors
    INTERNAL_IDENTITY_PROVIDER = "error.identity_provider"
    INTERNAL_COOKIE_STORE = "error.cookie_store"


def truncate_session_id(
    session_id: str, visible_chars: int = SESSION_HANDLE_VISIBLE_CHARS
) -> str:
    """Truncate a session handle for logging while preserving enough for correlation."""
    if len(session_id) > visible_chars:
        return session_id[:visible_chars] + "..."
    return session_id


def record(
    level: str,
    message: str,
    context: dict[str, Any] | None = None,
    subject_id: str | None = None,
    *,
    session_id: str | None = None,
) -> None:
    """
    Emit a security log record.

    Args:
        level: One of debug, info, warning, error
        message: Event message, usually an AuditEvent constant
        context: Additional fields; sensitive keys are redacted
        subject_id: Optional authenticated user identifier
        session_id: Optional session handle; only a prefix is logged
    """
    log_data: dict[str, Any] = {}

    if subject_id:
        log_data["subject_id"] = subject_id
    if session_id:
        log_data["session_ref"] = truncate_session_id(session_id)
    if context:
        log_data["context"] = redact_sensitive(context)

    method = level.lower()
    if method == "warn":
        method = "warning"
    if method not in LOG_LEVELS:
        method = "info"

    getattr(_audit_logger, method)(message, **log_data)


def auth_event(event: str, subject_id: str | None = None, context: dict[str, Any] | None = None) -> None:
    """Log an authentication event."""
    record("info", event, context, subject_id)


def security_event(
    event: str,
    context: dict[str, Any] | None = None,
    subject_id: str | None = None,
    *,
    session_id: str | None = None,
) -> None:
    """Log a security event."""
    record("warning", event, context, subject_id, session_id=session_id)


def rate_limit_event(event: str, identifier: str, context: dict[str, Any] | None = None) -> None:
    """Log a rate limiting event."""
    record("warning", event, {**(context or {}), "identifier": identifier})


def internal_error(event: str, error: BaseException | str, context: dict[str, Any] | None = None) -> None:
    """Log an internal failure with full context."""
    error_context: dict[str, Any] = {
        **(context or {}),
        "error": str(error),
    }
    if isinstance(error, BaseException):
        error_context["error_type"] = type(error).__name__
    record("error", event, error_context)
