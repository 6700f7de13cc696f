"""
Custom error types for PollGuard.

Three families of failure are distinguished:

- admission denied: the request is refused (rate limit, CSRF)
- expired state: the session is no longer valid and must re-authenticate
- internal: a collaborator (cookie store, identity provider) failed

Every family resolves to "not allowed" / "not valid".
"""

from typing import Any


class PollGuardError(Exception):
    """Base exception for all PollGuard errors."""

    status_code: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


# Admission Errors


class AdmissionDeniedError(PollGuardError):
    """Raised when a request is refused before reaching business logic."""

    status_code = 403


class RateLimitExceededError(AdmissionDeniedError):
    """Raised when an identifier has exceeded its rate limit."""

    status_code = 429

    def __init__(self, retry_after: int, message: str | None = None):
        self.retry_after = retry_after
        msg = message or "Too many attempts. Please try again later."
        super().__init__(msg, details={"retry_after": retry_after})


class CSRFValidationError(AdmissionDeniedError):
    """Raised when a state-changing submission carries no valid CSRF token."""

    def __init__(self, message: str = "Invalid or missing form token. Please reload the page and try again."):
        super().__init__(message)


# Session Errors


class SessionExpiredError(PollGuardError):
    """Raised when a session has expired and the user must sign in again."""

    status_code = 401

    def __init__(self, reason: str, message: str | None = None):
        self.reason = reason
        msg = message or "Your session has expired. Please sign in again."
        super().__init__(msg, details={"reason": reason})


# Collaborator Errors


class IdentityProviderError(PollGuardError):
    """Raised when the identity provider cannot be reached or misbehaves."""

    status_code = 503

    def __init__(self, operation: str, original_error: str | None = None):
        self.operation = operation
        message = f"Identity provider call failed: {operation}"
        super().__init__(
            message,
            details={"operation": operation, "original_error": original_error},
        )


class CookieStoreError(PollGuardError):
    """Raised when the cookie store rejects a read or write."""

    def __init__(self, cookie_name: str, original_error: str | None = None):
        self.cookie_name = cookie_name
        message = f"Cookie store operation failed: {cookie_name}"
        super().__init__(
            message,
            details={"cookie_name": cookie_name, "original_error": original_error},
        )


# Validation Errors


class InputValidationError(PollGuardError):
    """Raised when submitted form input is invalid."""

    status_code = 400

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message, details={"field": field})


# Identity Errors


class InvalidCredentialsError(PollGuardError):
    """Raised when the identity provider rejects a sign-in."""

    status_code = 401

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class AccountExistsError(PollGuardError):
    """Raised when registering an email that already has an account."""

    status_code = 409

    def __init__(self, message: str = "An account with this email already exists"):
        super().__init__(message)
