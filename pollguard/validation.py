"""
Input validation for PollGuard.

Server-side checks for credentials and profile fields submitted through
the login and registration forms.
"""

import html
import re

from pollguard.errors import InputValidationError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

PASSWORD_MIN_LENGTH = 8
PASSWORD_SPECIAL_CHARACTERS = "@$!%*?&"
DISPLAY_NAME_MIN_LENGTH = 2
DISPLAY_NAME_MAX_LENGTH = 50


def sanitize_input(value: str) -> str:
    """Trim whitespace and escape HTML-significant characters."""
    return html.escape(value.strip(), quote=True)


def validate_email(email: str) -> str:
    """
    Normalize and validate an email address.

    Args:
        email: Raw email from the form

    Returns:
        The lower-cased, sanitized email

    Raises:
        InputValidationError: If the format is invalid
    """
    sanitized = sanitize_input((email or "").lower())
    if not EMAIL_PATTERN.match(sanitized):
        raise InputValidationError("Please enter a valid email address", field="email")
    return sanitized


def validate_password_present(password: str) -> str:
    """Require a non-empty password."""
    if not password:
        raise InputValidationError("Password is required", field="password")
    return password


def validate_password_strength(password: str) -> str:
    """
    Enforce the registration password policy.

    Raises:
        InputValidationError: Describing the first rule that fails
    """
    if len(password or "") < PASSWORD_MIN_LENGTH:
        raise InputValidationError(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters long", field="password"
        )
    if not re.search(r"[a-z]", password):
        raise InputValidationError("Password must contain at least one lowercase letter", field="password")
    if not re.search(r"[A-Z]", password):
        raise InputValidationError("Password must contain at least one uppercase letter", field="password")
    if not re.search(r"\d", password):
        raise InputValidationError("Password must contain at least one number", field="password")
    if not any(ch in PASSWORD_SPECIAL_CHARACTERS for ch in password):
        raise InputValidationError(
            "Password must contain at least one special character", field="password"
        )
    return password


def validate_display_name(name: str) -> str:
    """Sanitize a display name and check its length."""
    sanitized = sanitize_input(name or "")
    if not DISPLAY_NAME_MIN_LENGTH <= len(sanitized) <= DISPLAY_NAME_MAX_LENGTH:
        raise InputValidationError(
            f"Name must be between {DISPLAY_NAME_MIN_LENGTH} and {DISPLAY_NAME_MAX_LENGTH} characters",
            field="name",
        )
    return sanitized
