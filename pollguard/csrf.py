"""
CSRF token issuance and verification.

Each client holds a long-lived random secret and a short-lived token of
the form ``<nonce>.<signature>`` where the signature is
HMAC-SHA256(secret, nonce). Both live in httpOnly cookies.

A submitted token is accepted only if it is identical to the most
recently issued token AND its signature verifies against the secret.
The equality check rejects older tokens that still carry a valid
signature; the signature check rejects a tampered token cookie.
"""

import hashlib
import hmac
import secrets
import threading
from collections.abc import Mapping
from typing import Any

from pollguard.audit import AuditEvent, security_event
from pollguard.config.logging import get_logger
from pollguard.constants import (
    CSRF_FORM_FIELD,
    CSRF_SECRET_COOKIE,
    CSRF_SECRET_TTL_SECONDS,
    CSRF_TOKEN_BYTES,
    CSRF_TOKEN_COOKIE,
    CSRF_TOKEN_TTL_SECONDS,
)
from pollguard.cookies import CookieStore

logger = get_logger(__name__)

TOKEN_SEPARATOR = "."


def generate_random_token(num_bytes: int = CSRF_TOKEN_BYTES) -> str:
    """Generate a hex-encoded random value."""
    return secrets.token_hex(num_bytes)


def sign_nonce(secret: str, nonce: str) -> str:
    """Compute the hex HMAC-SHA256 signature of a nonce."""
    return hmac.new(secret.encode(), nonce.encode(), hashlib.sha256).hexdigest()


class CSRFTokenService:
    """Cookie-backed CSRF token issuer and verifier."""

    def __init__(
        self,
        secret_ttl_seconds: int = CSRF_SECRET_TTL_SECONDS,
        token_ttl_seconds: int = CSRF_TOKEN_TTL_SECONDS,
    ):
        if token_ttl_seconds > secret_ttl_seconds:
            raise ValueError("token TTL must not exceed secret TTL")
        self.secret_ttl_seconds = secret_ttl_seconds
        self.token_ttl_seconds = token_ttl_seconds
        self._lock = threading.Lock()

    def issue_token(self, cookies: CookieStore) -> str:
        """
        Issue a fresh token, creating the client secret if needed.

        Any previously issued token stops validating.

        Args:
            cookies: The client's cookie store

        Returns:
            The new token, to embed in the protected form
        """
        with self._lock:
            secret = cookies.get(CSRF_SECRET_COOKIE)
            if not secret:
                secret = generate_random_token()
                cookies.set(CSRF_SECRET_COOKIE, secret, max_age=self.secret_ttl_seconds)

            nonce = generate_random_token()
            token = f"{nonce}{TOKEN_SEPARATOR}{sign_nonce(secret, nonce)}"
            cookies.set(CSRF_TOKEN_COOKIE, token, max_age=self.token_ttl_seconds)

        return token

    def validate_token(self, cookies: CookieStore, candidate: str | None) -> bool:
        """
        Check a submitted token against the client's stored pair.

        Never raises: any error while reading or verifying means invalid.

        Args:
            cookies: The client's cookie store
            candidate: Token taken from the submission

        Returns:
            True only if the token is current and correctly signed
        """
        try:
            stored_token = cookies.get(CSRF_TOKEN_COOKIE)
            secret = cookies.get(CSRF_SECRET_COOKIE)

            if not candidate or not stored_token or not secret:
                return False

            if not isinstance(candidate, str) or candidate != stored_token:
                return False

            nonce, separator, signature = candidate.partition(TOKEN_SEPARATOR)
            if not separator or not nonce or not signature:
                return False

            expected = bytes.fromhex(sign_nonce(secret, nonce))
            return hmac.compare_digest(bytes.fromhex(signature), expected)
        except Exception as e:
            logger.debug("CSRF token verification error", error_type=type(e).__name__)
            return False

    def validate_form(self, cookies: CookieStore, form: Mapping[str, Any]) -> bool:
        """Validate the token carried in a submitted form."""
        candidate = form.get(CSRF_FORM_FIELD)
        valid = self.validate_token(cookies, candidate if isinstance(candidate, str) else None)
        if not valid:
            security_event(
                AuditEvent.SECURITY_CSRF_VIOLATION,
                {"submitted": bool(candidate)},
            )
        return valid

    def current_token(self, cookies: CookieStore) -> str | None:
        """Get the most recently issued token, if any."""
        return cookies.get(CSRF_TOKEN_COOKIE)

    def clear_tokens(self, cookies: CookieStore) -> None:
        """Remove the token and secret, e.g. on logout."""
        with self._lock:
            cookies.delete(CSRF_TOKEN_COOKIE)
            cookies.delete(CSRF_SECRET_COOKIE)
