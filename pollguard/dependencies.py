"""
Security component wiring and FastAPI dependencies.

Components are built once per application in `create_app()` and stored on
``app.state.security``. Request handlers reach them through the
dependencies below rather than through module globals, so each app (and
each test) gets independent state.
"""

from dataclasses import dataclass

from fastapi import Depends, Request

from pollguard.client_ip import get_client_identifier
from pollguard.clock import SYSTEM_CLOCK, Clock
from pollguard.config.settings import Settings
from pollguard.cookies import CookieJar, get_cookie_jar
from pollguard.csrf import CSRFTokenService
from pollguard.errors import CSRFValidationError, RateLimitExceededError, SessionExpiredError
from pollguard.identity import IdentityProvider, InMemoryIdentityProvider
from pollguard.rate_limiter import RateLimiter
from pollguard.session_guardian import SessionGuardian


@dataclass
class SecurityComponents:
    """The process-wide security components of one application."""

    settings: Settings
    auth_limiter: RateLimiter
    general_limiter: RateLimiter
    csrf: CSRFTokenService
    guardian: SessionGuardian
    identity_provider: IdentityProvider


def build_components(
    settings: Settings,
    identity_provider: IdentityProvider | None = None,
    clock: Clock = SYSTEM_CLOCK,
) -> SecurityComponents:
    """
    Construct the security components from settings.

    Args:
        settings: Application settings
        identity_provider: Upstream identity provider; defaults to the
            in-memory development provider
        clock: Time source shared by all components
    """
    provider = identity_provider or InMemoryIdentityProvider()
    return SecurityComponents(
        settings=settings,
        auth_limiter=RateLimiter.from_settings(
            max_attempts=settings.auth_rate_limit_max,
            window_seconds=settings.auth_rate_limit_window,
            block_seconds=settings.auth_rate_limit_block,
            clock=clock,
            name="auth",
        ),
        general_limiter=RateLimiter.from_settings(
            max_attempts=settings.general_rate_limit_max,
            window_seconds=settings.general_rate_limit_window,
            block_seconds=settings.general_rate_limit_block,
            clock=clock,
            name="general",
        ),
        csrf=CSRFTokenService(
            secret_ttl_seconds=settings.csrf_secret_ttl_seconds,
            token_ttl_seconds=settings.csrf_token_ttl_seconds,
        ),
        guardian=SessionGuardian(
            identity_provider=provider,
            clock=clock,
            soft_timeout_ms=settings.session_soft_timeout_seconds * 1000,
            warning_ms=settings.session_warning_seconds * 1000,
            max_idle_ms=settings.session_max_idle_seconds * 1000,
            max_lifetime_ms=settings.session_max_lifetime_seconds * 1000,
        ),
        identity_provider=provider,
    )


def get_components(request: Request) -> SecurityComponents:
    """Get the security components of the running application."""
    return request.app.state.security


def require_auth_admission(
    request: Request,
    components: SecurityComponents = Depends(get_components),
) -> str:
    """
    Reject the request if its client is blocked by the auth limiter.

    Runs before any credential is looked at.

    Returns:
        The client identifier, for recording the outcome
    """
    identifier = get_client_identifier(request)
    status = components.auth_limiter.status(identifier)
    if not status.allowed:
        raise RateLimitExceededError(retry_after=status.retry_after)
    return identifier


async def require_csrf(
    request: Request,
    cookies: CookieJar = Depends(get_cookie_jar),
    components: SecurityComponents = Depends(get_components),
) -> None:
    """Reject a form submission that does not carry the current CSRF token."""
    form = await request.form()
    if not components.csrf.validate_form(cookies, form):
        raise CSRFValidationError()


async def require_session(
    cookies: CookieJar = Depends(get_cookie_jar),
    components: SecurityComponents = Depends(get_components),
) -> None:
    """Extend the current session or force re-authentication."""
    if not await components.guardian.extend(cookies):
        raise SessionExpiredError(reason="invalid")
