"""
Authentication endpoints.

Provides:
- GET /auth/csrf - Issue a CSRF token for a protected form
- POST /auth/login - Sign in with email and password
- POST /auth/register - Create an account and sign in
- POST /auth/logout - Terminate the session and clear CSRF state

Login and registration run the auth rate limiter before any credential is
examined, then CSRF verification, then input validation.
"""

from fastapi import APIRouter, Depends, Form

from pollguard.audit import AuditEvent, auth_event, internal_error, security_event
from pollguard.constants import LOGIN_PATH
from pollguard.cookies import CookieJar, get_cookie_jar
from pollguard.dependencies import (
    SecurityComponents,
    get_components,
    require_auth_admission,
    require_csrf,
)
from pollguard.errors import (
    AccountExistsError,
    IdentityProviderError,
    InvalidCredentialsError,
)
from pollguard.models.auth import AuthResponse, CSRFTokenResponse, LogoutResponse
from pollguard.redirects import sanitize_redirect_param
from pollguard.validation import (
    validate_display_name,
    validate_email,
    validate_password_present,
    validate_password_strength,
)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/csrf", response_model=CSRFTokenResponse)
async def issue_csrf_token(
    cookies: CookieJar = Depends(get_cookie_jar),
    components: SecurityComponents = Depends(get_components),
) -> CSRFTokenResponse:
    """
    Issue a CSRF token for the next protected form submission.

    Any previously issued token stops validating.
    """
    return CSRFTokenResponse(csrf_token=components.csrf.issue_token(cookies))


@router.post("/login", response_model=AuthResponse)
async def login(
    identifier: str = Depends(require_auth_admission),
    _csrf: None = Depends(require_csrf),
    email: str = Form(""),
    password: str = Form(""),
    redirect: str | None = Form(None),
    cookies: CookieJar = Depends(get_cookie_jar),
    components: SecurityComponents = Depends(get_components),
) -> AuthResponse:
    """
    Sign in with email and password.

    Failed sign-ins count toward the client's rate limit; a successful one
    clears it. The error message never says which credential was wrong.
    """
    email = validate_email(email)
    validate_password_present(password)

    try:
        session = await components.identity_provider.sign_in(cookies, email, password)
    except InvalidCredentialsError:
        components.auth_limiter.record_failure(identifier)
        security_event(
            AuditEvent.AUTH_LOGIN_FAILURE,
            {"remaining_attempts": components.auth_limiter.remaining_attempts(identifier)},
        )
        raise
    except Exception as e:
        components.auth_limiter.record_failure(identifier)
        internal_error(AuditEvent.INTERNAL_IDENTITY_PROVIDER, e, {"operation": "sign_in"})
        raise IdentityProviderError("sign_in", original_error=str(e))

    components.auth_limiter.record_success(identifier)
    await components.guardian.initialize(cookies)
    auth_event(AuditEvent.AUTH_LOGIN_SUCCESS, session.user_id)

    return AuthResponse(
        user_id=session.user_id,
        redirect_to=sanitize_redirect_param(redirect, components.settings.app_url),
    )


@router.post("/register", response_model=AuthResponse)
async def register(
    identifier: str = Depends(require_auth_admission),
    _csrf: None = Depends(require_csrf),
    name: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    redirect: str | None = Form(None),
    cookies: CookieJar = Depends(get_cookie_jar),
    components: SecurityComponents = Depends(get_components),
) -> AuthResponse:
    """
    Create an account and sign in.

    Rejected registrations count toward the client's rate limit.
    """
    email = validate_email(email)
    validate_password_strength(password)
    display_name = validate_display_name(name)

    try:
        session = await components.identity_provider.sign_up(cookies, email, password, display_name)
    except AccountExistsError:
        components.auth_limiter.record_failure(identifier)
        security_event(AuditEvent.AUTH_REGISTER_FAILURE, {"reason": "account_exists"})
        raise
    except Exception as e:
        components.auth_limiter.record_failure(identifier)
        internal_error(AuditEvent.INTERNAL_IDENTITY_PROVIDER, e, {"operation": "sign_up"})
        raise IdentityProviderError("sign_up", original_error=str(e))

    components.auth_limiter.record_success(identifier)
    await components.guardian.initialize(cookies)
    auth_event(AuditEvent.AUTH_REGISTER_SUCCESS, session.user_id)

    return AuthResponse(
        user_id=session.user_id,
        redirect_to=sanitize_redirect_param(redirect, components.settings.app_url),
    )


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    _csrf: None = Depends(require_csrf),
    cookies: CookieJar = Depends(get_cookie_jar),
    components: SecurityComponents = Depends(get_components),
) -> LogoutResponse:
    """Terminate the session and destroy the client's CSRF token pair."""
    await components.guardian.terminate(cookies, "logout")
    components.csrf.clear_tokens(cookies)
    auth_event(AuditEvent.AUTH_LOGOUT)

    return LogoutResponse(redirect_to=LOGIN_PATH)
