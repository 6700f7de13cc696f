"""
Session endpoints.

- GET /session - session validity and timeout warning info
- POST /session/extend - refresh or terminate the current session (CSRF checked)
"""

from fastapi import APIRouter, Depends, Request

from pollguard.cookies import CookieJar, get_cookie_jar
from pollguard.dependencies import SecurityComponents, get_components, require_csrf, require_session
from pollguard.models.session import SessionExtendResponse, SessionStatusResponse, TimeoutInfoModel
from pollguard.redirects import login_redirect_url, redirect_from_query

router = APIRouter(prefix="/session", tags=["session"])


@router.get("", response_model=SessionStatusResponse)
async def get_session_status(
    request: Request,
    cookies: CookieJar = Depends(get_cookie_jar),
    components: SecurityComponents = Depends(get_components),
) -> SessionStatusResponse:
    """
    Report whether the current session is valid.

    Read-only: an invalid session is reported, not terminated. For an
    invalid session the response carries the login URL to send the user
    to, with the page they were on (``redirect`` query parameter) as the
    return target when that target is safe.
    """
    guardian = components.guardian
    validation = await guardian.validate(cookies)

    if not validation.valid:
        app_url = components.settings.app_url
        return_to = redirect_from_query(dict(request.query_params), app_url)
        return SessionStatusResponse(
            valid=False,
            reason=validation.reason,
            login_url=login_redirect_url(return_to, app_url),
        )

    info = await guardian.timeout_info(cookies)
    return SessionStatusResponse(
        valid=True,
        timeout=TimeoutInfoModel.from_info(info) if info else None,
    )


@router.post("/extend", response_model=SessionExtendResponse)
async def extend_session(
    _csrf: None = Depends(require_csrf),
    _session: None = Depends(require_session),
    cookies: CookieJar = Depends(get_cookie_jar),
    components: SecurityComponents = Depends(get_components),
) -> SessionExtendResponse:
    """
    Extend the current session.

    Requires the current CSRF token. An expired session is terminated and
    the client must sign in again.
    """
    info = await components.guardian.timeout_info(cookies)
    return SessionExtendResponse(
        extended=True,
        timeout=TimeoutInfoModel.from_info(info) if info else None,
    )
