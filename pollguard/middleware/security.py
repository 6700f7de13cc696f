"""
Security middleware for PollGuard.

Binds a cookie jar to each request, applies the general-traffic rate
limiter, tags log events with a request ID and adds security headers to
all responses.
"""

from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from pollguard.audit import AuditEvent, rate_limit_event
from pollguard.client_ip import get_client_identifier
from pollguard.config.logging import set_request_id
from pollguard.cookies import CookieJar, CookiePolicy

REQUEST_ID_HEADER = "X-Request-ID"


class CookieJarMiddleware(BaseHTTPMiddleware):
    """
    Middleware that gives each request a `CookieJar`.

    Cookie writes made while handling the request, including while
    building an error response, are copied onto the outgoing response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        settings = request.app.state.security.settings
        jar = CookieJar(request.cookies, CookiePolicy(secure=settings.cookie_secure))
        request.state.cookie_jar = jar

        response = await call_next(request)
        if jar.has_changes:
            jar.apply(response)
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Middleware that enforces the general-traffic rate limit.

    Every admitted request counts as one attempt against the client's
    identifier; exceeding the limit blocks the client for the configured
    block duration.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        limiter = request.app.state.security.general_limiter
        identifier = get_client_identifier(request)

        status = limiter.status(identifier)
        if not status.allowed:
            rate_limit_event(
                AuditEvent.SECURITY_RATE_LIMIT,
                identifier,
                {"path": request.url.path, "method": request.method, "limiter": limiter.name},
            )
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many requests. Please try again later."},
                headers={"Retry-After": str(status.retry_after)},
            )

        limiter.record_failure(identifier)
        return await call_next(request)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Middleware that assigns a correlation ID to each request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware that adds security headers to responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"

        if "text/html" in response.headers.get("content-type", ""):
            response.headers["Content-Security-Policy"] = (
                "default-src 'self'; frame-ancestors 'none'; form-action 'self'"
            )

        return response
