"""
PollGuard - Main application entry point.

Request-security layer for the polling web application: rate limiting,
CSRF protection and session lifecycle enforcement.
"""

import asyncio
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from pollguard import __version__
from pollguard.clock import SYSTEM_CLOCK, Clock
from pollguard.config.logging import configure_logging, get_logger
from pollguard.config.settings import Settings, get_settings
from pollguard.dependencies import SecurityComponents, build_components
from pollguard.errors import AdmissionDeniedError, PollGuardError, RateLimitExceededError
from pollguard.identity import IdentityProvider
from pollguard.middleware.security import (
    CookieJarMiddleware,
    RateLimitMiddleware,
    RequestIdMiddleware,
    SecurityHeadersMiddleware,
)
from pollguard.routers import auth_router, health_router, session_router

logger = get_logger(__name__)


async def _rate_limit_sweep_loop(components: SecurityComponents, interval: int) -> None:
    """Background task that drops expired rate limit entries periodically."""
    while True:
        try:
            await asyncio.sleep(interval)
            purged = components.auth_limiter.purge_expired() + components.general_limiter.purge_expired()
            if purged > 0:
                logger.info("Rate limit sweep completed", entries_purged=purged)
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.error("Rate limit sweep failed", error=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown."""
    components: SecurityComponents = app.state.security
    settings = components.settings
    configure_logging(level=settings.log_level, json_format=settings.log_json)
    logger.info("Starting PollGuard", host=settings.host, port=settings.port)

    sweep_task: asyncio.Task | None = None
    if settings.rate_limit_sweep_interval > 0:
        sweep_task = asyncio.create_task(
            _rate_limit_sweep_loop(components, settings.rate_limit_sweep_interval)
        )
        logger.info("Started rate limit sweep task", interval=settings.rate_limit_sweep_interval)

    yield

    logger.info("Shutting down PollGuard")
    if sweep_task:
        sweep_task.cancel()
        try:
            await sweep_task
        except asyncio.CancelledError:
            pass


async def pollguard_error_handler(request: Request, exc: PollGuardError) -> JSONResponse:
    """Render PollGuard errors as JSON without leaking internal state."""
    headers: dict[str, str] = {}
    content: dict = {"detail": exc.message, "error": exc.__class__.__name__}

    if isinstance(exc, RateLimitExceededError):
        headers["Retry-After"] = str(exc.retry_after)
        content["retry_after"] = exc.retry_after
    elif not isinstance(exc, AdmissionDeniedError) and exc.status_code >= 500:
        logger.error("Request failed", error=exc.message, details=exc.details, path=request.url.path)
        content["detail"] = "Something went wrong. Please try again."

    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


def create_app(
    settings: Settings | None = None,
    identity_provider: IdentityProvider | None = None,
    clock: Clock = SYSTEM_CLOCK,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings; loaded from the environment if omitted
        identity_provider: Upstream identity provider; defaults to the
            in-memory development provider
        clock: Time source for all security components
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="PollGuard",
        description="Rate limiting, CSRF protection and session lifecycle for the polling app",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.debug else None,
    )
    app.state.security = build_components(settings, identity_provider=identity_provider, clock=clock)

    app.add_exception_handler(PollGuardError, pollguard_error_handler)

    # Added innermost first: the cookie jar must wrap routes and error
    # handlers, the rate limiter must run before any of them
    app.add_middleware(CookieJarMiddleware)
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(session_router)

    return app


def run():
    """Run the PollGuard server."""
    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_json)

    uvicorn.run(
        "pollguard.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
