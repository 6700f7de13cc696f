"""
Middleware for PollGuard.
"""

from pollguard.middleware.security import (
    CookieJarMiddleware,
    RateLimitMiddleware,
    RequestIdMiddleware,
    SecurityHeadersMiddleware,
)

__all__ = [
    "CookieJarMiddleware",
    "RateLimitMiddleware",
    "RequestIdMiddleware",
    "SecurityHeadersMiddleware",
]
