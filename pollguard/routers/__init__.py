"""
API routers for PollGuard.
"""

from pollguard.routers.auth import router as auth_router
from pollguard.routers.health import router as health_router
from pollguard.routers.session import router as session_router

__all__ = [
    "auth_router",
    "health_router",
    "session_router",
]
