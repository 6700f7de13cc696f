"""
Health check endpoints.
"""

from fastapi import APIRouter, Depends

from pollguard import __version__
from pollguard.dependencies import SecurityComponents, get_components

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(components: SecurityComponents = Depends(get_components)) -> dict:
    """
    Health check endpoint.

    Returns the service status and the size of the in-memory rate-limit
    maps, which grow with the number of distinct clients seen.
    """
    return {
        "status": "healthy",
        "service": "pollguard",
        "version": __version__,
        "rate_limit_entries": {
            "auth": len(components.auth_limiter),
            "general": len(components.general_limiter),
        },
    }
