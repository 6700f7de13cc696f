"""
Client identification for rate limiting.
"""

from starlette.requests import Request

from pollguard.constants import (
    CDN_CONNECTING_IP_HEADER,
    FORWARDED_FOR_HEADER,
    REAL_IP_HEADER,
    UNKNOWN_IDENTIFIER,
)


def get_client_identifier(request: Request) -> str:
    """
    Derive the client identifier used to bucket rate-limit state.

    Priority: first X-Forwarded-For entry, X-Real-IP, CF-Connecting-IP.
    Requests carrying none of these share the "unknown" bucket, so
    stripping the headers never escapes rate limiting.

    Args:
        request: Incoming request

    Returns:
        Client identifier string
    """
    forwarded = request.headers.get(FORWARDED_FOR_HEADER)
    if forwarded:
        # X-Forwarded-For format: "client, proxy1, proxy2, ..."
        client = forwarded.split(",")[0].strip()
        if client:
            return client

    for header in (REAL_IP_HEADER, CDN_CONNECTING_IP_HEADER):
        value = request.headers.get(header, "").strip()
        if value:
            return value

    return UNKNOWN_IDENTIFIER
