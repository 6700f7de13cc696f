"""
Pydantic models for PollGuard API responses.
"""

from pollguard.models.auth import AuthResponse, CSRFTokenResponse, LogoutResponse
from pollguard.models.session import SessionExtendResponse, SessionStatusResponse, TimeoutInfoModel

__all__ = [
    "AuthResponse",
    "CSRFTokenResponse",
    "LogoutResponse",
    "SessionExtendResponse",
    "SessionStatusResponse",
    "TimeoutInfoModel",
]
