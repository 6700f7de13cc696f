"""
Pydantic models for authentication.
"""

from pydantic import BaseModel, Field


class CSRFTokenResponse(BaseModel):
    """Response carrying a freshly issued CSRF token."""

    csrf_token: str = Field(description="Value to submit in the csrf-token form field")


class AuthResponse(BaseModel):
    """Response for a successful login or registration."""

    success: bool = True
    user_id: str
    redirect_to: str = Field(description="Safe post-authentication redirect target")


class LogoutResponse(BaseModel):
    """Response for logout."""

    success: bool = True
    redirect_to: str
