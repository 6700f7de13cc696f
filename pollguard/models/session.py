"""
Pydantic models for session status.
"""

from pydantic import BaseModel, Field

from pollguard.session_guardian import TimeoutInfo


class TimeoutInfoModel(BaseModel):
    """Advisory session timeout information, in milliseconds."""

    time_until_warning: int
    time_until_timeout: int
    should_warn: bool
    should_timeout: bool

    @classmethod
    def from_info(cls, info: TimeoutInfo) -> "TimeoutInfoModel":
        return cls(
            time_until_warning=info.time_until_warning,
            time_until_timeout=info.time_until_timeout,
            should_warn=info.should_warn,
            should_timeout=info.should_timeout,
        )


class SessionStatusResponse(BaseModel):
    """Response for the session status endpoint."""

    valid: bool
    reason: str | None = Field(default=None, description="Why the session is invalid")
    timeout: TimeoutInfoModel | None = None
    login_url: str | None = Field(default=None, description="Where to re-authenticate")


class SessionExtendResponse(BaseModel):
    """Response for the session extend endpoint."""

    extended: bool
    timeout: TimeoutInfoModel | None = None
