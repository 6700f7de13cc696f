"""
Application settings using pydantic-settings.

Environment variables are prefixed with POLLGUARD_.
"""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="POLLGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate settings for production safety."""
        if not self.debug and not self.cookie_secure:
            raise ValueError(
                "POLLGUARD_COOKIE_SECURE must be enabled in production. "
                "Set POLLGUARD_DEBUG=true for local development over HTTP."
            )

        if self.session_warning_seconds >= self.session_soft_timeout_seconds:
            raise ValueError("Session warning window must be shorter than the soft timeout")

        if self.csrf_token_ttl_seconds > self.csrf_secret_ttl_seconds:
            raise ValueError("CSRF token TTL must not exceed the CSRF secret TTL")

        return self

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Cookies
    cookie_secure: bool = True  # Set to False for local development over HTTP

    # Public origin of the app, used to accept absolute same-origin redirects
    app_url: str = "http://localhost:3000"

    # Authentication rate limiting
    auth_rate_limit_max: int = 5  # Failures allowed per window
    auth_rate_limit_window: int = 15 * 60  # Window duration in seconds
    auth_rate_limit_block: int = 30 * 60  # Block duration in seconds

    # General traffic rate limiting
    general_rate_limit_max: int = 100  # Requests allowed per window
    general_rate_limit_window: int = 60  # Window duration in seconds
    general_rate_limit_block: int = 5 * 60  # Block duration in seconds
    rate_limit_sweep_interval: int = 0  # Seconds between expired-entry sweeps; 0 disables

    # CSRF
    csrf_secret_ttl_seconds: int = 24 * 60 * 60
    csrf_token_ttl_seconds: int = 60 * 60

    # Session lifecycle
    session_soft_timeout_seconds: int = 30 * 60  # Advisory timeout shown to the client
    session_warning_seconds: int = 5 * 60  # Warn this long before the soft timeout
    session_max_idle_seconds: int = 60 * 60  # Hard idle limit
    session_max_lifetime_seconds: int = 24 * 60 * 60  # Absolute limit


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def reset_settings() -> None:
    """Clear the cached settings (for testing)."""
    get_settings.cache_clear()
