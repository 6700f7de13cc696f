"""
Shared pytest fixtures for PollGuard tests.
"""

import os

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing app modules
# This ensures Settings validation passes during test collection
os.environ.setdefault("POLLGUARD_DEBUG", "true")
os.environ.setdefault("POLLGUARD_COOKIE_SECURE", "false")

from pollguard.clock import ManualClock  # noqa: E402
from pollguard.config.settings import Settings, reset_settings  # noqa: E402
from pollguard.identity import InMemoryIdentityProvider  # noqa: E402

# 2024-01-01T00:00:00Z
START_MS = 1_704_067_200_000

VALID_PASSWORD = "Str0ng!Passw0rd"


class MemoryCookieStore:
    """Cookie store that expires cookies by max-age, like a browser would."""

    def __init__(self, clock: ManualClock):
        self._clock = clock
        self._cookies: dict[str, tuple[str, int]] = {}

    def get(self, name: str) -> str | None:
        item = self._cookies.get(name)
        if item is None:
            return None
        value, expires_at = item
        if self._clock.now_ms() >= expires_at:
            del self._cookies[name]
            return None
        return value

    def set(self, name: str, value: str, max_age: int) -> None:
        self._cookies[name] = (value, self._clock.now_ms() + max_age * 1000)

    def delete(self, name: str) -> None:
        self._cookies.pop(name, None)

    def max_age_of(self, name: str) -> int | None:
        """Remaining lifetime of a cookie in seconds."""
        item = self._cookies.get(name)
        if item is None:
            return None
        return (item[1] - self._clock.now_ms()) // 1000

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None


@pytest.fixture(autouse=True)
def reset_cached_settings():
    """Reset cached settings between tests to avoid state leakage."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def clock() -> ManualClock:
    """Manual clock starting at a fixed instant."""
    return ManualClock(START_MS)


@pytest.fixture
def cookies(clock) -> MemoryCookieStore:
    """In-memory cookie store bound to the manual clock."""
    return MemoryCookieStore(clock)


@pytest.fixture
def identity_provider() -> InMemoryIdentityProvider:
    """Development identity provider."""
    return InMemoryIdentityProvider()


@pytest.fixture
def settings() -> Settings:
    """Settings suitable for running over plain HTTP in tests."""
    return Settings(debug=True, cookie_secure=False, log_json=False)


@pytest.fixture
def app(settings, identity_provider, clock):
    """Application wired to the manual clock and in-memory provider."""
    from pollguard.main import create_app

    return create_app(settings=settings, identity_provider=identity_provider, clock=clock)


@pytest.fixture
def client(app) -> TestClient:
    """Test client for the application."""
    return TestClient(app)


@pytest.fixture
def csrf_token(client) -> str:
    """Issue a CSRF token through the API; the client keeps the cookies."""
    response = client.get("/auth/csrf")
    assert response.status_code == 200
    return response.json()["csrf_token"]
