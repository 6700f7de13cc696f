"""
Tests for security middleware.
"""

import pytest
from fastapi.testclient import TestClient

from pollguard.config.settings import Settings
from pollguard.middleware.security import REQUEST_ID_HEADER, SecurityHeadersMiddleware


def _starlette_client(response_factory) -> TestClient:
    from starlette.applications import Starlette
    from starlette.routing import Route

    async def endpoint(request):
        return response_factory()

    app = Starlette(routes=[Route("/", endpoint)])
    app.add_middleware(SecurityHeadersMiddleware)
    return TestClient(app)


class TestSecurityHeadersMiddleware:
    """Tests for the SecurityHeadersMiddleware."""

    def test_adds_security_headers(self):
        """Should add security headers to HTTP responses."""
        from starlette.responses import JSONResponse

        response = _starlette_client(lambda: JSONResponse({"status": "ok"})).get("/")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
        assert response.headers["Cache-Control"] == "no-store"

    def test_adds_csp_for_html(self):
        """Should add CSP header for HTML responses."""
        from starlette.responses import HTMLResponse

        response = _starlette_client(lambda: HTMLResponse("<html></html>")).get("/")

        assert response.headers["Content-Security-Policy"] == (
            "default-src 'self'; frame-ancestors 'none'; form-action 'self'"
        )

    def test_no_csp_for_json(self):
        """Should not add CSP header for JSON responses."""
        from starlette.responses import JSONResponse

        response = _starlette_client(lambda: JSONResponse({})).get("/")

        assert "Content-Security-Policy" not in response.headers


class TestRateLimitMiddleware:
    """Tests for the general-traffic limiter."""

    @pytest.fixture
    def settings(self):
        return Settings(debug=True, cookie_secure=False, log_json=False, general_rate_limit_max=3)

    def test_blocks_after_limit(self, client):
        headers = {"X-Forwarded-For": "203.0.113.7"}
        for _ in range(3):
            assert client.get("/health", headers=headers).status_code == 200

        response = client.get("/health", headers=headers)

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "300"
        assert response.json() == {"detail": "Too many requests. Please try again later."}

    def test_clients_limited_independently(self, client):
        for _ in range(3):
            client.get("/health", headers={"X-Forwarded-For": "203.0.113.7"})

        response = client.get("/health", headers={"X-Forwarded-For": "198.51.100.1"})

        assert response.status_code == 200

    def test_block_expires(self, client, clock):
        headers = {"X-Forwarded-For": "203.0.113.7"}
        for _ in range(4):
            client.get("/health", headers=headers)

        clock.advance(300 * 1000 + 1)

        assert client.get("/health", headers=headers).status_code == 200

    def test_blocked_response_has_security_headers(self, client):
        headers = {"X-Forwarded-For": "203.0.113.7"}
        for _ in range(3):
            client.get("/health", headers=headers)

        response = client.get("/health", headers=headers)

        assert response.headers["X-Frame-Options"] == "DENY"


class TestRequestIdMiddleware:
    def test_echoes_incoming_id(self, client):
        response = client.get("/health", headers={REQUEST_ID_HEADER: "abc123"})
        assert response.headers[REQUEST_ID_HEADER] == "abc123"

    def test_generates_id(self, client):
        response = client.get("/health")
        assert len(response.headers[REQUEST_ID_HEADER]) == 8


class TestCookieJarMiddleware:
    def test_cookie_policy_follows_settings(self, client):
        response = client.get("/auth/csrf")

        set_cookies = response.headers.get_list("set-cookie")
        assert len(set_cookies) == 2
        for header in set_cookies:
            assert "HttpOnly" in header
            assert "SameSite=strict" in header
            assert "Secure" not in header

    def test_secure_cookies_in_production(self, identity_provider, clock):
        from pollguard.main import create_app

        app = create_app(
            settings=Settings(debug=True, cookie_secure=True, log_json=False),
            identity_provider=identity_provider,
            clock=clock,
        )
        response = TestClient(app).get("/auth/csrf")

        for header in response.headers.get_list("set-cookie"):
            assert "Secure" in header
