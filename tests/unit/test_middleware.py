"""Tests for CORS, security headers, and rate limiting middleware."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.requests import Request

from schools_api.api.middleware import RateLimitMiddleware, SecurityHeadersMiddleware, get_client_ip
from schools_api.core.rate_limit import RateLimitStore


def _create_test_app() -> FastAPI:
    """Create a minimal FastAPI app for middleware testing."""
    app = FastAPI()

    @app.get("/test")
    async def test_route() -> dict:
        return {"ok": True}

    return app


def _request(headers: dict[str, str], client: tuple[str, int] | None = ("10.0.0.1", 1234)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": client,
    }
    return Request(scope)


class TestSecurityHeadersMiddleware:
    """Tests for SecurityHeadersMiddleware."""

    @pytest.fixture
    def client(self) -> TestClient:
        app = _create_test_app()
        app.add_middleware(SecurityHeadersMiddleware)
        return TestClient(app)

    def test_security_headers(self, client: TestClient) -> None:
        response = client.get("/test")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "max-age=31536000" in response.headers["Strict-Transport-Security"]


class TestRateLimitMiddleware:
    """Tests for RateLimitMiddleware."""

    def test_allows_requests_under_limit(self) -> None:
        app = _create_test_app()
        app.add_middleware(RateLimitMiddleware, store=RateLimitStore(5))
        client = TestClient(app)

        for _ in range(5):
            assert client.get("/test").status_code == 200

    def test_blocks_requests_over_limit(self) -> None:
        app = _create_test_app()
        app.add_middleware(RateLimitMiddleware, store=RateLimitStore(2))
        client = TestClient(app)

        client.get("/test")
        client.get("/test")
        response = client.get("/test")

        assert response.status_code == 429
        assert response.json() == {"detail": "Rate limit exceeded"}

    def test_limits_by_forwarded_ip(self) -> None:
        store = RateLimitStore(1)
        app = _create_test_app()
        app.add_middleware(RateLimitMiddleware, store=store, trusted_proxy_headers=["X-Forwarded-For"])
        client = TestClient(app)

        assert client.get("/test", headers={"X-Forwarded-For": "1.1.1.1"}).status_code == 200
        assert client.get("/test", headers={"X-Forwarded-For": "2.2.2.2"}).status_code == 200
        assert client.get("/test", headers={"X-Forwarded-For": "1.1.1.1"}).status_code == 429
        assert "1.1.1.1" in store
        assert "2.2.2.2" in store

    def test_store_bounded_by_max_clients(self) -> None:
        store = RateLimitStore(10, max_clients=3)
        app = _create_test_app()
        app.add_middleware(RateLimitMiddleware, store=store, trusted_proxy_headers=["X-Real-IP"])
        client = TestClient(app)

        for i in range(10):
            client.get("/test", headers={"X-Real-IP": f"10.0.0.{i}"})

        assert len(store) == 3
        assert "10.0.0.9" in store
        assert "10.0.0.0" not in store


class TestGetClientIp:
    """Tests for get_client_ip."""

    def test_forwarded_for_uses_leftmost(self) -> None:
        request = _request({"X-Forwarded-For": "1.2.3.4, 10.0.0.2"})
        assert get_client_ip(request) == "1.2.3.4"

    def test_priority_order(self) -> None:
        request = _request({"X-Real-IP": "5.5.5.5", "CF-Connecting-IP": "6.6.6.6"})
        assert get_client_ip(request) == "6.6.6.6"

    def test_falls_back_to_client_host(self) -> None:
        assert get_client_ip(_request({})) == "10.0.0.1"

    def test_empty_trusted_list_ignores_headers(self) -> None:
        request = _request({"X-Forwarded-For": "1.2.3.4"})
        assert get_client_ip(request, []) == "10.0.0.1"

    def test_unknown_without_client(self) -> None:
        assert get_client_ip(_request({}, client=None)) == "unknown"
