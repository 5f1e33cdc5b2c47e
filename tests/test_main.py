import pytest

from clinic.core.config import settings
from clinic.core.rate_limit import InMemoryRateLimiter
from clinic.main import app
from .conftest import ADMIN_LOGIN

class TestPublicEndpoints:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "X-Process-Time" in response.headers

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["health"] == "/health"

    def test_unknown_route(self, client):
        response = client.get("/api/v1/nowhere")
        assert response.status_code == 404
        assert response.json()["error"] == "Not Found"

class TestRateLimiting:

    def test_headers_on_allowed_response(self, client):
        response = client.get("/api/v1/info")
        assert response.status_code == 200
        assert response.headers["X-RateLimit-Limit"] == "500"
        assert response.headers["X-RateLimit-Remaining"] == "499"

    def test_over_limit_returns_429(self, client):
        app.state.rate_limiter = InMemoryRateLimiter(max_requests=2, window_seconds=900)

        assert client.get("/api/v1/info").status_code == 200
        assert client.get("/api/v1/info").status_code == 200
        response = client.get("/api/v1/info")
        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) > 0
        assert response.headers["X-RateLimit-Remaining"] == "0"

        # Other paths and non-API routes have their own budget
        assert client.get("/api/v1/roles").status_code == 401
        assert client.get("/health").status_code == 200

    def test_clients_counted_separately(self, client):
        app.state.rate_limiter = InMemoryRateLimiter(max_requests=1, window_seconds=900)

        assert client.get("/api/v1/info", headers={"X-Forwarded-For": "203.0.113.1"}).status_code == 200
        assert client.get("/api/v1/info", headers={"X-Forwarded-For": "203.0.113.2"}).status_code == 200
        assert client.get("/api/v1/info", headers={"X-Forwarded-For": "203.0.113.1"}).status_code == 429

    def test_login_has_stricter_limit(self, client, monkeypatch):
        monkeypatch.setattr(settings, "RATE_LIMIT_STRICT_MAX_REQUESTS", 1)

        assert client.post("/api/v1/auth/login", json=ADMIN_LOGIN).status_code == 200
        response = client.post("/api/v1/auth/login", json=ADMIN_LOGIN)
        assert response.status_code == 429
        assert response.headers["X-RateLimit-Limit"] == "1"

if __name__ == "__main__":
    pytest.main([__file__])
