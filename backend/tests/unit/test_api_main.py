"""Tests for FastAPI application and exception handlers."""

from datetime import datetime

import pytest
from httpx import ASGITransport, AsyncClient

from greeter.core.errors import (
    CooldownError,
    InvalidStateError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from greeter.main import create_app


@pytest.fixture
def bare_app():
    """Application without dependency overrides."""
    return create_app()


@pytest.fixture
async def bare_client(bare_app):
    """Async HTTP client for the bare application."""
    transport = ASGITransport(app=bare_app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestHealthEndpoints:
    """Liveness and health checks."""

    async def test_root_returns_ok(self, bare_client):
        response = await bare_client.get("/")

        assert response.status_code == 200
        assert response.text == "OK"

    async def test_health_returns_status_and_time(self, bare_client):
        response = await bare_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert datetime.fromisoformat(body["time"]).tzinfo is not None


class TestAPIVersioning:
    """Tests for API versioning."""

    async def test_v1_router_mounted(self, bare_client):
        """Unknown v1 paths are 404, not router errors."""
        response = await bare_client.get("/api/v1/nonexistent")
        assert response.status_code == 404


class TestExceptionHandlers:
    """Custom exceptions render into the error envelope."""

    @pytest.mark.parametrize(
        ("error", "status", "code"),
        [
            (ValidationError("Bad email"), 400, "VALIDATION_ERROR"),
            (NotFoundError("onboarding session"), 404, "NOT_FOUND"),
            (InvalidStateError("Pick a category first."), 422, "INVALID_STATE_TRANSITION"),
            (CooldownError(12), 429, "RESEND_COOLDOWN"),
            (TransportError(), 502, "TRANSPORT_ERROR"),
        ],
    )
    async def test_api_errors(self, bare_app, bare_client, error, status, code):
        @bare_app.get("/test/api-error")
        async def raise_api_error():
            raise error

        response = await bare_client.get("/test/api-error")

        assert response.status_code == status
        body = response.json()
        assert body["error"]["code"] == code
        assert body["error"]["message"] == error.message

    async def test_error_details_included(self, bare_app, bare_client):
        @bare_app.get("/test/details")
        async def raise_with_details():
            raise ValidationError("Invalid input", details=[{"field": "email"}])

        response = await bare_client.get("/test/details")

        assert response.json()["error"]["details"] == [{"field": "email"}]

    async def test_request_validation_error_returns_400(self, bare_client):
        """Malformed bodies use the same envelope."""
        response = await bare_client.post(
            "/api/v1/onboarding/123/profile", json={"full_name": "A. Kumar"}
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert body["error"]["details"]

    async def test_unhandled_exception_returns_500(self, bare_app, bare_client):
        @bare_app.get("/test/crash")
        async def crash():
            raise RuntimeError("secret internals")

        response = await bare_client.get("/test/crash")

        assert response.status_code == 500
        body = response.json()
        assert body["error"]["code"] == "INTERNAL_ERROR"
        assert "secret internals" not in response.text


class TestSecurityHeaders:
    """Headers added to every response."""

    async def test_api_responses_are_not_cached(self, client):
        response = await client.get("/api/v1/onboarding/123")

        assert response.headers["Cache-Control"] == "no-store, max-age=0"
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    async def test_csp_on_health(self, bare_client):
        response = await bare_client.get("/health")

        assert "default-src 'none'" in response.headers["Content-Security-Policy"]
