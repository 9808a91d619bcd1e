"""FastAPI application entry point.

This module creates and configures the FastAPI application, including:
- Exception handlers for API errors
- API v1 router mounting
- Health check endpoints
- Lifespan: catalog refresh on startup, background sweep worker
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from greeter.api.v1.router import router as v1_router
from greeter.core.config import settings
from greeter.core.errors import APIError, TransportError
from greeter.core.rate_limiting import limiter, rate_limit_exceeded_handler
from greeter.core.responses import ErrorDetail, ErrorResponse
from greeter.providers.factory import close_providers
from greeter.services.onboarding_flow import get_onboarding_flow
from greeter.services.sweep_worker import SweepWorker

logger = structlog.get_logger()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses.

    Headers added:
    - X-Content-Type-Options: Prevents MIME sniffing
    - Cache-Control: Views contain member emails; never cache them
    - Content-Security-Policy: API returns no HTML
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Add security headers to response."""
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"

        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store, max-age=0"

        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'none'"
        )

        return response


def api_error_handler(_request: Request, exc: APIError) -> JSONResponse:
    """Handle custom API errors.

    Args:
        request: The incoming request.
        exc: The APIError that was raised.

    Returns:
        JSONResponse with error envelope and appropriate status code.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=exc.code,
                message=exc.message,
                details=exc.details,
            )
        ).model_dump(),
    )


def validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors from FastAPI.

    Converts FastAPI's validation errors to our standard format.

    Args:
        request: The incoming request.
        exc: The RequestValidationError from Pydantic.

    Returns:
        JSONResponse with VALIDATION_ERROR code and field-level details.
    """
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error=ErrorDetail(
                code="VALIDATION_ERROR",
                message="Request validation failed",
                details=[
                    {"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]}
                    for e in exc.errors()
                ],
            )
        ).model_dump(),
    )


def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions.

    Returns 500 INTERNAL_ERROR without exposing stack traces.

    Args:
        request: The incoming request.
        exc: The unhandled exception.

    Returns:
        JSONResponse with generic error message (500).
    """
    logger.exception("Unhandled exception", exc_info=exc, path=str(request.url.path))

    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="INTERNAL_ERROR",
                message="An unexpected error occurred",
            )
        ).model_dump(),
    )


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Startup: refresh the role catalog, start the sweep worker.

    A failed catalog refresh is logged and the service still starts; the
    next member join or admin refresh retries it.
    """
    flow = get_onboarding_flow()
    try:
        await flow.refresh_catalog()
    except TransportError:
        logger.warning("startup_catalog_refresh_failed")

    worker: SweepWorker | None = None
    if settings.sweep_interval_seconds > 0:
        worker = SweepWorker(flow, interval_seconds=settings.sweep_interval_seconds)
        worker.start()

    try:
        yield
    finally:
        if worker is not None:
            await worker.stop()
        await close_providers()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    WHY FACTORY FUNCTION:
    - Enables testing with different configurations
    - Clear separation between app creation and startup

    Returns:
        Configured FastAPI application instance.
    """
    logging.getLogger("greeter").setLevel(settings.log_level.upper())

    app = FastAPI(
        title="Greeter API",
        version="1.0.0",
        description="Community member onboarding: email verification and role selection",
        lifespan=lifespan,
    )

    app.add_middleware(SecurityHeadersMiddleware)

    # Register exception handlers
    # Order matters: specific handlers first, then catch-all
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, internal_error_handler)

    app.state.limiter = limiter

    # Include v1 router at /api/v1
    app.include_router(v1_router, prefix="/api/v1")

    # Health check endpoints (outside versioned API)
    @app.get("/", response_class=PlainTextResponse)
    def root() -> str:
        """Liveness probe for the hosting platform."""
        return "OK"

    @app.get("/health")
    def health_check() -> dict:
        """Health check endpoint for monitoring.

        Returns:
            {"status": "ok", "time": <ISO-8601 UTC>} if service is running.
        """
        return {"status": "ok", "time": datetime.now(UTC).isoformat()}

    return app


# Create the application instance
# Used by uvicorn: uvicorn greeter.main:app
app = create_app()
