"""Rate limiting configuration using slowapi.

Security: Limits how often a single member can submit verification codes,
on top of the per-challenge attempt bound.

Requests are keyed on the platform user id from the path when present, so
members behind the same gateway IP do not share a budget. Requests without
a user id fall back to IP-based keying.

Usage in routers:
    from greeter.core.rate_limiting import limiter

    @router.post("/{user_id}/code")
    @limiter.limit(settings.rate_limit_code_submit)
    async def submit_code(request: Request, user_id: str, ...):
        ...
"""

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from greeter.core.config import settings

# Platform snowflakes are ~20 digits; anything longer is not a real id.
_MAX_USER_KEY_LENGTH = 64


def _rate_limit_key_func(request: Request) -> str:
    """Get rate limit key from request.

    Key format:
    - User id in path: "user:{user_id}"
    - Otherwise: "ip:{ip}"

    Args:
        request: The incoming request.

    Returns:
        Rate limit key string.
    """
    user_id = request.path_params.get("user_id")
    if user_id and len(user_id) <= _MAX_USER_KEY_LENGTH:
        return f"user:{user_id}"
    return f"ip:{get_remote_address(request)}"


# Global limiter instance
# Configured with in-memory storage (suitable for single-instance deployment)
limiter = Limiter(
    key_func=_rate_limit_key_func,
    enabled=settings.rate_limit_enabled,
)


def rate_limit_exceeded_handler(
    _request: Request,
    exc: RateLimitExceeded,
) -> Response:
    """Handle rate limit exceeded errors.

    Security: Returns 429 Too Many Requests with standard error envelope.

    Args:
        request: The incoming request.
        exc: The rate limit exception.

    Returns:
        JSONResponse with 429 status and retry-after header.
    """
    # Parse retry-after from exception detail (e.g., "10 per 1 minute")
    # Fallback to 60 seconds if parsing fails
    try:
        retry_after = str(exc.detail.split()[-1])
        int(retry_after.rstrip("s"))
    except (ValueError, AttributeError, IndexError):
        retry_after = "60"

    return JSONResponse(
        status_code=429,
        content={
            "error": {
                "code": "RATE_LIMITED",
                "message": f"Rate limit exceeded: {exc.detail}",
            }
        },
        headers={"Retry-After": retry_after},
    )
