"""API error classes.

Every failure of the onboarding flow is one of these. The exception handlers
in ``greeter.main`` render them into the ``{"error": {...}}`` envelope; the
``message`` is the user-visible text the gateway shows to the member.

WHY CUSTOM ERROR CLASSES:
- Consistent error response format across all endpoints
- Easy to map to HTTP status codes in exception handlers
- Every terminal outcome of a store operation is a distinguishable error
"""


class APIError(Exception):
    """Base class for API errors.

    All API errors have a code, message, and HTTP status.
    Subclasses set default status_code.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Field validation failed (400).

    Use for malformed or non-institutional email addresses, missing fields,
    unknown categories. Raised before any state change.
    """

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class UnauthorizedError(APIError):
    """Authentication required (401).

    Use when the gateway or admin token is missing or wrong.
    """

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class NotFoundError(APIError):
    """Resource not found (404).

    Use when there is no session or no pending challenge for the user.
    Surfaced to the member as "restart setup".
    """

    def __init__(self, resource: str, message: str | None = None) -> None:
        super().__init__(
            code="NOT_FOUND",
            message=message or f"No {resource} found. Please restart setup.",
            status_code=404,
        )


class ExpiredError(APIError):
    """Verification code past its TTL (410).

    The challenge has been discarded; a fresh code must be requested.
    """

    def __init__(
        self,
        message: str = "Your verification code has expired. Please request a new code.",
    ) -> None:
        super().__init__(
            code="CODE_EXPIRED",
            message=message,
            status_code=410,
        )


class MismatchError(APIError):
    """Submitted code does not match the issued one (400).

    The challenge is kept so the member can try again until it expires.

    Args:
        attempts_remaining: Attempts left before the challenge is discarded,
            or None when attempts are unbounded.
    """

    def __init__(self, attempts_remaining: int | None = None) -> None:
        details = None
        if attempts_remaining is not None:
            details = [{"attempts_remaining": attempts_remaining}]
        super().__init__(
            code="CODE_MISMATCH",
            message="That code is incorrect. Try again or request a new code.",
            status_code=400,
            details=details,
        )


class TooManyAttemptsError(APIError):
    """Attempt bound reached for the current code (429).

    The challenge has been discarded; a fresh code must be requested.
    """

    def __init__(self) -> None:
        super().__init__(
            code="TOO_MANY_ATTEMPTS",
            message="Too many incorrect attempts. Please request a new code.",
            status_code=429,
        )


class CooldownError(APIError):
    """Resend requested inside the cooldown window (429).

    Args:
        retry_after_seconds: Seconds until a resend is accepted.
    """

    def __init__(self, retry_after_seconds: int) -> None:
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            code="RESEND_COOLDOWN",
            message=(
                "A code was sent recently. "
                f"Please wait {retry_after_seconds}s before requesting another."
            ),
            status_code=429,
            details=[{"retry_after_seconds": retry_after_seconds}],
        )


class ProtectedRoleError(APIError):
    """Self-service toggle of a staff/leadership role (403)."""

    def __init__(self, role_name: str) -> None:
        super().__init__(
            code="ROLE_PROTECTED",
            message=f"The role '{role_name}' cannot be self-assigned.",
            status_code=403,
        )


class UnavailableRoleError(APIError):
    """Role is not offered in the active category (422)."""

    def __init__(self, role_name: str) -> None:
        super().__init__(
            code="ROLE_UNAVAILABLE",
            message=f"The role '{role_name}' is not available here.",
            status_code=422,
        )


class RoleNotFoundError(APIError):
    """Catalog role does not resolve to a platform role (404).

    The catalog snapshot is stale relative to the platform.
    """

    def __init__(self, role_name: str) -> None:
        super().__init__(
            code="ROLE_NOT_FOUND",
            message=f"The role '{role_name}' no longer exists. Please try again later.",
            status_code=404,
        )


class InvalidStateError(APIError):
    """Action not allowed in the member's current onboarding phase (422).

    E.g., toggling a role before picking a category.
    """

    def __init__(self, message: str) -> None:
        super().__init__(
            code="INVALID_STATE_TRANSITION",
            message=message,
            status_code=422,
        )


class TransportError(APIError):
    """Email or platform API failure (502).

    Logged by the caller; the operation is left retryable.
    """

    def __init__(
        self,
        message: str = "Something went wrong talking to an external service. Please try again.",
    ) -> None:
        super().__init__(
            code="TRANSPORT_ERROR",
            message=message,
            status_code=502,
        )


class InternalError(APIError):
    """Unexpected server error (500).

    Use for unhandled exceptions. Never expose stack traces to clients.
    """

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__(
            code="INTERNAL_ERROR",
            message=message,
            status_code=500,
        )
