"""Provider error taxonomy.

Error classes for the platform directory and email transport adapters.
The onboarding flow translates these into ``TransportError`` (or logs and
continues, for cosmetic side effects).

WHY SEPARATE ERROR CLASSES:
- Enables callers to handle errors differently based on type
- Clear distinction between retryable and non-retryable errors
- Provider-agnostic error handling (adapters map to these)
"""


__all__ = [
    "ProviderError",
    "RateLimitError",
    "AuthenticationError",
    "PermissionDeniedError",
    "TransientError",
    "EmailDeliveryError",
]


class ProviderError(Exception):
    """Base class for all provider errors.

    All provider-specific exceptions should inherit from this class,
    allowing callers to catch all provider errors with a single handler.
    """

    pass


class RateLimitError(ProviderError):
    """Rate limit exceeded.

    WHY SEPARATE FROM TRANSIENT:
    - May have specific retry_after_seconds hint from provider
    """

    def __init__(self, message: str, retry_after_seconds: float | None = None):
        """Initialize RateLimitError.

        Args:
            message: Error description from the provider.
            retry_after_seconds: Optional hint from provider on when to retry.
        """
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class AuthenticationError(ProviderError):
    """Invalid or revoked bot token / API key.

    WHY NOT RETRYABLE:
    - Requires operator intervention (new credentials)
    """

    pass


class PermissionDeniedError(ProviderError):
    """Credentials are valid but lack permission for this member or role.

    E.g., setting the nickname of the guild owner, or managing a role
    positioned above the bot's highest role.
    """

    pass


class TransientError(ProviderError):
    """Temporary failure (network, server overload).

    WHY SEPARATE:
    - Safe to retry with exponential backoff
    - Includes: connection errors, timeouts, 5xx responses
    """

    pass


class EmailDeliveryError(ProviderError):
    """Verification email could not be handed to the email provider."""

    pass
