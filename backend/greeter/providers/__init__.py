"""Provider abstraction layer.

Exports:
    Error classes for provider error handling
    Factory functions for provider instances
"""

from greeter.providers.errors import (
    AuthenticationError,
    EmailDeliveryError,
    PermissionDeniedError,
    ProviderError,
    RateLimitError,
    TransientError,
)
from greeter.providers.factory import get_directory, get_email_transport

__all__ = [
    # Errors
    "ProviderError",
    "RateLimitError",
    "AuthenticationError",
    "PermissionDeniedError",
    "TransientError",
    "EmailDeliveryError",
    # Factory
    "get_directory",
    "get_email_transport",
]
