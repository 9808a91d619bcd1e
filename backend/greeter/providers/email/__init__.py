"""Email transport module.

Delivery of one-time verification codes.
"""

from greeter.providers.email.base import EmailTransport
from greeter.providers.email.memory_adapter import MemoryEmailTransport, SentEmail
from greeter.providers.email.resend_adapter import ResendEmailTransport

__all__ = [
    # Base types
    "EmailTransport",
    # Adapters
    "MemoryEmailTransport",
    "ResendEmailTransport",
    "SentEmail",
]
