"""In-memory email transport for development and testing."""

from dataclasses import dataclass

from greeter.providers.email.base import EmailTransport
from greeter.providers.errors import EmailDeliveryError


@dataclass(frozen=True)
class SentEmail:
    """A message accepted by the memory transport."""

    to_address: str
    code: str
    display_name: str


class MemoryEmailTransport(EmailTransport):
    """Collects messages instead of sending them.

    Attributes:
        sent: Messages accepted so far, oldest first.
        fail: When True, every send raises EmailDeliveryError.
    """

    def __init__(self) -> None:
        self.sent: list[SentEmail] = []
        self.fail = False

    @property
    def backend_name(self) -> str:
        """Return 'memory'."""
        return "memory"

    @property
    def last(self) -> SentEmail | None:
        """Most recently accepted message, if any."""
        return self.sent[-1] if self.sent else None

    async def send_verification_code(
        self, *, to_address: str, code: str, display_name: str
    ) -> None:
        """Record the message, or fail when configured to."""
        if self.fail:
            raise EmailDeliveryError("Simulated delivery failure")
        self.sent.append(
            SentEmail(to_address=to_address, code=code, display_name=display_name)
        )
