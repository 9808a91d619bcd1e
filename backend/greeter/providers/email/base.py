"""Abstract base class for verification email delivery."""

from abc import ABC, abstractmethod


class EmailTransport(ABC):
    """Delivers one-time verification codes.

    Contract: ``send_verification_code`` returns only after the provider
    accepted the message, and raises EmailDeliveryError otherwise. It never
    reports success for a message that was not handed over.
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return backend identifier (e.g., 'resend', 'memory')."""
        ...

    @abstractmethod
    async def send_verification_code(
        self, *, to_address: str, code: str, display_name: str
    ) -> None:
        """Send the code to the address.

        Args:
            to_address: Recipient (the institutional address being verified).
            code: Plain 6-digit code.
            display_name: Member's full name, used in the greeting.

        Raises:
            EmailDeliveryError: If the provider did not accept the message.
        """
        ...
