"""Email sending via Resend API.

Simple HTTP POST to Resend with a plain-text verification email.
"""

import logging

import httpx

from greeter.providers.email.base import EmailTransport
from greeter.providers.errors import EmailDeliveryError

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"
_RESEND_TIMEOUT = 10.0


def build_verification_text(*, code: str, display_name: str, ttl_minutes: int) -> str:
    """Plain-text body of the verification email."""
    return (
        f"Hi {display_name},\n\n"
        f"Your verification code is: {code}\n\n"
        f"Enter it in the onboarding form to finish setup. "
        f"The code expires in {ttl_minutes} minutes.\n\n"
        "If you didn't request this, you can safely ignore this email."
    )


class ResendEmailTransport(EmailTransport):
    """Sends verification codes through Resend.

    Args:
        api_key: Resend API key.
        sender: "From" address (must be a verified Resend domain).
        ttl_minutes: Code lifetime, quoted in the email body.
        api_url: Override for the Resend endpoint.
        transport: Optional httpx transport (tests inject a MockTransport).
    """

    def __init__(
        self,
        *,
        api_key: str,
        sender: str,
        ttl_minutes: int,
        api_url: str = _RESEND_API_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._sender = sender
        self._ttl_minutes = ttl_minutes
        self._api_url = api_url
        self._transport = transport

    @property
    def backend_name(self) -> str:
        """Return 'resend'."""
        return "resend"

    async def send_verification_code(
        self, *, to_address: str, code: str, display_name: str
    ) -> None:
        """Send a verification code email via Resend.

        Args:
            to_address: Recipient email address.
            code: Plain 6-digit code.
            display_name: Recipient's full name.

        Raises:
            EmailDeliveryError: On network failure or a non-2xx response.
        """
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                resp = await client.post(
                    self._api_url,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                    json={
                        "from": self._sender,
                        "to": to_address,
                        "subject": "Your community verification code",
                        "text": build_verification_text(
                            code=code,
                            display_name=display_name,
                            ttl_minutes=self._ttl_minutes,
                        ),
                    },
                    timeout=_RESEND_TIMEOUT,
                )
                resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Failed to send verification email", exc_info=True)
            raise EmailDeliveryError(str(e)) from e
