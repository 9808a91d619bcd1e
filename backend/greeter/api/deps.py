"""Shared dependencies for API endpoints.

The chat gateway is the only client. It authenticates with a shared
service token; admin commands additionally carry the admin token. Checking
that the invoking member holds elevated platform privilege is the
gateway's job.

WHY DEPENDENCY INJECTION:
- Consistent auth across all endpoints
- Testable with overridden dependencies (fresh flow per test)
"""

import secrets
from typing import Annotated

from fastapi import Depends, Header, Path

from greeter.core.config import settings
from greeter.core.errors import UnauthorizedError
from greeter.services.onboarding_flow import OnboardingFlow, get_onboarding_flow


def _token_matches(expected: str, presented: str | None) -> bool:
    """Constant-time token comparison. An unset token accepts anything."""
    if not expected:
        return True
    if presented is None:
        return False
    return secrets.compare_digest(expected.encode(), presented.encode())


async def require_service_token(
    x_service_token: Annotated[str | None, Header()] = None,
) -> None:
    """Reject requests without the gateway's service token.

    Raises:
        UnauthorizedError: Token missing or wrong.
    """
    if not _token_matches(settings.service_token.get_secret_value(), x_service_token):
        raise UnauthorizedError()


async def require_admin_token(
    x_admin_token: Annotated[str | None, Header()] = None,
) -> None:
    """Reject admin commands without the admin token.

    Raises:
        UnauthorizedError: Token missing or wrong.
    """
    if not _token_matches(settings.admin_token.get_secret_value(), x_admin_token):
        raise UnauthorizedError("Admin access required")


def get_flow() -> OnboardingFlow:
    """Return the onboarding flow singleton."""
    return get_onboarding_flow()


Flow = Annotated[OnboardingFlow, Depends(get_flow)]
ServiceAuth = Annotated[None, Depends(require_service_token)]
AdminAuth = Annotated[None, Depends(require_admin_token)]
PlatformUserId = Annotated[
    str,
    Path(
        min_length=1,
        max_length=64,
        pattern=r"^[A-Za-z0-9_-]+$",
        description="Opaque platform user id",
    ),
]
