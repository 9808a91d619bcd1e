"""Discord REST adapter for the platform directory.

Talks to the Discord HTTP API (v10) with a bot token. Grant and revoke use
``PUT``/``DELETE /guilds/{guild}/members/{user}/roles/{role}``, which Discord
treats as idempotent (204 whether or not the member held the role).
"""

import contextlib
from collections.abc import Callable
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
import structlog

from greeter.providers.errors import (
    AuthenticationError,
    PermissionDeniedError,
    ProviderError,
    RateLimitError,
    TransientError,
)
from greeter.providers.platform.base import PlatformDirectory, PlatformRole
from greeter.providers.retry import RetryPolicy, with_retries

logger = structlog.get_logger()

# Discord rejects nicknames longer than 32 characters
_MAX_NICKNAME_LENGTH = 32

_AUDIT_LOG_REASON = "Member onboarding"

T = TypeVar("T")


def _classify_discord_error(response: httpx.Response) -> ProviderError:
    """Map a failed Discord response to the internal error taxonomy.

    Returns a ProviderError subclass instance (does not raise).
    """
    message = f"Discord API {response.status_code}: {response.text[:200]}"

    if response.status_code == 429:
        retry_after = None
        with contextlib.suppress(AttributeError, TypeError, ValueError):
            retry_after = float(response.json().get("retry_after"))
        if retry_after is None:
            with contextlib.suppress(TypeError, ValueError):
                retry_after = float(response.headers.get("retry-after"))
        return RateLimitError(message, retry_after_seconds=retry_after)

    if response.status_code == 401:
        return AuthenticationError(message)

    if response.status_code == 403:
        return PermissionDeniedError(message)

    if response.status_code >= 500:
        return TransientError(message)

    return ProviderError(message)


def _parse_body(response: httpx.Response, parse: Callable[[Any], T]) -> T:
    """Decode a successful response body.

    Raises:
        TransientError: If the body is not JSON or lacks expected fields.
    """
    try:
        return parse(response.json())
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        logger.error(
            "platform_response_unreadable",
            backend="discord",
            status=response.status_code,
            error_type=type(e).__name__,
        )
        raise TransientError(
            f"Discord API {response.status_code}: unreadable response body"
        ) from e


class DiscordDirectory(PlatformDirectory):
    """Platform directory backed by a single Discord guild.

    Args:
        bot_token: Discord bot token.
        guild_id: Guild (server) id the bot manages.
        base_url: API base URL, including the version segment.
        timeout_seconds: Per-request timeout.
        retry_policy: Backoff settings for 429/5xx responses.
        client: Optional pre-built client (tests inject a MockTransport).
    """

    def __init__(
        self,
        *,
        bot_token: str,
        guild_id: str,
        base_url: str = "https://discord.com/api/v10",
        timeout_seconds: float = 10.0,
        retry_policy: RetryPolicy | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._guild_id = guild_id
        self._retry_policy = retry_policy or RetryPolicy()
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bot {bot_token}"},
            timeout=timeout_seconds,
        )

    @property
    def backend_name(self) -> str:
        """Return 'discord'."""
        return "discord"

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send one API request with retries for 429/5xx/network errors."""

        async def _send() -> httpx.Response:
            try:
                response = await self._client.request(
                    method,
                    path,
                    json=json,
                    headers={"X-Audit-Log-Reason": quote(_AUDIT_LOG_REASON)},
                )
            except httpx.TransportError as e:
                raise TransientError(str(e)) from e
            if response.is_error:
                raise _classify_discord_error(response)
            return response

        try:
            return await with_retries(_send, self._retry_policy)
        except ProviderError as e:
            logger.error(
                "platform_request_failed",
                backend="discord",
                method=method,
                path=path,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

    def _member_path(self, user_id: str) -> str:
        return f"/guilds/{self._guild_id}/members/{quote(user_id, safe='')}"

    async def list_roles(self) -> list[PlatformRole]:
        """Return every role in the guild."""
        response = await self._request("GET", f"/guilds/{self._guild_id}/roles")
        return _parse_body(
            response,
            lambda body: [
                PlatformRole(role_id=str(item["id"]), name=item["name"])
                for item in body
            ],
        )

    async def create_role(self, name: str) -> PlatformRole:
        """Create a non-mentionable, permissionless role."""
        response = await self._request(
            "POST",
            f"/guilds/{self._guild_id}/roles",
            json={"name": name, "permissions": "0", "mentionable": False},
        )
        role = _parse_body(
            response,
            lambda body: PlatformRole(role_id=str(body["id"]), name=body["name"]),
        )
        logger.info("platform_role_created", backend="discord", role=name)
        return role

    async def grant_role(self, user_id: str, role: PlatformRole) -> None:
        """Add the role to the member."""
        await self._request(
            "PUT", f"{self._member_path(user_id)}/roles/{role.role_id}"
        )

    async def revoke_role(self, user_id: str, role: PlatformRole) -> None:
        """Remove the role from the member."""
        await self._request(
            "DELETE", f"{self._member_path(user_id)}/roles/{role.role_id}"
        )

    async def member_role_ids(self, user_id: str) -> set[str]:
        """Return the ids of the member's roles."""
        response = await self._request("GET", self._member_path(user_id))
        return _parse_body(
            response,
            lambda body: {str(role_id) for role_id in body.get("roles", [])},
        )

    async def set_nickname(self, user_id: str, nickname: str) -> None:
        """Set the member's guild nickname (truncated to Discord's limit)."""
        await self._request(
            "PATCH",
            self._member_path(user_id),
            json={"nick": nickname[:_MAX_NICKNAME_LENGTH]},
        )
