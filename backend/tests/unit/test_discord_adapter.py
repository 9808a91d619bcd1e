"""Tests for the Discord REST directory adapter.

Uses httpx.MockTransport so no request leaves the process.
"""

import json
from collections.abc import Callable

import httpx
import pytest

from greeter.core.errors import TransportError
from greeter.providers.errors import (
    AuthenticationError,
    PermissionDeniedError,
    ProviderError,
    RateLimitError,
    TransientError,
)
from greeter.providers.platform.base import PlatformRole
from greeter.providers.platform.discord_adapter import (
    DiscordDirectory,
    _classify_discord_error,
)
from greeter.providers.retry import RetryPolicy
from greeter.services.role_catalog import RoleCatalog

_GUILD = "900000000000000001"
_USER = "412345678901234567"
_BASE_URL = "https://discord.test/api/v10"

Handler = Callable[[httpx.Request], httpx.Response]


def _directory(handler: Handler, *, max_retries: int = 0) -> DiscordDirectory:
    client = httpx.AsyncClient(
        base_url=_BASE_URL, transport=httpx.MockTransport(handler)
    )
    return DiscordDirectory(
        bot_token="test-bot-token",  # nosec B106
        guild_id=_GUILD,
        retry_policy=RetryPolicy(max_retries=max_retries, base_delay_ms=1, max_delay_ms=1),
        client=client,
    )


# =============================================================================
# Error classification
# =============================================================================


class TestClassifyDiscordError:
    """Mapping HTTP failures to provider errors."""

    def test_rate_limit_uses_body_retry_after(self) -> None:
        response = httpx.Response(429, json={"retry_after": 1.5, "global": False})

        error = _classify_discord_error(response)

        assert type(error) is RateLimitError
        assert error.retry_after_seconds == 1.5

    def test_rate_limit_falls_back_to_header(self) -> None:
        response = httpx.Response(429, headers={"Retry-After": "3"}, text="slow down")

        error = _classify_discord_error(response)

        assert type(error) is RateLimitError
        assert error.retry_after_seconds == 3.0

    def test_rate_limit_without_hint(self) -> None:
        error = _classify_discord_error(httpx.Response(429, text="slow down"))

        assert type(error) is RateLimitError
        assert error.retry_after_seconds is None

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (401, AuthenticationError),
            (403, PermissionDeniedError),
            (500, TransientError),
            (503, TransientError),
            (404, ProviderError),
            (400, ProviderError),
        ],
    )
    def test_status_mapping(self, status: int, expected: type[ProviderError]) -> None:
        error = _classify_discord_error(httpx.Response(status, json={"message": "x"}))

        assert type(error) is expected


# =============================================================================
# REST calls
# =============================================================================


class TestRequests:
    """Request shapes for each directory operation."""

    async def test_list_roles(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "GET"
            assert request.url.path == f"/api/v10/guilds/{_GUILD}/roles"
            return httpx.Response(
                200,
                json=[
                    {"id": "1", "name": "@everyone"},
                    {"id": "2", "name": "Foundation"},
                ],
            )

        roles = await _directory(handler).list_roles()

        assert roles == [
            PlatformRole(role_id="1", name="@everyone"),
            PlatformRole(role_id="2", name="Foundation"),
        ]

    async def test_find_role_by_name(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[{"id": "2", "name": "Foundation"}])

        directory = _directory(handler)

        assert await directory.find_role_by_name("Foundation") == PlatformRole("2", "Foundation")
        assert await directory.find_role_by_name("foundation") is None

    async def test_create_role_is_permissionless(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            seen["reason"] = request.headers.get("X-Audit-Log-Reason")
            return httpx.Response(200, json={"id": "77", "name": "a@ds.study.iitm.ac.in"})

        role = await _directory(handler).create_role("a@ds.study.iitm.ac.in")

        assert role == PlatformRole(role_id="77", name="a@ds.study.iitm.ac.in")
        assert seen["method"] == "POST"
        assert seen["body"] == {
            "name": "a@ds.study.iitm.ac.in",
            "permissions": "0",
            "mentionable": False,
        }
        assert seen["reason"]

    async def test_grant_and_revoke(self) -> None:
        seen: list[tuple[str, str]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.method, request.url.path))
            return httpx.Response(204)

        directory = _directory(handler)
        role = PlatformRole(role_id="55", name="Foundation")

        await directory.grant_role(_USER, role)
        await directory.revoke_role(_USER, role)

        path = f"/api/v10/guilds/{_GUILD}/members/{_USER}/roles/55"
        assert seen == [("PUT", path), ("DELETE", path)]

    async def test_member_role_ids(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == f"/api/v10/guilds/{_GUILD}/members/{_USER}"
            return httpx.Response(200, json={"user": {"id": _USER}, "roles": ["5", "6"]})

        assert await _directory(handler).member_role_ids(_USER) == {"5", "6"}

    async def test_set_nickname_truncates(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={})

        await _directory(handler).set_nickname(_USER, "x" * 40)

        assert seen["method"] == "PATCH"
        assert seen["body"] == {"nick": "x" * 32}


# =============================================================================
# Failures and retries
# =============================================================================


class TestFailures:
    """Error propagation and retry behaviour."""

    async def test_forbidden_is_not_retried(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(403, json={"message": "Missing Permissions"})

        with pytest.raises(PermissionDeniedError):
            await _directory(handler, max_retries=2).set_nickname(_USER, "A")

        assert calls == 1

    async def test_server_error_is_retried(self) -> None:
        responses = [httpx.Response(502), httpx.Response(200, json=[])]

        def handler(request: httpx.Request) -> httpx.Response:
            return responses.pop(0)

        assert await _directory(handler, max_retries=1).list_roles() == []
        assert responses == []

    async def test_rate_limit_is_retried(self) -> None:
        responses = [
            httpx.Response(429, json={"retry_after": 0.001}),
            httpx.Response(204),
        ]

        def handler(request: httpx.Request) -> httpx.Response:
            return responses.pop(0)

        await _directory(handler, max_retries=1).grant_role(
            _USER, PlatformRole(role_id="1", name="x")
        )

        assert responses == []

    async def test_network_error_becomes_transient(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransientError):
            await _directory(handler).list_roles()

    async def test_retries_exhausted(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(503)

        with pytest.raises(TransientError):
            await _directory(handler, max_retries=2).list_roles()

        assert calls == 3


# =============================================================================
# Unreadable response bodies
# =============================================================================


class TestUnreadableBodies:
    """A 2xx body that is not the expected JSON is a transient failure."""

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, text="<html>Bad Gateway</html>"),
            httpx.Response(200, json=[{"name": "Foundation"}]),
            httpx.Response(200, json={"roles": []}),
        ],
        ids=["html", "missing-id", "object-not-list"],
    )
    async def test_list_roles(self, response: httpx.Response) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return response

        with pytest.raises(TransientError, match="unreadable"):
            await _directory(handler).list_roles()

    async def test_create_role(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"name": "a.kumar@ds.study.iitm.ac.in"})

        with pytest.raises(TransientError):
            await _directory(handler).create_role("a.kumar@ds.study.iitm.ac.in")

    async def test_member_role_ids(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html></html>")

        with pytest.raises(TransientError):
            await _directory(handler).member_role_ids(_USER)

    async def test_catalog_refresh_reports_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>maintenance</html>")

        catalog = RoleCatalog({"Interests": ["Machine Learning"]}, ())
        catalog.replace_available(["Machine Learning"])

        with pytest.raises(TransportError):
            await catalog.refresh(_directory(handler))

        assert catalog.available_roles == frozenset({"Machine Learning"})
