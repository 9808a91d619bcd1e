"""Tests for the platform retry strategy.

Tests behavior of retry logic:
- Exponential backoff with jitter
- Rate limit retry_after_seconds handling
- Non-retryable errors fail immediately
- Max retries enforcement
"""

from unittest.mock import AsyncMock, patch

import pytest

from greeter.providers.errors import (
    AuthenticationError,
    PermissionDeniedError,
    RateLimitError,
    TransientError,
)
from greeter.providers.retry import RetryPolicy, with_retries

_PATCH_SLEEP = "greeter.providers.retry.asyncio.sleep"
_PATCH_JITTER = "greeter.providers.retry.random.uniform"


@pytest.fixture
def policy() -> RetryPolicy:
    """Retry policy with fast test delays."""
    return RetryPolicy(max_retries=3, base_delay_ms=100, max_delay_ms=1000)


class TestWithRetriesSuccess:
    """Test successful execution paths."""

    async def test_returns_result_on_success(self, policy):
        """Should return function result when no error occurs."""
        func = AsyncMock(return_value="success")

        result = await with_retries(func, policy)

        assert result == "success"
        func.assert_called_once()

    async def test_succeeds_after_transient_error(self, policy):
        """Should retry and succeed after transient error."""
        func = AsyncMock(side_effect=[TransientError("temporary"), "success"])

        with patch(_PATCH_SLEEP, new_callable=AsyncMock):
            result = await with_retries(func, policy)

        assert result == "success"
        assert func.call_count == 2


class TestWithRetriesFailure:
    """Test failure paths."""

    async def test_raises_after_max_retries_exceeded(self, policy):
        """Should raise original error after max retries."""
        func = AsyncMock(side_effect=TransientError("persistent failure"))

        with (
            patch(_PATCH_SLEEP, new_callable=AsyncMock),
            pytest.raises(TransientError, match="persistent failure"),
        ):
            await with_retries(func, policy)

        # Initial attempt + 3 retries = 4 total calls
        assert func.call_count == 4

    @pytest.mark.parametrize(
        "error",
        [AuthenticationError("bad token"), PermissionDeniedError("Missing Access")],
    )
    async def test_non_retryable_error_fails_immediately(self, policy, error):
        """Auth and permission errors are never retried."""
        func = AsyncMock(side_effect=error)

        with pytest.raises(type(error)):
            await with_retries(func, policy)

        func.assert_called_once()


class TestBackoff:
    """Delay calculation."""

    async def test_delays_increase_exponentially(self, policy):
        """Delays should double with each retry attempt."""
        func = AsyncMock(
            side_effect=[
                TransientError("fail 1"),
                TransientError("fail 2"),
                TransientError("fail 3"),
                "success",
            ]
        )
        sleep_calls = []

        async def mock_sleep(delay):
            sleep_calls.append(delay)

        with (
            patch(_PATCH_SLEEP, side_effect=mock_sleep),
            patch(_PATCH_JITTER, return_value=0),
        ):
            result = await with_retries(func, policy)

        assert result == "success"
        assert sleep_calls == [0.1, 0.2, 0.4]

    async def test_delay_capped_at_max(self):
        """Delays should not exceed max_delay_ms."""
        policy = RetryPolicy(max_retries=5, base_delay_ms=10000, max_delay_ms=15000)
        func = AsyncMock(
            side_effect=[TransientError("fail"), TransientError("fail"), "success"]
        )
        sleep_calls = []

        async def mock_sleep(delay):
            sleep_calls.append(delay)

        with (
            patch(_PATCH_SLEEP, side_effect=mock_sleep),
            patch(_PATCH_JITTER, return_value=0),
        ):
            await with_retries(func, policy)

        assert sleep_calls[1] <= 15.0

    async def test_uses_retry_after_when_provided(self, policy):
        """Discord's retry_after hint replaces exponential backoff."""
        func = AsyncMock(
            side_effect=[
                RateLimitError("rate limited", retry_after_seconds=2.5),
                "success",
            ]
        )
        sleep_calls = []

        async def mock_sleep(delay):
            sleep_calls.append(delay)

        with patch(_PATCH_SLEEP, side_effect=mock_sleep):
            result = await with_retries(func, policy)

        assert result == "success"
        assert sleep_calls == [2.5]
