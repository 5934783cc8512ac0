"""Tests for the opt-in retry policy."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from adosync.core.exceptions import (
    ItemTimeoutError,
    ResponseFormatError,
    TransportError,
)
from adosync.core.retry import RetryPolicy, call_with_policy, is_retryable_error


def status_error(code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://dev.azure.com")
    response = httpx.Response(code, request=request)
    return httpx.HTTPStatusError(f"HTTP {code}", request=request, response=response)


class TestRetryPolicy:
    """Test suite for RetryPolicy construction and delays."""

    def test_default_values(self) -> None:
        """Test default configuration values."""
        policy = RetryPolicy()
        assert policy.max_retries == 3
        assert policy.base_delay == 1.0
        assert policy.multiplier == 2.0
        assert policy.jitter is True
        assert policy.jitter_ratio == 0.2
        assert policy.retryable is is_retryable_error

    def test_invalid_max_retries(self) -> None:
        """Test that negative max_retries raises error."""
        with pytest.raises(ValueError, match="max_retries must be non-negative"):
            RetryPolicy(max_retries=-1)

    def test_invalid_base_delay(self) -> None:
        """Test that non-positive base_delay raises error."""
        with pytest.raises(ValueError, match="base_delay must be positive"):
            RetryPolicy(base_delay=0)

    def test_invalid_multiplier(self) -> None:
        """Test that multiplier < 1.0 raises error."""
        with pytest.raises(ValueError, match="multiplier must be >= 1.0"):
            RetryPolicy(multiplier=0.5)

    def test_invalid_jitter_ratio(self) -> None:
        """Test that jitter_ratio outside [0.0, 1.0] raises error."""
        with pytest.raises(ValueError, match="jitter_ratio must be between"):
            RetryPolicy(jitter_ratio=1.5)

    def test_calculate_delay_no_jitter(self) -> None:
        """Test exponential delays without jitter."""
        policy = RetryPolicy(base_delay=1.0, multiplier=2.0, jitter=False)
        assert [policy.calculate_delay(i) for i in range(3)] == [1.0, 2.0, 4.0]

    def test_calculate_delay_with_jitter(self) -> None:
        """Test delays stay within the jitter band."""
        policy = RetryPolicy(base_delay=1.0, multiplier=2.0, jitter=True, jitter_ratio=0.2)
        assert 0.8 <= policy.calculate_delay(0) <= 1.2
        assert 1.6 <= policy.calculate_delay(1) <= 2.4


class TestIsRetryableError:
    """Test suite for is_retryable_error."""

    def test_timeout_is_retryable(self) -> None:
        """Test that httpx timeouts are retryable."""
        assert is_retryable_error(httpx.ReadTimeout("slow")) is True

    def test_connect_error_is_retryable(self) -> None:
        """Test that connection errors are retryable."""
        assert is_retryable_error(httpx.ConnectError("Connection refused")) is True

    @pytest.mark.parametrize("code", [429, 500, 502, 503])
    def test_transient_status_is_retryable(self, code: int) -> None:
        """Test that 429 and 5xx responses are retryable."""
        assert is_retryable_error(status_error(code)) is True

    @pytest.mark.parametrize("code", [400, 401, 404])
    def test_client_status_is_not_retryable(self, code: int) -> None:
        """Test that other 4xx responses are not retryable."""
        assert is_retryable_error(status_error(code)) is False

    def test_transport_error_without_status(self) -> None:
        """Test that a transport error with no response is retryable."""
        assert is_retryable_error(TransportError("Connection reset")) is True

    def test_transport_error_with_status(self) -> None:
        """Test that transport errors follow their status code."""
        assert is_retryable_error(TransportError("x", status_code=503)) is True
        assert is_retryable_error(TransportError("x", status_code=403)) is False

    def test_response_format_error_is_not_retryable(self) -> None:
        """Test that malformed batch responses are not retried."""
        assert is_retryable_error(ResponseFormatError("bad", status_code=200)) is False

    def test_item_timeout_is_not_retryable(self) -> None:
        """Test that an exhausted item timeout is not retried."""
        assert is_retryable_error(ItemTimeoutError(5.0)) is False

    def test_other_exception_is_not_retryable(self) -> None:
        """Test that non-HTTP exceptions are not retryable."""
        assert is_retryable_error(ValueError("Invalid value")) is False


class TestRetryPolicyCall:
    """Test suite for RetryPolicy.call."""

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self) -> None:
        """Test successful execution on first attempt."""
        func = AsyncMock(return_value="success")

        result = await RetryPolicy(base_delay=0.01).call(func)

        assert result == "success"
        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_success_after_retries(self) -> None:
        """Test successful execution after transient failures."""
        error = status_error(500)
        func = AsyncMock(side_effect=[error, error, "success"])

        with patch("adosync.core.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            result = await RetryPolicy(max_retries=3, jitter=False).call(func)

        assert result == "success"
        assert func.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_max_retries_exceeded(self) -> None:
        """Test that the last error is raised once retries run out."""
        func = AsyncMock(side_effect=status_error(503))

        with pytest.raises(httpx.HTTPStatusError):
            await RetryPolicy(max_retries=2, base_delay=0.01).call(func)

        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_non_retryable_error_raised_immediately(self) -> None:
        """Test that non-retryable errors are not retried."""
        func = AsyncMock(side_effect=status_error(404))

        with pytest.raises(httpx.HTTPStatusError):
            await RetryPolicy(max_retries=3, base_delay=0.01).call(func)

        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_custom_predicate(self) -> None:
        """Test that a custom retryable predicate is honoured."""
        func = AsyncMock(side_effect=[KeyError("x"), "ok"])
        policy = RetryPolicy(
            max_retries=1, base_delay=0.01, retryable=lambda e: isinstance(e, KeyError)
        )

        assert await policy.call(func) == "ok"


class TestCallWithPolicy:
    """Test suite for call_with_policy."""

    @pytest.mark.asyncio
    async def test_without_policy_calls_once(self) -> None:
        """Test that no policy means a single attempt."""
        func = AsyncMock(side_effect=status_error(503))

        with pytest.raises(httpx.HTTPStatusError):
            await call_with_policy(None, func)

        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_with_policy_retries(self) -> None:
        """Test that a policy is used when given."""
        func = AsyncMock(side_effect=[TransportError("reset"), 7])
        policy = RetryPolicy(max_retries=1, base_delay=0.01)

        assert await call_with_policy(policy, func, label="envelope 1") == 7
