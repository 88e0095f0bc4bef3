"""
Unit tests for the retry/backoff policy.

Tests error classification, backoff computation, Retry-After handling
and the retry loop itself.

Version: 1.0.0
"""
from unittest.mock import AsyncMock

import httpx
import pytest

from app.core.exceptions import (
    ConnectionTimeoutError,
    DispatchQueueFullError,
    ExternalAPIError,
    RateLimitError,
    ValidationError,
)
from app.utils.retry import (
    ErrorCategory,
    RetryOptions,
    categorize_error,
    compute_backoff_delay,
    parse_retry_after,
    retry_with_backoff,
)


pytestmark = pytest.mark.unit

NO_JITTER = RetryOptions(max_retries=3, base_delay=1.0, max_delay=30.0, backoff_multiplier=2.0, jitter_ratio=0.3)


def _failing(*errors, result="ok"):
    """Async callable raising each error in turn, then returning `result`."""
    calls = {"count": 0}

    async def fn():
        calls["count"] += 1
        if calls["count"] <= len(errors):
            raise errors[calls["count"] - 1]
        return result

    fn.calls = calls
    return fn


# ---------------------------------------------------------------------------
# categorize_error
# ---------------------------------------------------------------------------

class TestCategorizeError:
    @pytest.mark.parametrize("status", [429, 408, 500, 502, 503, 504])
    def test_transient_statuses(self, status):
        assert categorize_error(status) is ErrorCategory.TRANSIENT

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 422])
    def test_permanent_statuses(self, status):
        assert categorize_error(status) is ErrorCategory.PERMANENT

    def test_network_errors_without_status_are_transient(self):
        request = httpx.Request("GET", "https://x.test")
        assert categorize_error(None, httpx.ConnectError("boom", request=request)) is ErrorCategory.TRANSIENT
        assert categorize_error(None, ConnectionTimeoutError("Shopify", 30)) is ErrorCategory.TRANSIENT
        assert categorize_error(None, RuntimeError("Connection reset by peer")) is ErrorCategory.TRANSIENT

    def test_unknown_error_without_status_is_permanent(self):
        assert categorize_error(None, KeyError("price")) is ErrorCategory.PERMANENT

    def test_non_retryable_is_permanent(self):
        assert categorize_error(None, ValidationError("bad connection data")) is ErrorCategory.PERMANENT

    def test_queue_full_is_permanent(self):
        assert categorize_error(None, DispatchQueueFullError("shop", "general", 1000)) is ErrorCategory.PERMANENT

    def test_queue_full_permanent_even_when_domain_looks_like_network_text(self):
        err = DispatchQueueFullError("reconnect-store.myshopify.com", "general", 1000)
        assert categorize_error(None, err) is ErrorCategory.PERMANENT

    @pytest.mark.parametrize("error", [
        KeyError("connection_id"),
        AttributeError("'NoneType' object has no attribute 'fetch'"),
        ValueError("timeout must be positive"),
        RuntimeError("could not fetch settings"),
    ])
    def test_programming_errors_not_mistaken_for_network(self, error):
        assert categorize_error(None, error) is ErrorCategory.PERMANENT

    @pytest.mark.asyncio
    async def test_queue_full_not_retried(self):
        sleep = AsyncMock()
        fn = _failing(DispatchQueueFullError("reconnect-store.myshopify.com", "general", 1000))

        with pytest.raises(DispatchQueueFullError):
            await retry_with_backoff(fn, NO_JITTER, sleep=sleep, rng=lambda: 0.0)

        assert fn.calls["count"] == 1
        sleep.assert_not_awaited()


# ---------------------------------------------------------------------------
# Backoff
# ---------------------------------------------------------------------------

class TestBackoff:
    def test_exponential_without_jitter(self):
        delays = [compute_backoff_delay(a, NO_JITTER, rng=lambda: 0.0) for a in range(4)]
        assert delays == [1.0, 2.0, 4.0, 8.0]

    def test_capped_at_max_delay(self):
        assert compute_backoff_delay(10, NO_JITTER, rng=lambda: 0.0) == 30.0

    def test_jitter_adds_up_to_ratio(self):
        assert compute_backoff_delay(0, NO_JITTER, rng=lambda: 1.0) == pytest.approx(1.3)

    @pytest.mark.parametrize("value, expected", [("5", 5.0), ("0", 0.0), (None, None), ("soon", None), ("-1", None)])
    def test_parse_retry_after(self, value, expected):
        assert parse_retry_after(value) == expected


# ---------------------------------------------------------------------------
# retry_with_backoff
# ---------------------------------------------------------------------------

class TestRetryWithBackoff:
    @pytest.mark.asyncio
    async def test_transient_then_success(self):
        sleep = AsyncMock()
        fn = _failing(ExternalAPIError("Shopify", "down", 503), ExternalAPIError("Shopify", "down", 502))

        result = await retry_with_backoff(fn, NO_JITTER, sleep=sleep, rng=lambda: 0.0)

        assert result == "ok"
        assert fn.calls["count"] == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_permanent_not_retried(self):
        sleep = AsyncMock()
        fn = _failing(ExternalAPIError("Shopify", "unauthorized", 401))

        with pytest.raises(ExternalAPIError) as exc_info:
            await retry_with_backoff(fn, NO_JITTER, sleep=sleep)

        assert fn.calls["count"] == 1
        assert exc_info.value.attempts == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        sleep = AsyncMock()
        errors = [ExternalAPIError("Shopify", "down", 500) for _ in range(10)]
        fn = _failing(*errors)

        with pytest.raises(ExternalAPIError) as exc_info:
            await retry_with_backoff(fn, NO_JITTER, sleep=sleep, rng=lambda: 0.0)

        assert fn.calls["count"] == 4
        assert exc_info.value.attempts == 4
        assert sleep.await_count == 3

    @pytest.mark.asyncio
    async def test_retry_after_honored(self):
        sleep = AsyncMock()
        fn = _failing(RateLimitError("Shopify", retry_after=5))

        await retry_with_backoff(fn, NO_JITTER, sleep=sleep, rng=lambda: 0.0)

        sleep.assert_awaited_once_with(5.0)

    @pytest.mark.asyncio
    async def test_retry_after_capped_at_max_delay(self):
        sleep = AsyncMock()
        fn = _failing(RateLimitError("Shopify", retry_after=120))

        await retry_with_backoff(fn, NO_JITTER, sleep=sleep)

        sleep.assert_awaited_once_with(30.0)

    @pytest.mark.asyncio
    async def test_429_without_retry_after_uses_backoff(self):
        sleep = AsyncMock()
        fn = _failing(RateLimitError("Shopify"))

        await retry_with_backoff(fn, NO_JITTER, sleep=sleep, rng=lambda: 0.0)

        sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_network_error_retried(self):
        sleep = AsyncMock()
        request = httpx.Request("GET", "https://x.test")
        fn = _failing(httpx.ReadTimeout("timed out", request=request))

        assert await retry_with_backoff(fn, NO_JITTER, sleep=sleep, rng=lambda: 0.0) == "ok"
        assert fn.calls["count"] == 2
