"""
Retry/backoff policy for destination calls.

Wraps a dispatched call, classifies failures, retries transient ones with
jittered exponential backoff (honoring Retry-After on 429) and re-raises
permanent ones immediately.

Classification:
- no status + network/connection failure -> transient
- 429, 408, 5xx                          -> transient
- 401, 403, any other 4xx                -> permanent
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx

from app.core.config import Settings
from app.core.exceptions import CatalogSyncException, ConnectionTimeoutError, NonRetryableError, RetryableError

logger = logging.getLogger("retry")

T = TypeVar("T")

# Matched against messages of otherwise unclassified exceptions only
NETWORK_ERROR_MARKERS = (
    "network error",
    "connection reset",
    "connection refused",
    "connection aborted",
    "econnreset",
    "econnrefused",
    "etimedout",
    "timed out",
)


class ErrorCategory(str, Enum):
    TRANSIENT = "transient"
    PERMANENT = "permanent"


@dataclass(frozen=True)
class RetryOptions:
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0
    jitter_ratio: float = 0.3

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryOptions":
        return cls(
            max_retries=settings.retry_max_retries,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
            backoff_multiplier=settings.retry_backoff_multiplier,
            jitter_ratio=settings.retry_jitter_ratio,
        )


def get_status_code(error: BaseException) -> Optional[int]:
    status = getattr(error, "status_code", None)
    if status is None and isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
    return status


def _is_network_error(error: Optional[BaseException]) -> bool:
    if error is None:
        return False
    if isinstance(error, (httpx.TransportError, ConnectionTimeoutError, asyncio.TimeoutError, ConnectionError)):
        return True
    if isinstance(error, (CatalogSyncException, LookupError, AttributeError, TypeError, ValueError)):
        return False
    message = str(error).lower()
    return any(marker in message for marker in NETWORK_ERROR_MARKERS)


def categorize_error(status_code: Optional[int], error: Optional[BaseException] = None) -> ErrorCategory:
    """
    Classify a failure as transient or permanent.

    Args:
        status_code: HTTP status, or None when no response was received
        error: The raised exception (used when there is no status)

    Returns:
        ErrorCategory
    """
    if status_code is None:
        if isinstance(error, NonRetryableError):
            return ErrorCategory.PERMANENT
        if _is_network_error(error) or isinstance(error, RetryableError):
            return ErrorCategory.TRANSIENT
        return ErrorCategory.PERMANENT

    if status_code == 429 or status_code == 408:
        return ErrorCategory.TRANSIENT
    if 500 <= status_code < 600:
        return ErrorCategory.TRANSIENT
    if 400 <= status_code < 500:
        return ErrorCategory.PERMANENT
    return ErrorCategory.TRANSIENT


def compute_backoff_delay(
    attempt: int,
    options: RetryOptions,
    rng: Callable[[], float] = random.random,
) -> float:
    """min(max_delay, base * multiplier^attempt) plus up to jitter_ratio of it."""
    delay = min(options.max_delay, options.base_delay * (options.backoff_multiplier ** attempt))
    return delay + rng() * options.jitter_ratio * delay


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header given in seconds."""
    if value is None:
        return None
    try:
        seconds = float(str(value).strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def retry_delay(
    error: BaseException,
    attempt: int,
    options: RetryOptions,
    rng: Callable[[], float] = random.random,
) -> float:
    """Delay before the next attempt: Retry-After on 429 when present, else backoff."""
    if get_status_code(error) == 429:
        retry_after = getattr(error, "retry_after", None)
        if retry_after is not None:
            return min(float(retry_after), options.max_delay)
    return compute_backoff_delay(attempt, options, rng)


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    options: Optional[RetryOptions] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    rng: Callable[[], float] = random.random,
    label: str = "call",
) -> T:
    """
    Call `fn` until it succeeds, fails permanently, or retries are exhausted.

    The error that finally propagates carries an `attempts` attribute with the
    number of calls made.
    """
    options = options or RetryOptions()
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as exc:
            status = get_status_code(exc)
            category = categorize_error(status, exc)
            exc.attempts = attempt + 1

            if category is ErrorCategory.PERMANENT:
                logger.warning(f"[RETRY] {label} failed permanently (status={status}): {exc}")
                raise
            if attempt >= options.max_retries:
                logger.error(f"[RETRY] {label} gave up after {attempt + 1} attempts: {exc}")
                raise

            delay = retry_delay(exc, attempt, options, rng)
            logger.warning(
                f"[RETRY] {label} transient failure (status={status}), "
                f"retry {attempt + 1}/{options.max_retries} in {delay:.2f}s: {exc}"
            )
            attempt += 1
            await sleep(delay)
