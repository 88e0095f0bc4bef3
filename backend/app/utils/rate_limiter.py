"""
Destination API Rate Limiter using Token Bucket Algorithm.

Per-destination-domain token buckets gate every outbound destination call.
Each domain gets two independent tiers:
- general:   REST calls (capacity 40, refill 40/second)
- inventory: inventory-level writes (capacity 2, refill 2/second)

Callers that find no token wait in a FIFO queue and are released in arrival
order as tokens refill. A queue has a bounded depth; submissions beyond it
fail immediately with DispatchQueueFullError. The limiter performs no retries.

Usage:
    registry = RateLimiterRegistry(settings)
    result = await registry.execute("shop.myshopify.com", DispatchTier.GENERAL, send)
"""

import asyncio
import logging
import time
from collections import deque
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, Optional, Tuple, TypeVar

from app.core.config import Settings
from app.core.constants.dispatch import TIER_GENERAL, TIER_INVENTORY
from app.core.exceptions import DispatchQueueFullError

logger = logging.getLogger("rate_limiter")

T = TypeVar("T")

DEFAULT_MAX_QUEUE_SIZE = 1000
# Floor on the drain loop's sleep so float rounding never spins it
MIN_WAIT_SECONDS = 0.001


class DispatchTier(str, Enum):
    GENERAL = TIER_GENERAL
    INVENTORY = TIER_INVENTORY


class TokenBucket:
    """
    Token bucket with a FIFO wait queue.

    Tokens refill continuously at `refill_rate` per second up to `capacity`.
    `clock` and `sleep` are injectable so tests can run on simulated time.
    """

    def __init__(
        self,
        capacity: float,
        refill_rate: float,
        max_queue_size: int = DEFAULT_MAX_QUEUE_SIZE,
        name: str = "bucket",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize the bucket full.

        Args:
            capacity: Maximum tokens (burst capacity)
            refill_rate: Tokens added per second
            max_queue_size: Waiters allowed before new submissions are rejected
            name: Label used in logs and errors ("domain/tier")
            clock: Monotonic time source in seconds
            sleep: Coroutine used to wait for refills
        """
        if capacity <= 0 or refill_rate <= 0:
            raise ValueError("capacity and refill_rate must be positive")
        self.capacity = float(capacity)
        self.refill_rate = float(refill_rate)
        self.max_queue_size = max_queue_size
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(capacity)
        self._last_refill = clock()
        self._waiters: Deque[asyncio.Future] = deque()
        self._drain_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Token accounting
    # ------------------------------------------------------------------

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(now - self._last_refill, 0.0)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.refill_rate)
        self._last_refill = now

    def try_acquire(self) -> Tuple[bool, float, float]:
        """
        Try to take a token without waiting.

        Returns:
            Tuple of (success, wait_time_seconds, remaining_tokens)
        """
        self._refill()
        if self._tokens >= 1:
            self._tokens -= 1
            return True, 0.0, self._tokens
        wait_time = (1 - self._tokens) / self.refill_rate
        return False, wait_time, self._tokens

    def get_available_tokens(self) -> float:
        self._refill()
        return self._tokens

    @property
    def queue_size(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    # ------------------------------------------------------------------
    # Queueing
    # ------------------------------------------------------------------

    async def acquire(self) -> None:
        """Wait in FIFO order until a token has been granted to this caller."""
        if self.queue_size >= self.max_queue_size:
            domain, _, tier = self.name.partition("/")
            raise DispatchQueueFullError(domain, tier or self.name, self.max_queue_size)

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = asyncio.ensure_future(self._drain())
        await waiter

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run `fn` once a token is available."""
        await self.acquire()
        return await fn()

    async def _drain(self) -> None:
        while self._waiters:
            head = self._waiters[0]
            if head.done():
                # Cancelled while waiting; no token spent
                self._waiters.popleft()
                continue

            success, wait_time, _ = self.try_acquire()
            if success:
                self._waiters.popleft()
                head.set_result(None)
                continue

            logger.debug(f"[DISPATCHER] {self.name} waiting {wait_time:.3f}s for token")
            await self._sleep(max(wait_time, MIN_WAIT_SECONDS))

    async def aclose(self) -> None:
        """Cancel the drain loop and any callers still waiting."""
        for waiter in self._waiters:
            if not waiter.done():
                waiter.cancel()
        self._waiters.clear()
        if self._drain_task is not None and not self._drain_task.done():
            self._drain_task.cancel()
            try:
                await self._drain_task
            except asyncio.CancelledError:
                pass
        self._drain_task = None

    def reset(self) -> None:
        """Refill the bucket to full capacity (testing/ops)."""
        self._tokens = self.capacity
        self._last_refill = self._clock()

    def get_status(self) -> dict:
        return {
            "available_tokens": round(self.get_available_tokens(), 3),
            "capacity": self.capacity,
            "refill_rate_per_second": self.refill_rate,
            "queue_size": self.queue_size,
            "max_queue_size": self.max_queue_size,
        }


class RateLimiterRegistry:
    """
    Lazily created token buckets keyed by (domain, tier).

    One registry is constructed by the process composition root and injected
    into the worker and destination clients; buckets live for the registry's
    lifetime and are shared by every job targeting the same domain.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        settings = settings or Settings()
        self._limits: Dict[DispatchTier, Tuple[float, float]] = {
            DispatchTier.GENERAL: (settings.general_bucket_capacity, settings.general_bucket_refill_rate),
            DispatchTier.INVENTORY: (settings.inventory_bucket_capacity, settings.inventory_bucket_refill_rate),
        }
        self._max_queue_size = settings.dispatch_queue_max_depth
        self._clock = clock
        self._sleep = sleep
        self._buckets: Dict[Tuple[str, DispatchTier], TokenBucket] = {}

    def get_bucket(self, domain: str, tier: DispatchTier) -> TokenBucket:
        tier = DispatchTier(tier)
        key = (domain.lower(), tier)
        bucket = self._buckets.get(key)
        if bucket is None:
            capacity, refill_rate = self._limits[tier]
            bucket = TokenBucket(
                capacity=capacity,
                refill_rate=refill_rate,
                max_queue_size=self._max_queue_size,
                name=f"{key[0]}/{tier.value}",
                clock=self._clock,
                sleep=self._sleep,
            )
            self._buckets[key] = bucket
            logger.info(
                f"[DISPATCHER] Created bucket {bucket.name}: capacity={capacity}, refill={refill_rate}/s"
            )
        return bucket

    async def execute(self, domain: str, tier: DispatchTier, fn: Callable[[], Awaitable[T]]) -> T:
        """Run `fn` through the (domain, tier) bucket."""
        return await self.get_bucket(domain, tier).execute(fn)

    def get_status(self) -> Dict[str, dict]:
        """Status of every bucket, keyed by "domain/tier"."""
        return {bucket.name: bucket.get_status() for bucket in self._buckets.values()}

    def max_queue_size(self) -> int:
        return max((b.queue_size for b in self._buckets.values()), default=0)

    async def aclose(self) -> None:
        for bucket in self._buckets.values():
            await bucket.aclose()
