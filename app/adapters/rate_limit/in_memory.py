"""In-memory token bucket rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: the bucket map and every bucket have their own lock, so
  requests from different clients never contend on a bucket lock.
- Bounded: idle buckets are swept and the map is capped with LRU eviction.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import OrderedDict
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult

logger = logging.getLogger(__name__)


class TokenBucket:
    """Fixed-capacity bucket refilled in whole batches once per interval.

    A bucket starts full. Once ``refill_interval`` has fully elapsed since the
    last refill, ``capacity`` tokens are added for every elapsed interval
    (never exceeding capacity) and the refill instant moves forward by the
    same number of whole intervals.
    """

    def __init__(self, *, capacity: int, refill_interval: float, now: float) -> None:
        self.capacity = capacity
        self.refill_interval = refill_interval
        self._tokens = capacity
        self._last_refill = now
        self._last_access = now
        self._lock = threading.Lock()

    @property
    def last_access(self) -> float:
        return self._last_access

    def _refill_locked(self, now: float) -> None:
        elapsed = now - self._last_refill
        if elapsed < self.refill_interval:
            return
        periods = int(elapsed // self.refill_interval)
        self._tokens = min(self.capacity, self._tokens + periods * self.capacity)
        self._last_refill += periods * self.refill_interval

    def try_consume(self, cost: int, now: float) -> tuple[bool, int, float]:
        """Atomically refill and take ``cost`` tokens if available.

        Returns:
            Tuple of (consumed, remaining_tokens, seconds_until_next_refill).
        """
        with self._lock:
            self._refill_locked(now)
            self._last_access = now
            consumed = self._tokens >= cost
            if consumed:
                self._tokens -= cost
            next_refill_in = max(0.0, self._last_refill + self.refill_interval - now)
            return consumed, self._tokens, next_refill_in

    def available_tokens(self, now: float) -> int:
        with self._lock:
            self._refill_locked(now)
            return self._tokens


class InMemoryTokenBucketRateLimiter(AbstractRateLimiter):
    """Per-client token bucket limiter (e.g., 100 requests per 60 seconds).

    Buckets are created lazily on the first request from a client and shared
    by every later request from it. Creation happens under the map lock so
    concurrent first requests from the same client end up on a single bucket.

    Important:
        This limiter is per-process only. If the API runs with multiple
        workers, each worker enforces its own independent limits.
    """

    def __init__(
        self,
        *,
        capacity: int = 100,
        refill_interval_seconds: float = 60,
        idle_ttl_seconds: float | None = 600,
        max_buckets: int | None = 10000,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            capacity: Tokens per bucket, also the batch size of each refill.
            refill_interval_seconds: Interval between batch refills.
            idle_ttl_seconds: Evict buckets untouched for this long (None disables).
                Must be at least one refill interval so that only buckets that
                would already be full again are dropped.
            max_buckets: Cap on tracked clients, least recently used evicted first
                (None disables).
            clock: Monotonic time source used for refill arithmetic.
            wall_clock: UNIX time source used to report ``reset_at``.

        Raises:
            ValueError: If any limit is invalid.
        """
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        if refill_interval_seconds <= 0:
            raise ValueError("refill_interval_seconds must be > 0")
        if idle_ttl_seconds is not None and idle_ttl_seconds < refill_interval_seconds:
            raise ValueError("idle_ttl_seconds must be >= refill_interval_seconds")
        if max_buckets is not None and max_buckets < 1:
            raise ValueError("max_buckets must be >= 1")

        self._capacity = capacity
        self._refill_interval = float(refill_interval_seconds)
        self._idle_ttl = idle_ttl_seconds
        self._max_buckets = max_buckets
        self._clock = clock
        self._wall_clock = wall_clock
        self._lock = threading.Lock()
        self._buckets: OrderedDict[str, TokenBucket] = OrderedDict()
        self._last_sweep = clock()
        self._evictions = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def refill_interval_seconds(self) -> float:
        return self._refill_interval

    def _get_or_create_bucket(self, key: str, now: float) -> TokenBucket:
        with self._lock:
            self._sweep_idle_locked(now)
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = TokenBucket(
                    capacity=self._capacity,
                    refill_interval=self._refill_interval,
                    now=now,
                )
                self._buckets[key] = bucket
                self._evict_over_capacity_locked()
            else:
                self._buckets.move_to_end(key)
            return bucket

    def _sweep_idle_locked(self, now: float) -> None:
        if self._idle_ttl is None or now - self._last_sweep < self._refill_interval:
            return
        self._last_sweep = now
        idle_keys = [
            k for k, bucket in self._buckets.items()
            if now - bucket.last_access > self._idle_ttl
        ]
        for key in idle_keys:
            del self._buckets[key]
        if idle_keys:
            self._evictions += len(idle_keys)
            logger.debug(
                "rate_limit.idle_buckets_evicted",
                extra={"evicted": len(idle_keys), "buckets": len(self._buckets)},
            )

    def _evict_over_capacity_locked(self) -> None:
        if self._max_buckets is None:
            return
        while len(self._buckets) > self._max_buckets:
            # popitem(last=False) removes the least recently used bucket
            self._buckets.popitem(last=False)
            self._evictions += 1

    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Consume ``cost`` tokens from the bucket of ``key``.

        Args:
            key: Client identity. Any string, including empty, is a valid key.
            cost: Units to consume (default 1).

        Returns:
            RateLimitResult with allowance decision and metadata.

        Raises:
            ValueError: If cost is invalid.
        """
        if cost < 1:
            raise ValueError("cost must be >= 1")

        now = self._clock()
        bucket = self._get_or_create_bucket(key, now)
        allowed, remaining, next_refill_in = bucket.try_consume(cost, now)
        reset_at = int(math.ceil(self._wall_clock() + next_refill_in))

        return RateLimitResult(
            allowed=allowed,
            limit=self._capacity,
            remaining=remaining,
            reset_at=reset_at,
            retry_after_seconds=None if allowed else max(1, int(math.ceil(next_refill_in))),
        )

    def get_bucket(self, key: str) -> TokenBucket | None:
        with self._lock:
            return self._buckets.get(key)

    def bucket_count(self) -> int:
        with self._lock:
            return len(self._buckets)

    def stats(self) -> dict[str, int | float | None]:
        """Return lightweight limiter metrics without exposing client keys."""

        with self._lock:
            return {
                "capacity": self._capacity,
                "refill_interval_seconds": self._refill_interval,
                "idle_ttl_seconds": self._idle_ttl,
                "max_buckets": self._max_buckets,
                "buckets": len(self._buckets),
                "evictions": self._evictions,
            }
