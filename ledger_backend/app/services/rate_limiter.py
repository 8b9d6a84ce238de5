"""
Rate limiters for public endpoints.

``RateLimiter`` is the injectable interface; call sites only ever ask
``allow(key)``. Two implementations:

- SlidingWindowRateLimiter: per-process, exact sliding window per key with
  periodic eviction of idle keys. Approximate across multiple instances.
- RedisRateLimiter: fixed window shared through Redis (INCR + EXPIRE).
  Fails open when Redis is unreachable.
"""

import logging
import time
from abc import ABC, abstractmethod
from collections import deque
from typing import Callable, Deque, Dict, Optional

from redis.exceptions import RedisError

import ledger_backend.app.core.redis_client as redis_client_module
from ledger_backend.app.core.config import settings

logger = logging.getLogger("ledger.rate_limit")


class RateLimiter(ABC):

    @abstractmethod
    async def allow(self, key: str) -> bool:
        """Record one attempt for ``key``; False when it exceeds the limit."""


class SlidingWindowRateLimiter(RateLimiter):
    """
    In-memory sliding window limiter.

    Idle keys are swept every ``sweep_interval`` seconds; a key is dropped
    once its newest attempt is older than two windows.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        sweep_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.sweep_interval = sweep_interval if sweep_interval is not None else window_seconds * 5
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._last_sweep = clock()

    async def allow(self, key: str) -> bool:
        now = self._clock()
        if now - self._last_sweep >= self.sweep_interval:
            self.sweep(now)

        hits = self._hits.setdefault(key, deque())
        cutoff = now - self.window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()

        if len(hits) >= self.max_requests:
            return False
        hits.append(now)
        return True

    def sweep(self, now: Optional[float] = None) -> int:
        """Drop keys idle for more than two windows. Returns keys removed."""
        now = self._clock() if now is None else now
        stale_before = now - 2 * self.window_seconds
        stale = [key for key, hits in self._hits.items() if not hits or hits[-1] < stale_before]
        for key in stale:
            del self._hits[key]
        self._last_sweep = now
        return len(stale)

    def tracked_keys(self) -> int:
        return len(self._hits)


class RedisRateLimiter(RateLimiter):
    """Fixed window limiter shared by every instance through Redis."""

    def __init__(self, max_requests: int, window_seconds: int, prefix: str = "ratelimit:"):
        self.max_requests = max_requests
        self.window_seconds = int(window_seconds)
        self.prefix = prefix

    async def allow(self, key: str) -> bool:
        client = redis_client_module.redis_client
        redis_key = f"{self.prefix}{key}"
        try:
            count = await client.incr(redis_key)
            if count == 1:
                await client.expire(redis_key, self.window_seconds)
        except RedisError as e:
            logger.warning("Rate limiter unavailable, allowing request: %s", e)
            return True
        return count <= self.max_requests


_verification_limiter: Optional[RateLimiter] = None


def build_rate_limiter(backend: str) -> RateLimiter:
    if backend == "redis":
        return RedisRateLimiter(
            settings.verification_rate_limit,
            settings.verification_window_seconds,
            prefix="ratelimit:verify:",
        )
    if backend == "memory":
        return SlidingWindowRateLimiter(
            settings.verification_rate_limit,
            settings.verification_window_seconds,
        )
    raise ValueError(f"Unknown rate limit backend: {backend}")


def get_rate_limiter() -> RateLimiter:
    """FastAPI dependency returning the process-wide verification limiter."""
    global _verification_limiter
    if _verification_limiter is None:
        _verification_limiter = build_rate_limiter(settings.rate_limit_backend)
    return _verification_limiter
