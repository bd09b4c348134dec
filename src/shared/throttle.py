"""Fixed-window throttling of sensitive operations.

Counters live in a pluggable store: ``InMemoryCounterStore`` for a single
process, ``RedisCounterStore`` when several instances must share limits.
"""

import threading
import time
from abc import ABC, abstractmethod

import redis
import structlog
from fastapi import Depends

from shared.auth import Principal, current_principal, require

logger = structlog.get_logger(__name__)


class RateLimitExceeded(Exception):
    status_code = 429
    title = "Too Many Requests"

    def __init__(self, retry_after: int):
        message = f"Too many requests. Try again in {retry_after} seconds."
        super().__init__(message)
        self.message = message
        self.retry_after = retry_after


class CounterStore(ABC):
    @abstractmethod
    def hit(self, key: str, window_seconds: int) -> tuple[int, int]:
        """Count one request against ``key``; returns (count in window, seconds left)."""
        ...

    @abstractmethod
    def reset(self) -> None: ...


class InMemoryCounterStore(CounterStore):
    """Per-process counters. Expired windows are swept at most once per window."""

    def __init__(self, clock=time.monotonic) -> None:
        self._clock = clock
        self._windows: dict[str, tuple[int, float]] = {}
        self._next_sweep = 0.0
        self._lock = threading.Lock()

    def hit(self, key: str, window_seconds: int) -> tuple[int, int]:
        now = self._clock()
        with self._lock:
            if now >= self._next_sweep:
                self._sweep(now)
                self._next_sweep = now + window_seconds
            count, expires_at = self._windows.get(key, (0, now + window_seconds))
            if now >= expires_at:
                count, expires_at = 0, now + window_seconds
            count += 1
            self._windows[key] = (count, expires_at)
        return count, max(1, int(expires_at - now))

    def _sweep(self, now: float) -> None:
        for key in [key for key, (_, expires_at) in self._windows.items() if now >= expires_at]:
            del self._windows[key]

    def __len__(self) -> int:
        return len(self._windows)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


class RedisCounterStore(CounterStore):
    def __init__(self, client: redis.Redis, prefix: str = "throttle:") -> None:
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str) -> "RedisCounterStore":
        return cls(redis.Redis.from_url(url))

    def hit(self, key: str, window_seconds: int) -> tuple[int, int]:
        name = f"{self.prefix}{key}"
        count = self.client.incr(name)
        if count == 1:
            self.client.expire(name, window_seconds)
        ttl = self.client.ttl(name)
        return count, ttl if ttl and ttl > 0 else window_seconds

    def reset(self) -> None:
        for name in self.client.scan_iter(f"{self.prefix}*"):
            self.client.delete(name)


class RateLimiter:
    def __init__(self, store: CounterStore, limit: int = 10, window_seconds: int = 60) -> None:
        self.store = store
        self.limit = limit
        self.window_seconds = window_seconds

    def check(self, key: str) -> int:
        """Count a request; raises ``RateLimitExceeded`` past the limit, else returns what is left."""
        count, retry_after = self.store.hit(key, self.window_seconds)
        if count > self.limit:
            logger.warning("rate_limit_exceeded", key=key, limit=self.limit, retry_after=retry_after)
            raise RateLimitExceeded(retry_after)
        return self.limit - count


_current_limiter: RateLimiter | None = None


def get_limiter() -> RateLimiter:
    global _current_limiter
    if _current_limiter is None:
        _current_limiter = RateLimiter(InMemoryCounterStore())
    return _current_limiter


def set_limiter(limiter: RateLimiter) -> None:
    global _current_limiter
    _current_limiter = limiter


def throttled(scope: str, capability: str | None = None):
    """Dependency that counts the caller's requests to ``scope`` and resolves the principal.

    With ``capability`` the caller must also hold that capability.
    """
    resolve = require(capability) if capability else current_principal

    async def _throttled(principal: Principal = Depends(resolve)) -> Principal:
        get_limiter().check(f"{scope}:{principal.user_id}")
        return principal

    return _throttled
