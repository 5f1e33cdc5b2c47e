"""
Fixed-window request limiting keyed by client IP and route.

The limiter is built once at startup and kept on ``app.state``. The
in-memory backend is per process and forgets everything on restart; the
Redis backend shares counters between instances.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional
import logging
import random
import threading
import time

import redis

logger = logging.getLogger(__name__)

LOCALHOST_VALUES = {"::1", "127.0.0.1", "localhost"}


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float
    limit: int

    def retry_after(self, now: Optional[float] = None) -> int:
        now = time.time() if now is None else now
        return max(0, int(round(self.reset_at - now)))


class RateLimiter:
    """Interface shared by the limiter backends."""

    def __init__(self, max_requests: int, window_seconds: int):
        self.max_requests = max_requests
        self.window_seconds = window_seconds

    def hit(self, key: str, max_requests: Optional[int] = None) -> RateLimitResult:
        raise NotImplementedError

    def reset(self) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


class InMemoryRateLimiter(RateLimiter):
    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        clock: Callable[[], float] = time.time,
        sweep_probability: float = 0.001,
    ):
        super().__init__(max_requests, window_seconds)
        self._clock = clock
        self._sweep_probability = sweep_probability
        self._store: Dict[str, list] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, max_requests: Optional[int] = None) -> RateLimitResult:
        limit = max_requests or self.max_requests
        now = self._clock()

        with self._lock:
            if random.random() < self._sweep_probability:
                self._sweep(now)

            record = self._store.get(key)
            if record is None or record[1] < now:
                reset_at = now + self.window_seconds
                self._store[key] = [1, reset_at]
                return RateLimitResult(True, limit - 1, reset_at, limit)

            count, reset_at = record
            if count >= limit:
                return RateLimitResult(False, 0, reset_at, limit)

            record[0] = count + 1
            return RateLimitResult(True, limit - record[0], reset_at, limit)

    def _sweep(self, now: float) -> None:
        expired = [k for k, (_, reset_at) in self._store.items() if reset_at < now]
        for k in expired:
            del self._store[k]

    def reset(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        return len(self._store)


class RedisRateLimiter(RateLimiter):
    def __init__(self, client, max_requests: int, window_seconds: int, prefix: str = "rate_limit"):
        super().__init__(max_requests, window_seconds)
        self.client = client
        self.prefix = prefix

    def hit(self, key: str, max_requests: Optional[int] = None) -> RateLimitResult:
        limit = max_requests or self.max_requests
        redis_key = f"{self.prefix}:{key}"

        count = int(self.client.incr(redis_key))
        if count == 1:
            self.client.expire(redis_key, self.window_seconds)
        ttl = self.client.ttl(redis_key)
        if ttl is None or int(ttl) < 0:
            ttl = self.window_seconds
            self.client.expire(redis_key, self.window_seconds)
        reset_at = time.time() + int(ttl)

        if count > limit:
            return RateLimitResult(False, 0, reset_at, limit)
        return RateLimitResult(True, limit - count, reset_at, limit)

    def reset(self) -> None:
        for redis_key in self.client.scan_iter(f"{self.prefix}:*"):
            self.client.delete(redis_key)

    def close(self) -> None:
        try:
            self.client.close()
        except redis.RedisError as e:
            logger.warning(f"Failed to close Redis client: {str(e)}")


def build_rate_limiter(settings) -> RateLimiter:
    """Construct the limiter selected by RATE_LIMIT_BACKEND."""
    if settings.RATE_LIMIT_BACKEND == "redis":
        client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        return RedisRateLimiter(
            client,
            max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
            window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
        )
    if settings.RATE_LIMIT_BACKEND != "memory":
        raise ValueError(f"Unknown rate limit backend: {settings.RATE_LIMIT_BACKEND}")
    return InMemoryRateLimiter(
        max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    )


def get_client_ip(headers: Mapping[str, str], fallback: Optional[str] = None) -> str:
    """Best-effort client address from proxy headers, then the socket peer."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        for ip in (part.strip() for part in forwarded.split(",")):
            if ip and ip not in LOCALHOST_VALUES:
                return ip
        return "localhost"

    for header in ("x-real-ip", "cf-connecting-ip", "x-client-ip"):
        value = headers.get(header)
        if value and value not in LOCALHOST_VALUES:
            return value

    if fallback and fallback not in LOCALHOST_VALUES:
        return fallback
    return "localhost"
