# ezfoia/auth.py
"""
Bearer-token helpers and pluggable fixed-window rate limiters.

Limiters are plain objects built by `build_limiter` and handed to the
handlers that need them; nothing here keeps a module-level counter store.
The in-memory limiter only sees the traffic of its own process, so with
several serverless instances it throttles per instance (best effort).
Set REDIS_URL to share one window across instances.

Env vars:
- REDIS_URL — optional, enables the Redis-based distributed limiter
"""

import math
import os
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

import redis

from ezfoia.errors import AuthenticationError
from ezfoia.monitoring import logger

REDIS_URL = os.getenv("REDIS_URL", "")


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after_seconds: Optional[int] = None
    remaining: Optional[int] = None


class FixedWindowRateLimiter(Protocol):
    def check(self, identifier: str) -> RateLimitDecision: ...


@dataclass
class _Window:
    count: int
    reset_at: float


class InMemoryFixedWindowLimiter:
    """Thread-safe in-memory fixed-window rate limiter (per-process)."""

    def __init__(self, limit: int, window_seconds: float = 60.0,
                 clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._store: Dict[str, _Window] = {}
        self._lock = threading.Lock()

    def check(self, identifier: str) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            record = self._store.get(identifier)
            if record is None or now > record.reset_at:
                self._store[identifier] = _Window(count=1, reset_at=now + self.window_seconds)
                return RateLimitDecision(True, remaining=self.limit - 1)
            if record.count >= self.limit:
                retry = max(1, math.ceil(record.reset_at - now))
                return RateLimitDecision(False, retry_after_seconds=retry, remaining=0)
            record.count += 1
            return RateLimitDecision(True, remaining=self.limit - record.count)

    def count_for(self, identifier: str) -> int:
        with self._lock:
            record = self._store.get(identifier)
            return record.count if record else 0

    def reset(self):
        """Reset all state (useful for tests)."""
        with self._lock:
            self._store.clear()


class RedisFixedWindowLimiter:
    """Redis fixed-window counter using INCR + PEXPIRE, shared by every instance."""

    def __init__(self, client: "redis.Redis", limit: int, window_seconds: float = 60.0,
                 prefix: str = "rate"):
        self.limit = limit
        self.window_seconds = window_seconds
        self.prefix = prefix
        self._client = client

    def check(self, identifier: str) -> RateLimitDecision:
        key = f"{self.prefix}:{identifier}"
        window_ms = int(self.window_seconds * 1000)
        try:
            count = int(self._client.incr(key))
            if count == 1:
                self._client.pexpire(key, window_ms)
            if count > self.limit:
                ttl_ms = self._client.pttl(key)
                if ttl_ms is None or ttl_ms < 0:
                    # key lost its expiry; start the window again
                    self._client.pexpire(key, window_ms)
                    ttl_ms = window_ms
                return RateLimitDecision(False, retry_after_seconds=max(1, math.ceil(ttl_ms / 1000)), remaining=0)
            return RateLimitDecision(True, remaining=self.limit - count)
        except redis.RedisError:
            # Fail open on Redis errors
            logger.warning("Redis rate limiter unavailable, allowing request", extra={"limiter_key": key})
            return RateLimitDecision(True)


def build_limiter(limit: int, window_seconds: float = 60.0, namespace: str = "rate") -> FixedWindowRateLimiter:
    """Pick the distributed limiter when REDIS_URL is configured, else the in-process one."""
    if REDIS_URL:
        client = redis.Redis.from_url(REDIS_URL, decode_responses=True)
        return RedisFixedWindowLimiter(client, limit, window_seconds, prefix=f"rate:{namespace}")
    return InMemoryFixedWindowLimiter(limit, window_seconds)


def client_ip(headers) -> str:
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or "unknown"
    return headers.get("cf-connecting-ip") or "unknown"


def bearer_token(authorization: Optional[str]) -> str:
    """Extract the token from an `Authorization: Bearer <token>` header."""
    if not authorization:
        raise AuthenticationError("Missing Authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Invalid Authorization header")
    return token.strip()
