# utils/rate_limiter.py - Sliding window rate limiter keyed by client IP
"""
Sliding window rate limiter for the chat API.

Hits are logged per key in a window store. Redis is the shared store in
production; the in-memory store keeps the same semantics for a single process
(development and tests).
"""

import threading
import time
import uuid
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional, Sequence, Tuple

import redis
from fastapi import Request

from config import (
    FALLBACK_CLIENT_IP,
    RATE_LIMIT_KEY_PREFIX,
    RATE_LIMIT_REQUESTS,
    RATE_LIMIT_WINDOW_SECONDS,
    TRUSTED_PROXIES,
)
from utils.logger import get_ratelimit_logger

logger = get_ratelimit_logger()

# (allowed, hits in window, oldest hit in window as unix ms)
HitResult = Tuple[bool, int, int]


@dataclass
class RateLimitDecision:
    """Outcome of one quota check."""
    allowed: bool
    limit: int
    remaining: int
    reset: int  # unix time in milliseconds when the oldest hit leaves the window

    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset),
        }


class InMemoryWindowStore:
    """Per-process sliding window log."""

    def __init__(self):
        # Structure: {key: deque of hit timestamps in ms, oldest first}
        self._hits: Dict[str, Deque[int]] = defaultdict(deque)
        self._lock = threading.Lock()
        self._last_sweep_ms = 0

    def __len__(self) -> int:
        return len(self._hits)

    def hit(self, key: str, now_ms: int, window_ms: int, limit: int) -> HitResult:
        with self._lock:
            if now_ms - self._last_sweep_ms >= window_ms:
                self._sweep(now_ms - window_ms)
                self._last_sweep_ms = now_ms

            hits = self._hits[key]
            while hits and hits[0] <= now_ms - window_ms:
                hits.popleft()

            if len(hits) >= limit:
                return False, len(hits), hits[0]

            hits.append(now_ms)
            return True, len(hits), hits[0]

    def _sweep(self, expired_before_ms: int) -> None:
        """Drop keys whose newest hit has left the window."""
        stale = [key for key, hits in self._hits.items() if not hits or hits[-1] <= expired_before_ms]
        for key in stale:
            del self._hits[key]

    def reset(self, key: str) -> None:
        """Forget all hits for a key (for testing)."""
        with self._lock:
            self._hits.pop(key, None)


# Trim, count, conditionally add and read the oldest hit in one atomic step.
# Returns {allowed (0/1), hits in window, oldest hit in ms}.
SLIDING_WINDOW_SCRIPT = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])

redis.call('ZREMRANGEBYSCORE', key, 0, now - window)
local count = redis.call('ZCARD', key)
local allowed = 0
if count < limit then
    redis.call('ZADD', key, now, ARGV[4])
    count = count + 1
    allowed = 1
end
redis.call('PEXPIRE', key, window)

local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
local oldest_ms = now
if oldest[2] then
    oldest_ms = tonumber(oldest[2])
end
return {allowed, count, oldest_ms}
"""


class RedisWindowStore:
    """Sliding window log stored as one sorted set per key."""

    def __init__(self, client: redis.Redis):
        self.client = client
        self._script = client.register_script(SLIDING_WINDOW_SCRIPT)

    def hit(self, key: str, now_ms: int, window_ms: int, limit: int) -> HitResult:
        member = f"{now_ms}-{uuid.uuid4().hex}"
        allowed, count, oldest_ms = self._script(keys=[key], args=[now_ms, window_ms, limit, member])
        return bool(int(allowed)), int(count), int(oldest_ms)


class SlidingWindowLimiter:
    """Allow at most max_requests per identifier in any window_seconds span."""

    def __init__(
        self,
        store,
        max_requests: int = RATE_LIMIT_REQUESTS,
        window_seconds: int = RATE_LIMIT_WINDOW_SECONDS,
        prefix: str = RATE_LIMIT_KEY_PREFIX,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.prefix = prefix
        self.clock = clock

    def limit(self, identifier: str) -> RateLimitDecision:
        """
        Record a hit for identifier and decide whether it is allowed.

        Raises:
            Whatever the store raises (e.g. redis.RedisError); callers fail closed.
        """
        now_ms = int(self.clock() * 1000)
        window_ms = self.window_seconds * 1000
        key = f"{self.prefix}:{identifier}"

        allowed, count, oldest_ms = self.store.hit(key, now_ms, window_ms, self.max_requests)

        decision = RateLimitDecision(
            allowed=allowed,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - count),
            reset=oldest_ms + window_ms,
        )
        if not allowed:
            logger.warning(f"Rate limit exceeded for {identifier}")
        return decision


def build_limiter(redis_url: Optional[str] = None, redis_token: Optional[str] = None) -> SlidingWindowLimiter:
    """Create the process-wide limiter, Redis backed when a URL is configured."""
    if redis_url:
        client = redis.Redis.from_url(redis_url, password=redis_token or None, decode_responses=True)
        logger.info("Rate limiter using Redis window store")
        return SlidingWindowLimiter(RedisWindowStore(client))

    logger.warning("REDIS_URL not set, rate limiter falls back to in-memory store")
    return SlidingWindowLimiter(InMemoryWindowStore())


def _is_trusted(peer: Optional[str], trusted_proxies: Sequence[str]) -> bool:
    return bool(peer) and ("*" in trusted_proxies or peer in trusted_proxies)


def get_client_ip(request: Request, trusted_proxies: Sequence[str] = TRUSTED_PROXIES) -> str:
    """
    Extract client IP from request.

    X-Forwarded-For / X-Real-IP are only honoured when the socket peer is one of
    trusted_proxies; otherwise any client could pick its own rate limit key.
    """
    peer = request.client.host if request.client else None

    if _is_trusted(peer, trusted_proxies):
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()

    return peer or FALLBACK_CLIENT_IP
