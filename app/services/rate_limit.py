from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Protocol

import redis

from app.core.config import settings

_LOG = logging.getLogger("app.rate_limit")


@dataclass
class RateLimitResult:
    allowed: bool
    retry_after_seconds: int
    current_value: int


class RateLimiter(Protocol):
    def hit(self, key: str, *, limit: int, window_seconds: int) -> RateLimitResult:
        ...


class InMemoryRateLimiter:
    """Process-local fixed-window counters keyed by client.

    Expired windows are swept at most once per window length, so the table only
    holds clients seen within the current window.
    """

    def __init__(self):
        self._data: dict[str, tuple[int, datetime]] = {}
        self._lock = Lock()
        self._next_sweep_at: datetime | None = None

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _sweep(self, now: datetime, window_seconds: int) -> None:
        if self._next_sweep_at is not None and now < self._next_sweep_at:
            return
        expired = [key for key, (_, expires_at) in self._data.items() if expires_at <= now]
        for key in expired:
            del self._data[key]
        self._next_sweep_at = now + timedelta(seconds=max(int(window_seconds), 1))

    def hit(self, key: str, *, limit: int, window_seconds: int) -> RateLimitResult:
        now = self._now()
        with self._lock:
            self._sweep(now, window_seconds)
            count, expires_at = self._data.get(key, (0, now))
            if expires_at <= now:
                count = 0
                expires_at = now + timedelta(seconds=max(int(window_seconds), 1))
            count += 1
            self._data[key] = (count, expires_at)
            retry_after = max(0, int((expires_at - now).total_seconds()))
        return RateLimitResult(allowed=count <= limit, retry_after_seconds=retry_after, current_value=count)


class RedisRateLimiter:
    def __init__(self, client: redis.Redis):
        self.client = client

    def hit(self, key: str, *, limit: int, window_seconds: int) -> RateLimitResult:
        count = int(self.client.incr(key))
        if count == 1:
            self.client.expire(key, int(max(window_seconds, 1)))
        ttl = int(self.client.ttl(key))
        if ttl < 0:
            ttl = int(max(window_seconds, 1))
        return RateLimitResult(allowed=count <= limit, retry_after_seconds=ttl, current_value=count)


_cached_limiter: RateLimiter | None = None


def _build_limiter() -> RateLimiter:
    try:
        client = redis.Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=0.4,
            socket_connect_timeout=0.4,
        )
        client.ping()
        return RedisRateLimiter(client)
    except Exception:
        _LOG.warning("Redis limiter unavailable; fallback to in-memory limiter")
        return InMemoryRateLimiter()


def get_rate_limiter() -> RateLimiter:
    global _cached_limiter
    if _cached_limiter is None:
        _cached_limiter = _build_limiter()
    return _cached_limiter


def use_rate_limiter(limiter: RateLimiter | None) -> None:
    global _cached_limiter
    _cached_limiter = limiter


def api_rate_limit_key(client_ip: str) -> str:
    return f"rl:api:{client_ip or 'unknown'}"


def client_ip(forwarded_for: str | None, peer_host: str | None) -> str:
    # Behind a proxy the left-most X-Forwarded-For entry is the original client.
    first = str(forwarded_for or "").split(",")[0].strip()
    return first or str(peer_host or "").strip() or "unknown"


def hit_api_limit(ip: str) -> RateLimitResult:
    result = get_rate_limiter().hit(
        api_rate_limit_key(ip),
        limit=int(settings.API_RATE_LIMIT),
        window_seconds=int(settings.API_RATE_LIMIT_WINDOW_SECONDS),
    )
    if not result.allowed:
        _LOG.info("rate limit exceeded ip=%s count=%s", ip, result.current_value)
    return result
