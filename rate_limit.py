import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Request

from errors import RateLimitExceeded


@dataclass
class RateLimitResult:
    success: bool
    limit: int
    remaining: int
    reset_at: int


def rate_limit_headers(limit: int, remaining: int, reset_at: int) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": str(remaining),
        "X-RateLimit-Reset": str(reset_at),
    }


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client:
        return request.client.host
    return "unknown"


class RateLimiter:
    """Fixed-window counters kept in process memory. Counts reset on restart."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}
        self._lock = threading.Lock()

    def check(
        self, key: str, *, limit: int, window_seconds: int, identifier: str
    ) -> RateLimitResult:
        now = self._clock()
        bucket = f"{identifier}:{key}"
        with self._lock:
            self._evict(now)
            window_start, count = self._windows.get(bucket, (now, 0))
            if now - window_start >= window_seconds:
                window_start, count = now, 0
            reset_at = int(math.ceil(window_start + window_seconds))
            if count >= limit:
                return RateLimitResult(False, limit, 0, reset_at)
            count += 1
            self._windows[bucket] = (window_start, count)
            return RateLimitResult(True, limit, limit - count, reset_at)

    def _evict(self, now: float) -> None:
        # Drops windows idle for over a day so the table stays bounded.
        stale = [k for k, (start, _c) in self._windows.items() if now - start > 86400]
        for key in stale:
            del self._windows[key]

    def enforce(
        self, key: str, *, limit: int, window_seconds: int, identifier: str
    ) -> RateLimitResult:
        result = self.check(
            key, limit=limit, window_seconds=window_seconds, identifier=identifier
        )
        if not result.success:
            retry_after = max(1, result.reset_at - int(self._clock()))
            raise RateLimitExceeded(
                limit=result.limit,
                remaining=0,
                reset_at=result.reset_at,
                retry_after=retry_after,
            )
        return result

    def reset(self, identifier: Optional[str] = None) -> None:
        with self._lock:
            if identifier is None:
                self._windows.clear()
                return
            prefix = f"{identifier}:"
            for key in [k for k in self._windows if k.startswith(prefix)]:
                del self._windows[key]


limiter = RateLimiter()
