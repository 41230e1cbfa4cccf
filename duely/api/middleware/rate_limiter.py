"""Token-bucket rate limiting for login and other abuse-prone endpoints."""

import os
import time
from collections import defaultdict

from fastapi import HTTPException, Request, status


class RateLimiter:
    """In-memory token bucket per client key.

    Buckets live in the process, so each worker limits independently.
    """

    def __init__(
        self,
        requests_per_minute: int = 10,
        burst_size: int = 5,
        cleanup_interval: int = 60,
    ):
        """Initialize rate limiter.

        Args:
            requests_per_minute: Refill rate of each bucket
            burst_size: Bucket capacity
            cleanup_interval: Seconds between sweeps of idle buckets
        """
        self.requests_per_minute = requests_per_minute
        self.burst_size = burst_size
        self.cleanup_interval = cleanup_interval

        # key -> (tokens, last_update, request_count)
        self.buckets: dict[str, tuple[float, float, int]] = defaultdict(
            lambda: (burst_size, time.monotonic(), 0)
        )
        self.last_cleanup = time.monotonic()

    @property
    def retry_after(self) -> int:
        return max(1, int(60 / self.requests_per_minute))

    def _refill_tokens(self, key: str) -> float:
        tokens, last_update, count = self.buckets[key]
        now = time.monotonic()
        tokens = min(tokens + (now - last_update) * (self.requests_per_minute / 60.0), self.burst_size)
        self.buckets[key] = (tokens, now, count)
        return tokens

    def check(self, key: str) -> None:
        """Consume one token for ``key``.

        Raises:
            HTTPException: 429 with ``Retry-After`` when the bucket is empty
        """
        now = time.monotonic()
        if now - self.last_cleanup > self.cleanup_interval:
            self._cleanup_old_entries()
            self.last_cleanup = now

        if self._refill_tokens(key) < 1.0:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests. Please try again later.",
                headers={"Retry-After": str(self.retry_after)},
            )

        tokens, last_update, count = self.buckets[key]
        self.buckets[key] = (tokens - 1.0, last_update, count + 1)

    def _cleanup_old_entries(self) -> None:
        cutoff = time.monotonic() - self.cleanup_interval * 2
        for key in [k for k, (_, last_update, _) in self.buckets.items() if last_update < cutoff]:
            del self.buckets[key]

    def stats(self, key: str) -> dict:
        if key not in self.buckets:
            return {"tokens_available": self.burst_size, "total_requests": 0}
        tokens = self._refill_tokens(key)
        return {
            "tokens_available": int(tokens),
            "total_requests": self.buckets[key][2],
            "limit_per_minute": self.requests_per_minute,
        }

    def reset(self) -> None:
        self.buckets.clear()


login_rate_limiter = RateLimiter(requests_per_minute=10, burst_size=5)
admin_login_rate_limiter = RateLimiter(requests_per_minute=5, burst_size=5)


def trusted_proxies() -> set[str]:
    """Peer addresses allowed to set ``x-forwarded-for``, from ``TRUSTED_PROXIES``."""
    return {p.strip() for p in os.getenv("TRUSTED_PROXIES", "").split(",") if p.strip()}


def _client_key(request: Request) -> str:
    """Bucket key: the socket peer, or the first forwarded hop behind a trusted proxy."""
    peer = request.client.host if request.client else "unknown"
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and peer in trusted_proxies():
        return forwarded.split(",")[0].strip()
    return peer


async def check_login_rate_limit(request: Request) -> None:
    """FastAPI dependency limiting user login and registration per client IP.

    Example:
        @router.post("/api/auth/login", dependencies=[Depends(check_login_rate_limit)])
    """
    login_rate_limiter.check(_client_key(request))


async def check_admin_login_rate_limit(request: Request) -> None:
    admin_login_rate_limiter.check(_client_key(request))
