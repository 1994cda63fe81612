"""
Sliding-window rate limiting.

Counters live in a Redis sorted set per identifier so every API instance sees
the same window. When Redis is unavailable (or CACHE_BACKEND=memory) each
limiter falls back to an in-process window; that mode only bounds traffic per
instance and undercounts behind a load balancer.
"""
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional

from fastapi import Request
from redis.exceptions import RedisError

from storefront.core.cache import get_redis
from storefront.core.config import settings
from storefront.core.exceptions import RateLimited
from storefront.core.logging import get_logger
from storefront.core.security import peek_token_subject

logger = get_logger(__name__)


@dataclass
class RateLimitResult:
    success: bool
    limit: int
    remaining: int
    reset: int  # unix seconds when the window frees up

    @property
    def retry_after(self) -> int:
        return max(1, self.reset - int(time.time()))


class InMemoryRateLimiter:
    """Per-process sliding window. Single-instance accuracy only."""

    def __init__(self, max_requests: int, window_seconds: int):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._requests: Dict[str, List[float]] = {}
        self._lock = threading.Lock()
        self._calls = 0

    def limit(self, identifier: str, now: Optional[float] = None) -> RateLimitResult:
        now = time.time() if now is None else now
        window_start = now - self.window_seconds

        with self._lock:
            timestamps = [t for t in self._requests.get(identifier, []) if t > window_start]

            if len(timestamps) >= self.max_requests:
                self._requests[identifier] = timestamps
                return RateLimitResult(
                    success=False,
                    limit=self.max_requests,
                    remaining=0,
                    reset=int(timestamps[0] + self.window_seconds) + 1,
                )

            timestamps.append(now)
            self._requests[identifier] = timestamps

            self._calls += 1
            if self._calls % 1000 == 0:
                self._cleanup(window_start)

            return RateLimitResult(
                success=True,
                limit=self.max_requests,
                remaining=self.max_requests - len(timestamps),
                reset=int(now + self.window_seconds),
            )

    def _cleanup(self, window_start: float) -> None:
        for key in list(self._requests):
            live = [t for t in self._requests[key] if t > window_start]
            if live:
                self._requests[key] = live
            else:
                del self._requests[key]

    def reset(self) -> None:
        with self._lock:
            self._requests.clear()


class RedisRateLimiter:
    """Sliding window over a Redis sorted set (score = request time)."""

    def __init__(self, max_requests: int, window_seconds: int):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.fallback = InMemoryRateLimiter(max_requests, window_seconds)

    def limit(self, identifier: str) -> RateLimitResult:
        redis = get_redis()
        if redis is None:
            return self.fallback.limit(identifier)

        now = time.time()
        key = f"rate_limit:{identifier}"
        window_start = now - self.window_seconds

        try:
            pipe = redis.pipeline()
            pipe.zremrangebyscore(key, 0, window_start)
            pipe.zcard(key)
            pipe.zadd(key, {f"{now}-{uuid.uuid4().hex[:8]}": now})
            pipe.expire(key, self.window_seconds)
            results = pipe.execute()
        except RedisError as e:
            logger.warning(f"Redis rate limit unavailable, using in-process counter: {e}")
            return self.fallback.limit(identifier)

        current = int(results[1])
        reset = int(now + self.window_seconds)

        if current >= self.max_requests:
            return RateLimitResult(success=False, limit=self.max_requests, remaining=0, reset=reset)

        return RateLimitResult(
            success=True,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - current - 1),
            reset=reset,
        )


def client_identifier(request: Request) -> str:
    """Authenticated user id when present, otherwise the client IP."""
    subject = peek_token_subject(request)
    if subject:
        return f"user:{subject}"

    forwarded = request.headers.get("x-forwarded-for")
    real_ip = request.headers.get("x-real-ip")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    elif real_ip:
        ip = real_ip.strip()
    elif request.client:
        ip = request.client.host
    else:
        ip = "unknown"
    return f"ip:{ip}"


# Default budgets per scope (requests per window)
SCOPE_BUDGETS = {
    "auth": lambda: settings.RATE_LIMIT_AUTH,
    "api": lambda: settings.RATE_LIMIT_API,
    "admin": lambda: settings.RATE_LIMIT_ADMIN,
    "order_submit": lambda: settings.RATE_LIMIT_ORDER_SUBMIT,
    "order_update": lambda: settings.RATE_LIMIT_ORDER_UPDATE,
}

_registry: List["RateLimit"] = []


class RateLimit:
    """
    Dependency that rejects the request with 429 once the caller exceeds the
    scope's budget.

    Usage: ``dependencies=[Depends(RateLimit("auth"))]``
    """

    def __init__(
        self,
        scope: str,
        max_requests: Optional[int] = None,
        window_seconds: Optional[int] = None,
    ):
        if scope not in SCOPE_BUDGETS:
            raise ValueError(f"Unknown rate limit scope: {scope}")
        self.scope = scope
        self.limiter = RedisRateLimiter(
            max_requests or SCOPE_BUDGETS[scope](),
            window_seconds or settings.RATE_LIMIT_WINDOW_SECONDS,
        )
        _registry.append(self)

    def check(self, request: Request) -> RateLimitResult:
        identifier = client_identifier(request)
        result = self.limiter.limit(f"{self.scope}:{identifier}")
        if not result.success:
            logger.warning(
                f"Rate limit exceeded for {identifier} on {request.url.path}",
                extra={"identifier": identifier, "path": request.url.path},
            )
        return result

    async def __call__(self, request: Request) -> None:
        result = self.check(request)
        if not result.success:
            raise RateLimited(
                retry_after=result.retry_after,
                limit=result.limit,
                reset=result.reset,
            )


def reset_rate_limits() -> None:
    """Clear every in-process fallback window (used by tests and admin tooling)."""
    for dependency in _registry:
        dependency.limiter.fallback.reset()
