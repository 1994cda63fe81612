"""
Shared Redis connection for rate-limit counters and CSRF tokens.
"""
from functools import lru_cache
from typing import Optional

from redis import Redis

from storefront.core.config import settings


@lru_cache(maxsize=1)
def _redis_client(url: str) -> Redis:
    return Redis.from_url(
        url,
        decode_responses=True,
        socket_timeout=0.5,
        socket_connect_timeout=0.5,
    )


def get_redis() -> Optional[Redis]:
    """
    Get the shared Redis client, or None when the in-process backend is configured.

    The client connects lazily; callers must handle ``redis.exceptions.RedisError``
    and fall back to their local store.
    """
    if settings.CACHE_BACKEND != "redis":
        return None
    return _redis_client(settings.REDIS_URL)
