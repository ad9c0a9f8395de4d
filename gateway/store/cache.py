"""Redis-backed cache client with retry on connect and graceful degradation.

One ``CacheClient`` is created per application in the lifespan and reaches
handlers through the ``get_cache`` dependency. An unreachable Redis is logged
and leaves the client disconnected; reads then miss and writes are dropped.
"""

from __future__ import annotations

import asyncio
import re

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

logger = structlog.get_logger()

# Pattern to redact passwords from Redis URLs
_REDIS_URL_PASSWORD = re.compile(r"(rediss?://[^:]*:)[^@]+(@)")

_BASE_DELAY = 0.5


def _redact_url(url: str) -> str:
    """Redact password from Redis URL for safe logging."""
    return _REDIS_URL_PASSWORD.sub(r"\1***\2", url)


class CacheClient:
    """Explicitly managed Redis connection pool: ``connect()`` then ``close()``."""

    def __init__(self, url: str, pool_size: int = 10, max_retries: int = 5) -> None:
        self._url = url
        self._pool_size = pool_size
        self._max_retries = max(1, max_retries)
        self._pool: aioredis.Redis | None = None

    @property
    def connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> bool:
        """Open the pool with exponential backoff. Returns False when Redis stays unreachable."""
        for attempt in range(1, self._max_retries + 1):
            pool = aioredis.from_url(
                self._url,
                max_connections=self._pool_size,
                decode_responses=True,
                socket_connect_timeout=5,
            )
            try:
                await pool.ping()
            except (RedisError, OSError) as exc:
                await pool.aclose()
                delay = _BASE_DELAY * (2 ** (attempt - 1))
                logger.warning(
                    "redis_connect_retry",
                    attempt=attempt,
                    max_retries=self._max_retries,
                    delay=delay,
                    error=str(exc),
                )
                if attempt == self._max_retries:
                    logger.error("redis_connect_failed", url=_redact_url(self._url), error=str(exc))
                    return False
                await asyncio.sleep(delay)
                continue
            self._pool = pool
            logger.info("redis_connected", url=_redact_url(self._url), pool_size=self._pool_size)
            return True
        return False

    async def ping(self) -> bool:
        """Check if Redis is reachable."""
        if self._pool is None:
            return False
        try:
            return bool(await self._pool.ping())
        except (RedisError, OSError):
            return False

    async def get(self, key: str) -> str | None:
        if self._pool is None:
            return None
        try:
            return await self._pool.get(key)
        except (RedisError, OSError) as exc:
            logger.warning("cache_get_failed", key=key, error=str(exc))
            return None

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> bool:
        if self._pool is None:
            return False
        try:
            await self._pool.set(key, value, ex=ttl_seconds)
        except (RedisError, OSError) as exc:
            logger.warning("cache_set_failed", key=key, error=str(exc))
            return False
        return True

    async def close(self) -> None:
        """Close the Redis connection pool."""
        if self._pool is not None:
            await self._pool.aclose()
            self._pool = None
            logger.info("redis_closed")
