import json
import logging

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class CacheManager:
    """
    Cache-aside manager backed by Redis.

    All public methods are safe to call even when Redis is unavailable:
    reads return None and writes are skipped, so lookups fall through to
    the database instead of raising.
    """

    def __init__(self, url: str) -> None:
        self._url = url
        self._redis: redis.Redis | None = None
        self._hits: int = 0
        self._misses: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the connection pool.  Called once at application startup."""
        self._redis = redis.from_url(
            self._url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await self._redis.ping()
            logger.info("Redis connected: %s", self._url)
        except (redis.RedisError, OSError) as exc:
            logger.warning("Redis ping failed, cache disabled: %s", exc)
            await self.disconnect()

    async def disconnect(self) -> None:
        """Close the connection pool.  Called once at application shutdown."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    @property
    def connected(self) -> bool:
        return self._redis is not None

    # ------------------------------------------------------------------
    # Core cache operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> dict | list | None:
        """Return the cached value for *key*, or None on a miss / error."""
        if not self._redis:
            self._misses += 1
            return None
        try:
            data = await self._redis.get(key)
            value = json.loads(data) if data is not None else None
        except (redis.RedisError, ValueError) as exc:
            logger.debug("Cache GET error for key=%r: %s", key, exc)
            self._misses += 1
            return None
        if value is None:
            self._misses += 1
            return None
        self._hits += 1
        return value

    async def set(self, key: str, value: dict | list, ttl: int | None = None) -> None:
        """
        Store *value* under *key* with an optional TTL (seconds).

        Redis failures are logged at debug level and otherwise ignored.
        """
        if not self._redis:
            return
        try:
            await self._redis.set(key, json.dumps(value, default=str), ex=ttl)
        except redis.RedisError as exc:
            logger.debug("Cache SET error for key=%r: %s", key, exc)

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    @property
    def stats(self) -> dict:
        """Snapshot of hit/miss counters for the health endpoint."""
        total = self._hits + self._misses
        return {
            "connected": self.connected,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }
