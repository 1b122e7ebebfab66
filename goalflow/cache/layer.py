import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar
from uuid import UUID

from cachetools import TTLCache
from pydantic import BaseModel
from redis.asyncio import Redis, RedisError

from goalflow.cache.result import CacheResult
from goalflow.cache.tags import TagIndex
from goalflow.core.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures that mean "no cache this time", never "fail the request"
CACHE_ERRORS = (RedisError, OSError, TypeError, ValueError)


def create_redis(settings: Settings) -> Redis | None:
    """Build the process-wide Redis handle. Nothing connects until first use."""
    if not settings.redis_enabled:
        logger.info("Redis disabled by configuration")
        return None
    return Redis.from_url(
        settings.redis_dsn,
        encoding="utf-8",
        decode_responses=True,
        max_connections=settings.redis_pool_size,
        socket_connect_timeout=settings.redis_socket_timeout,
        socket_timeout=settings.redis_socket_timeout,
        socket_keepalive=True,
        health_check_interval=30,
    )


class GoalsCache:
    """
    Read-through cache for goals list pages.

    Features:
    - Tagged writes: every page is tracked per user for bulk invalidation
    - Stampede protection with per-key locks
    - Graceful degradation when Redis is unavailable: reads miss, writes
      and invalidations become no-ops
    """

    def __init__(self, redis: Redis | None, settings: Settings):
        self._redis = redis
        self._settings = settings
        self.tags = TagIndex(redis, settings.tag_ttl_slack_seconds) if redis else None
        self._locks: TTLCache = TTLCache(maxsize=10_000, ttl=300)

        # Stats tracking
        self.stats = {
            "hits": 0,
            "misses": 0,
            "errors": 0,
            "stored": 0,
            "invalidated": 0,
        }

    @property
    def enabled(self) -> bool:
        return self._redis is not None

    async def _attempt(
        self, operation: str, action: Callable[[], Awaitable[T]]
    ) -> CacheResult[T]:
        """Run one store operation; the only place cache errors are handled."""
        if self._redis is None:
            return CacheResult.miss()
        try:
            return CacheResult.ok(await action())
        except CACHE_ERRORS as e:
            self.stats["errors"] += 1
            logger.warning("Cache %s failed: %s", operation, e)
            return CacheResult.from_error(e)

    def _serialize(self, value: Any) -> str:
        """Serialize value for storage."""
        if isinstance(value, BaseModel):
            value = value.model_dump(mode="json")
        return json.dumps(value, default=str)

    def _deserialize(self, raw: str, schema: type[BaseModel] | None) -> Any:
        data = json.loads(raw)
        return schema.model_validate(data) if schema else data

    async def ping(self) -> bool:
        result = await self._attempt("PING", lambda: self._redis.ping())
        if result.found:
            logger.info("Redis connection established")
        return bool(result.value)

    async def get(
        self, key: str, schema: type[BaseModel] | None = None
    ) -> CacheResult[Any]:
        """
        Look up a page. Store errors and undecodable payloads count as a miss.

        Args:
            key: Page key built by ``build_goals_page_key``
            schema: Optional pydantic model to validate the payload into
        """

        async def read():
            raw = await self._redis.get(key)
            if raw is None:
                return None
            return self._deserialize(raw, schema)

        result = await self._attempt("GET", read)
        if result.found:
            self.stats["hits"] += 1
            logger.debug("Cache hit %s", key)
        else:
            self.stats["misses"] += 1
        return result

    async def put(
        self, user_id: UUID | str, key: str, value: Any, ttl: Optional[int] = None
    ) -> bool:
        """
        Store a page and tag it for the user in a single MULTI/EXEC.

        Returns False when nothing was stored. A cancelled put never reaches
        EXEC, so neither the page nor its tag membership is written.
        """
        ttl = ttl or self._settings.goals_cache_ttl_seconds

        async def write():
            data = self._serialize(value)
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.set(key, data, ex=ttl)
                self.tags.stage_add(pipe, user_id, key, ttl)
                await pipe.execute()
            return True

        result = await self._attempt("SET", write)
        if result.found:
            self.stats["stored"] += 1
            logger.debug("Stored %s (ttl=%ss)", key, ttl)
        return result.found

    async def get_or_load(
        self,
        user_id: UUID | str,
        key: str,
        loader: Callable[[], Awaitable[Any]],
        ttl: Optional[int] = None,
        schema: type[BaseModel] | None = None,
    ) -> Any:
        """
        Return the cached page or load it from the source and cache it.

        Loader errors propagate unchanged; only cache errors are absorbed.
        """
        cached = await self.get(key, schema)
        if cached.found:
            return cached.value

        async with self._lock_for(key):
            # Double-check after acquiring lock
            if self.enabled:
                cached = await self.get(key, schema)
                if cached.found:
                    return cached.value

            logger.debug("Loading from source %s", key)
            value = await loader()
            if value is None:
                return None

            await self.put(user_id, key, value, ttl)
            return value

    async def invalidate_user(self, user_id: UUID | str) -> int:
        """Drop every cached page for the user. Returns 0 on store errors."""
        result = await self._attempt(
            "INVALIDATE", lambda: self.tags.invalidate_user(user_id)
        )
        removed = result.value or 0
        self.stats["invalidated"] += removed
        return removed

    async def close(self):
        """Graceful shutdown of cache connections."""
        if self._redis:
            try:
                await self._redis.aclose()
                logger.info("Redis connection closed")
            except CACHE_ERRORS as e:
                logger.error("Error closing Redis: %s", e)

    def get_stats(self) -> dict:
        lookups = self.stats["hits"] + self.stats["misses"]
        return {
            **self.stats,
            "enabled": self.enabled,
            "hit_rate": self.stats["hits"] / lookups if lookups else 0,
        }

    def _lock_for(self, key: str) -> asyncio.Lock:
        # Locks expire 300s after creation, longer than any page load, and
        # setdefault hands every concurrent caller the same lock object.
        return self._locks.setdefault(key, asyncio.Lock())
