"""
Caching layer with Redis backend and in-memory fallback
"""
import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from redis.exceptions import RedisError

from ...core.config import settings
from ...core.redis import ClientRole, RedisManager, redis_manager
from .keys import CacheKeys, CacheTTL
from .memory_cache import MemoryCache
from .schemas import CacheStats, MemoryCacheStats, RedisCacheStats

logger = logging.getLogger(__name__)

SCAN_BATCH_SIZE = 100


async def scan_delete(redis, pattern: str) -> int:
    """
    Delete Redis keys matching a glob pattern using SCAN rather than KEYS.

    Errors propagate to the caller.

    Returns:
        Number of deleted keys
    """
    deleted = 0
    cursor = 0
    while True:
        cursor, keys = await redis.scan(cursor=cursor, match=pattern, count=SCAN_BATCH_SIZE)
        if keys:
            await redis.delete(*keys)
            deleted += len(keys)
        if int(cursor) == 0:
            return deleted


class CacheService:
    """
    JSON cache over the main Redis client.

    While Redis is unavailable every operation falls back to the process
    local ``MemoryCache``. Errors are logged and never raised to callers.
    """

    def __init__(self, manager: RedisManager, memory: Optional[MemoryCache] = None):
        self.manager = manager
        self.memory = memory if memory is not None else MemoryCache(settings.MEMORY_CACHE_MAX_SIZE)

    @property
    def redis(self):
        return self.manager.main

    async def _use_redis(self) -> bool:
        return await self.manager.ensure_available()

    def _report(self, error: Exception) -> None:
        if isinstance(error, (RedisError, OSError)):
            self.manager.report_error(ClientRole.MAIN, error)

    async def get(self, key: str) -> Optional[Any]:
        """
        Get a cached value

        Returns:
            Deserialized value or None if missing
        """
        try:
            if await self._use_redis():
                value = await self.redis.get(key)
                if value:
                    return json.loads(value)
                return None

            value = self.memory.get(key)
            if value is not None:
                return json.loads(value)
            return None

        except Exception as e:
            logger.error(f"❌ Cache get error for key {key}: {e}")
            self._report(e)
            return None

    async def set(self, key: str, value: Any, ttl: int = CacheTTL.MEDIUM) -> bool:
        """
        Cache a value with a TTL in seconds
        """
        try:
            serialized = json.dumps(value, default=str)

            if await self._use_redis():
                await self.redis.setex(key, ttl, serialized)
                return True

            self.memory.set(key, serialized, ttl)
            return True

        except Exception as e:
            logger.error(f"❌ Cache set error for key {key}: {e}")
            self._report(e)
            return False

    async def delete(self, key: str) -> bool:
        """Delete a key from both Redis and the memory cache"""
        try:
            if await self._use_redis():
                await self.redis.delete(key)
            self.memory.delete(key)
            return True

        except Exception as e:
            logger.error(f"❌ Cache delete error for key {key}: {e}")
            self._report(e)
            return False

    async def delete_pattern(self, pattern: str) -> int:
        """
        Delete all keys matching a glob pattern.

        Redis keys are found with SCAN rather than KEYS.

        Returns:
            Number of deleted keys
        """
        try:
            deleted = 0

            if await self._use_redis():
                deleted += await scan_delete(self.redis, pattern)

            deleted += self.memory.delete_matching(pattern)
            return deleted

        except Exception as e:
            logger.error(f"❌ Cache delete pattern error for {pattern}: {e}")
            self._report(e)
            return 0

    async def get_or_set(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[Any]],
        ttl: int = CacheTTL.MEDIUM
    ) -> Any:
        """
        Return the cached value or compute, cache and return it.

        Errors raised by ``fetcher`` propagate to the caller.
        """
        cached = await self.get(key)
        if cached is not None:
            return cached

        value = await fetcher()
        if not await self.set(key, value, ttl):
            logger.error(f"❌ Failed to cache {key}")
        return value

    async def increment(self, key: str, ttl: Optional[int] = None) -> int:
        """
        Increment a counter, e.g. for rate limiting.

        The TTL is only applied on the first increment.
        """
        try:
            if await self._use_redis():
                value = await self.redis.incr(key)
                if ttl and value == 1:
                    await self.redis.expire(key, ttl)
                return value

            return self.memory.increment(key, ttl)

        except Exception as e:
            logger.error(f"❌ Cache increment error for {key}: {e}")
            self._report(e)
            return 0

    async def get_counter(self, key: str) -> int:
        value = await self.get(key)
        return int(value) if value else 0

    async def set_many(self, entries: List[Dict[str, Any]]) -> bool:
        """
        Cache several values at once

        Args:
            entries: Dicts with ``key``, ``value`` and optional ``ttl``
        """
        try:
            if await self._use_redis():
                pipeline = self.redis.pipeline(transaction=False)
                for entry in entries:
                    ttl = entry.get("ttl") or CacheTTL.MEDIUM
                    pipeline.setex(entry["key"], ttl, json.dumps(entry["value"], default=str))
                await pipeline.execute()
                return True

            for entry in entries:
                await self.set(entry["key"], entry["value"], entry.get("ttl") or CacheTTL.MEDIUM)
            return True

        except Exception as e:
            logger.error(f"❌ Cache set multiple error: {e}")
            self._report(e)
            return False

    async def get_many(self, keys: List[str]) -> List[Optional[Any]]:
        """Values in the order of ``keys``, None for misses"""
        if not keys:
            return []

        try:
            if await self._use_redis():
                values = await self.redis.mget(keys)
            else:
                values = [self.memory.get(key) for key in keys]
            return [json.loads(value) if value else None for value in values]

        except Exception as e:
            logger.error(f"❌ Cache get multiple error: {e}")
            self._report(e)
            return [None for _ in keys]

    async def get_stats(self) -> CacheStats:
        """Cache statistics for monitoring"""
        available = await self._use_redis()
        redis_stats = RedisCacheStats(available=available)

        if available:
            try:
                info = await self.redis.info("memory")
                if "used_memory_human" in info:
                    redis_stats.memory = str(info["used_memory_human"])
                redis_stats.keys = await self.redis.dbsize()
            except Exception as e:
                logger.error(f"❌ Error getting Redis stats: {e}")
                self._report(e)

        return CacheStats(
            redis=redis_stats,
            memory=MemoryCacheStats(size=len(self.memory), max_size=self.memory.max_size),
        )

    def cleanup_memory(self) -> int:
        return self.memory.cleanup()

    async def run_memory_cleanup(self, interval: float) -> None:
        """Drop expired memory entries every ``interval`` seconds until cancelled"""
        while True:
            await asyncio.sleep(interval)
            try:
                self.cleanup_memory()
            except Exception as e:
                logger.error(f"❌ Memory cache cleanup failed: {e}")

    # Invalidation helpers

    async def invalidate_user(self, user_id: str) -> None:
        await asyncio.gather(
            self.delete(f"{CacheKeys.USER_PROFILE}{user_id}"),
            self.delete_pattern(f"{CacheKeys.USER_POSTS}{user_id}*"),
            self.delete_pattern(f"{CacheKeys.FRIENDS}{user_id}*"),
            self.delete_pattern(f"{CacheKeys.FOLLOWERS}{user_id}*"),
            self.delete_pattern(f"{CacheKeys.FOLLOWING}{user_id}*"),
        )

    async def invalidate_user_by_clerk_id(self, clerk_id: str) -> None:
        """Invalidate a user through the Clerk ID -> user ID mapping"""
        mapping_key = f"{CacheKeys.USER_BY_CLERK}{clerk_id}"
        user_id = await self.get(mapping_key)

        await self.delete(mapping_key)

        if user_id:
            await self.invalidate_user(str(user_id))

    async def invalidate_post(self, post_id: str, author_id: Optional[str] = None) -> None:
        await self.delete(f"{CacheKeys.POST}{post_id}")

        # Feeds are rebuilt on the next request
        await self.delete_pattern(f"{CacheKeys.POST_FEED}*")

        if author_id:
            await self.delete_pattern(f"{CacheKeys.USER_POSTS}{author_id}*")

    async def invalidate_feeds(self) -> None:
        """Drop every feed cache (use sparingly)"""
        await self.delete_pattern(f"{CacheKeys.POST_FEED}*")


cache_service = CacheService(redis_manager)
