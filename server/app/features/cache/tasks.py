"""
Celery tasks for cache maintenance
"""
import asyncio
import logging
from typing import Any, Dict, Iterable

from app.core.celery_app import celery_app
from app.core.redis import RedisManager
from .keys import STALE_CACHE_PATTERNS
from .service import scan_delete

logger = logging.getLogger(__name__)


async def _delete_patterns(patterns: Iterable[str]) -> int:
    # Each task run gets its own clients: asyncio.run() creates a new loop
    manager = RedisManager()
    try:
        if not await manager.initialize():
            raise ConnectionError("Redis is not available")

        total_deleted = 0
        for pattern in patterns:
            deleted = await scan_delete(manager.main, pattern)
            logger.info(f"🗑️ Deleted {deleted} keys matching {pattern}")
            total_deleted += deleted
        return total_deleted
    finally:
        await manager.close()


@celery_app.task(bind=True, max_retries=3)
def cleanup_stale_cache_task(self) -> Dict[str, Any]:
    """
    Remove orphaned temporary and expired-session keys

    Runs every STALE_CACHE_CLEANUP_INTERVAL seconds.
    """
    logger.info("🧹 Cleaning up stale cache entries...")

    try:
        deleted = asyncio.run(_delete_patterns(STALE_CACHE_PATTERNS))
        logger.info(f"✅ Cleaned up {deleted} stale cache entries")
        return {"status": "success", "deleted": deleted}

    except Exception as e:
        logger.error(f"❌ Error cleaning up stale cache: {e}")
        raise self.retry(exc=e, countdown=60 * (2 ** self.request.retries))


@celery_app.task(bind=True, max_retries=3)
def invalidate_pattern_task(self, pattern: str) -> Dict[str, Any]:
    """
    Delete keys matching a pattern in the background

    Args:
        pattern: Glob pattern, e.g. ``feed:*``
    """
    try:
        deleted = asyncio.run(_delete_patterns([pattern]))
        return {"status": "success", "pattern": pattern, "deleted": deleted}

    except Exception as e:
        logger.error(f"❌ Error invalidating pattern {pattern}: {e}")
        raise self.retry(exc=e, countdown=60 * (2 ** self.request.retries))
