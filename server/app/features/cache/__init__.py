"""
Cache layer - Redis-backed cache with in-memory fallback.

This package contains:
- service: cache operations and invalidation helpers
- invalidation: cross-instance invalidation over pub/sub
- tasks: Celery maintenance jobs
"""

from .keys import CacheKeys, CacheTTL
from .service import CacheService, cache_service
from .invalidation import CacheInvalidationBus, invalidation_bus

__all__ = [
    "CacheKeys",
    "CacheTTL",
    "CacheService",
    "cache_service",
    "CacheInvalidationBus",
    "invalidation_bus",
]
