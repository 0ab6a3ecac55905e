"""
Application core - settings and infrastructure.

This package contains:
- config: application settings and environment variables
- redis: Redis connection management (main, subscriber, publisher)
- middleware: request logging, CORS and exception handlers
- celery_app: background job configuration
"""

from .config import settings
from .redis import (
    redis_manager,
    initialize_redis,
    check_redis_health,
    get_redis_info,
    close_redis,
    is_redis_available,
)
from .middleware import setup_middleware, setup_exception_handlers

__all__ = [
    "settings",
    "redis_manager",
    "initialize_redis",
    "check_redis_health",
    "get_redis_info",
    "close_redis",
    "is_redis_available",
    "setup_middleware",
    "setup_exception_handlers"
]
