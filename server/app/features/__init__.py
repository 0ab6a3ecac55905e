"""
Application features.

- system: health, status and Redis introspection routes
- cache: Redis-backed cache, invalidation and maintenance jobs
"""

from .system.routes import system_router

__all__ = [
    "system_router",
]
