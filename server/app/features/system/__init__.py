"""
System features - health and introspection.

- routes: /system/health, /system/status, /system/redis/info
"""

from .routes import system_router

__all__ = ["system_router"]
