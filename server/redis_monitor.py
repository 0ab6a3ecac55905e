#!/usr/bin/env python3
"""
Redis monitoring and health check
"""
import asyncio
import logging
import os
import sys
from datetime import datetime
from typing import Any, Dict

sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from app.core.redis import ClientRole, HealthStatus, RedisManager

logger = logging.getLogger(__name__)

INFO_FIELDS = ("redis_version", "uptime_in_seconds", "connected_clients", "used_memory_human")


class RedisMonitor:
    """Periodic Redis health monitoring"""

    def __init__(self, manager: RedisManager = None):
        self.manager = manager or RedisManager()

    async def connect(self) -> bool:
        """Connect to Redis"""
        return await self.manager.initialize()

    async def get_full_status(self) -> Dict[str, Any]:
        """Health, handle status and selected INFO fields"""
        health = await self.manager.check_health()
        info = await self.manager.get_info()

        return {
            "timestamp": datetime.now().isoformat(),
            "health": health.model_dump(mode="json", exclude_none=True),
            "clients": {role.value: self.manager.status(role).value for role in ClientRole},
            "server": {field: info[field] for field in INFO_FIELDS if field in info},
            "overall_status": health.status.value,
        }

    async def monitor_loop(self, interval: int = 30):
        """Monitoring loop"""
        logger.info(f"🔄 Starting Redis monitoring every {interval} seconds")

        while True:
            status = await self.get_full_status()
            overall = status["overall_status"]

            if overall == HealthStatus.HEALTHY.value:
                logger.info(f"✅ Redis: healthy ({status['health'].get('latency')}ms)")
            elif overall == HealthStatus.DEGRADED.value:
                logger.warning(f"⚠️ Redis: degraded ({status['health'].get('latency')}ms)")
            else:
                logger.warning("⚠️ Redis: problems detected")
                logger.warning(f"   Health: {status['health']}")
                logger.warning(f"   Clients: {status['clients']}")

            await asyncio.sleep(interval)


async def run(interval: int) -> int:
    monitor = RedisMonitor()
    try:
        if not await monitor.connect():
            logger.error("Failed to connect to Redis")
            return 1

        status = await monitor.get_full_status()
        print(f"Redis Status: {status}")

        await monitor.monitor_loop(interval=interval)
        return 0
    finally:
        await monitor.manager.close()


def main():
    """Entry point"""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    interval = int(os.getenv("REDIS_MONITOR_INTERVAL", "30"))
    try:
        return asyncio.run(run(interval))
    except KeyboardInterrupt:
        logger.info("🛑 Monitoring stopped by user")
        return 0


if __name__ == "__main__":
    exit(main())
