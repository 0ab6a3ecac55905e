import pytest
from unittest.mock import Mock, AsyncMock

from app.core.redis import ClientRole, RedisManager
from app.features.cache.memory_cache import MemoryCache
from app.features.cache.service import CacheService


def mock_redis_client(role: str):
    """AsyncMock standing in for a redis.asyncio.Redis handle"""
    client = AsyncMock(name=f"redis-{role}")
    client.ping.return_value = True
    client.get.return_value = None
    client.info.return_value = {}
    client.dbsize.return_value = 0
    client.scan.return_value = (0, [])

    # pipeline() and pubsub() are synchronous in redis-py
    pipeline = Mock()
    pipeline.execute = AsyncMock(return_value=[])
    client.pipeline = Mock(return_value=pipeline)
    client.pubsub = Mock()
    return client


class FakeClock:
    """Controllable time source for MemoryCache"""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def redis_manager():
    """RedisManager whose three handles are mocks"""
    return RedisManager(client_factory=mock_redis_client)


@pytest.fixture
def ready_manager(redis_manager):
    """RedisManager with the main handle ready"""
    redis_manager.mark_ready(ClientRole.MAIN)
    return redis_manager


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_cache(clock):
    return MemoryCache(max_size=1000, clock=clock)


@pytest.fixture
def cache(ready_manager, memory_cache):
    """CacheService backed by the mocked main handle"""
    return CacheService(ready_manager, memory_cache)


@pytest.fixture
def offline_cache(redis_manager, memory_cache):
    """CacheService running on the memory fallback"""
    return CacheService(redis_manager, memory_cache)


@pytest.fixture
def waiting_manager(clock):
    """Uninitialized RedisManager whose recovery schedule follows the fake clock"""
    return RedisManager(client_factory=mock_redis_client, clock=clock)


@pytest.fixture
def clocked_manager(waiting_manager):
    """Ready RedisManager whose recovery schedule follows the fake clock"""
    waiting_manager.mark_ready(ClientRole.MAIN)
    return waiting_manager
