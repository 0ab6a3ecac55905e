"""
Redis connection management.

Three client handles share one connection string:
- main: cache and general commands
- subscriber: dedicated pub/sub subscription connection
- publisher: pub/sub publishing

Connection failures never stop the application; callers check
``is_redis_available()`` and fall back when Redis is down.
"""
import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Any

from pydantic import BaseModel
from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import AbstractBackoff
from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    ReadOnlyError,
    TimeoutError as RedisTimeoutError,
)

from .config import settings

logger = logging.getLogger(__name__)

RETRY_STEP_MS = 100
RETRY_MAX_DELAY_MS = 3000
MAX_RECONNECT_ATTEMPTS = 10
DEGRADED_LATENCY_MS = 100
RECONNECT_ERROR_MARKERS = ("READONLY", "ECONNRESET", "ETIMEDOUT")
RECONNECT_ERRORS = (RedisConnectionError, RedisTimeoutError, ReadOnlyError)


class ClientRole(str, Enum):
    MAIN = "main"
    SUBSCRIBER = "subscriber"
    PUBLISHER = "publisher"


class ClientStatus(str, Enum):
    WAIT = "wait"
    READY = "ready"
    RECONNECTING = "reconnecting"
    END = "end"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class RedisHealth(BaseModel):
    """Result of a Redis health check"""
    status: HealthStatus
    latency: Optional[int] = None
    error: Optional[str] = None


def retry_strategy(times: int) -> Optional[int]:
    """
    Reconnect delay for the given attempt.

    Args:
        times: Attempt number (1-based)

    Returns:
        Delay in milliseconds, or None to stop retrying
    """
    if times > MAX_RECONNECT_ATTEMPTS:
        logger.error(f"❌ Redis connection failed after {MAX_RECONNECT_ATTEMPTS} retries")
        return None

    delay = min(times * RETRY_STEP_MS, RETRY_MAX_DELAY_MS)
    logger.info(f"🔄 Redis reconnecting in {delay}ms (attempt {times})")
    return delay


class LinearBackoff(AbstractBackoff):
    """redis-py backoff driven by ``retry_strategy``"""

    def compute(self, failures: int) -> float:
        delay = retry_strategy(failures)
        if delay is None:
            return 0.0
        return delay / 1000


def should_reconnect(error: BaseException) -> bool:
    """Whether an error should trigger a reconnect of the handle"""
    if isinstance(error, (ReadOnlyError, ConnectionResetError, RedisTimeoutError, asyncio.TimeoutError)):
        return True
    message = str(error)
    return any(marker in message for marker in RECONNECT_ERROR_MARKERS)


def create_redis_client(role: str, url: Optional[str] = None) -> Redis:
    """
    Build a lazily connecting Redis client for a role.

    No connection is opened until the first command.
    """
    return Redis.from_url(
        url or settings.REDIS_URL,
        decode_responses=True,
        client_name=f"{settings.REDIS_CONNECTION_PREFIX}-{role}",
        retry=Retry(LinearBackoff(), MAX_RECONNECT_ATTEMPTS),
        retry_on_error=list(RECONNECT_ERRORS),
    )


def _stringify_info_value(value: Any) -> str:
    # INFO keyspace lines come back parsed, e.g. {"keys": 1, "expires": 0}
    if isinstance(value, dict):
        return ",".join(f"{k}={v}" for k, v in value.items())
    return str(value)


class RedisManager:
    """
    Owner of the main, subscriber and publisher Redis handles
    """

    def __init__(
        self,
        client_factory: Callable[[str], Redis] = create_redis_client,
        clock: Callable[[], float] = time.monotonic
    ):
        self._clients: Dict[ClientRole, Redis] = {}
        self._status: Dict[ClientRole, ClientStatus] = {}
        for role in ClientRole:
            self._clients[role] = client_factory(role.value)
            self._status[role] = ClientStatus.WAIT

        self._clock = clock
        self._recovery_attempts = 0
        self._next_recovery_at = 0.0
        self._recovery_callbacks: List[Callable[[], Awaitable[Any]]] = []

    @property
    def main(self) -> Redis:
        return self._clients[ClientRole.MAIN]

    @property
    def subscriber(self) -> Redis:
        return self._clients[ClientRole.SUBSCRIBER]

    @property
    def publisher(self) -> Redis:
        return self._clients[ClientRole.PUBLISHER]

    def status(self, role: ClientRole) -> ClientStatus:
        return self._status[ClientRole(role)]

    def mark_ready(self, role: ClientRole) -> None:
        role = ClientRole(role)
        if self._status[role] != ClientStatus.READY:
            logger.info(f"✅ Redis [{role.value}] ready")
        self._status[role] = ClientStatus.READY
        if role == ClientRole.MAIN:
            self._recovery_attempts = 0

    def report_error(self, role: ClientRole, error: BaseException) -> None:
        """
        Record a runtime command error on a handle.

        Connection failures and reconnect-worthy errors move the handle to
        ``reconnecting``; the main handle is then re-verified by
        ``ensure_available()``.
        """
        role = ClientRole(role)
        logger.error(f"❌ Redis [{role.value}] error: {error}")
        if isinstance(error, RECONNECT_ERRORS):
            # redis-py only surfaces these once its own retries ran out
            logger.error(f"❌ Redis [{role.value}] connection failed after {MAX_RECONNECT_ATTEMPTS} retries")

        lost = should_reconnect(error) or isinstance(error, (RedisConnectionError, OSError))
        if lost and self._status[role] == ClientStatus.READY:
            logger.info(f"🔄 Redis [{role.value}] reconnecting...")
            self._status[role] = ClientStatus.RECONNECTING
            if role == ClientRole.MAIN:
                self._schedule_recovery()

    def is_available(self) -> bool:
        """Only the main handle decides availability"""
        return self._status[ClientRole.MAIN] == ClientStatus.READY

    def add_recovery_callback(self, callback: Callable[[], Awaitable[Any]]) -> None:
        """Register a coroutine function run after the main handle recovers"""
        self._recovery_callbacks.append(callback)

    def _schedule_recovery(self) -> None:
        self._recovery_attempts += 1
        delay = min(self._recovery_attempts * RETRY_STEP_MS, RETRY_MAX_DELAY_MS)
        self._next_recovery_at = self._clock() + delay / 1000

    async def _run_recovery_callbacks(self) -> None:
        for callback in self._recovery_callbacks:
            try:
                await callback()
            except Exception as e:
                logger.error(f"❌ Redis recovery callback failed: {e}")

    async def ensure_available(self) -> bool:
        """
        Whether the main handle can be used, re-verifying it while it is
        reconnecting.

        PINGs are spaced on the linear retry schedule and keep going at
        the capped delay until Redis answers again.
        """
        status = self._status[ClientRole.MAIN]
        if status == ClientStatus.READY:
            return True
        if status != ClientStatus.RECONNECTING or self._clock() < self._next_recovery_at:
            return False

        # Concurrent callers wait for the next slot instead of piling on
        self._schedule_recovery()
        try:
            pong = await self.main.ping()
        except Exception as e:
            logger.warning(f"⚠️ Redis [{ClientRole.MAIN.value}] still unavailable: {e}")
            return False

        if pong is not True and pong != "PONG":
            return False

        self.mark_ready(ClientRole.MAIN)
        await self._run_recovery_callbacks()
        return True

    async def initialize(self) -> bool:
        """
        Connect and verify the main client.

        Failures are logged and swallowed so the application can run in
        degraded mode.

        Returns:
            True if Redis is ready
        """
        try:
            logger.info(f"✅ Redis [{ClientRole.MAIN.value}] connecting...")
            pong = await self.main.ping()
            if pong is not True and pong != "PONG":
                raise RuntimeError("Redis PING failed")

            self.mark_ready(ClientRole.MAIN)
            logger.info("✅ Redis connection verified")
            return True

        except Exception as e:
            logger.error(f"❌ Failed to initialize Redis: {e}")
            if isinstance(e, RECONNECT_ERRORS):
                logger.error(f"❌ Redis connection failed after {MAX_RECONNECT_ATTEMPTS} retries")
            logger.warning("⚠️ Running in degraded mode without Redis caching")
            self._status[ClientRole.MAIN] = ClientStatus.RECONNECTING
            self._schedule_recovery()
            return False

    async def check_health(self) -> RedisHealth:
        """
        PING the main client and bucket the round-trip latency
        """
        try:
            start = time.perf_counter()
            result = await self.main.ping()
            latency = int((time.perf_counter() - start) * 1000)

            if result is True or result == "PONG":
                recovered = self._status[ClientRole.MAIN] == ClientStatus.RECONNECTING
                self.mark_ready(ClientRole.MAIN)
                if recovered:
                    await self._run_recovery_callbacks()
                return RedisHealth(
                    status=HealthStatus.DEGRADED if latency >= DEGRADED_LATENCY_MS else HealthStatus.HEALTHY,
                    latency=latency,
                )

            return RedisHealth(
                status=HealthStatus.UNHEALTHY,
                error="Unexpected PING response",
            )

        except Exception as e:
            self.report_error(ClientRole.MAIN, e)
            return RedisHealth(
                status=HealthStatus.UNHEALTHY,
                error=str(e) or "Unknown error",
            )

    async def get_info(self, section: Optional[str] = None) -> Dict[str, str]:
        """
        Server INFO as flat string key/value pairs
        """
        try:
            if section:
                info = await self.main.info(section)
            else:
                info = await self.main.info()
            return {str(key): _stringify_info_value(value) for key, value in info.items()}

        except Exception as e:
            return {"error": str(e) or "Unknown error"}

    async def _quit(self, role: ClientRole) -> None:
        try:
            await self._clients[role].aclose()
        finally:
            self._status[role] = ClientStatus.END

        if not settings.is_production:
            logger.info(f"🔌 Redis [{role.value}] connection closed")

    async def close(self) -> None:
        """
        Quit all handles concurrently.

        A failing handle does not prevent the others from closing.
        """
        roles = list(ClientRole)
        results = await asyncio.gather(
            *(self._quit(role) for role in roles),
            return_exceptions=True,
        )

        failed = False
        for role, result in zip(roles, results):
            if isinstance(result, BaseException):
                failed = True
                logger.error(f"❌ Error closing Redis [{role.value}] connection: {result}")

        if not failed:
            logger.info("✅ Redis connections closed")


redis_manager = RedisManager()


def get_redis() -> Redis:
    return redis_manager.main


def get_redis_subscriber() -> Redis:
    return redis_manager.subscriber


def get_redis_publisher() -> Redis:
    return redis_manager.publisher


async def initialize_redis() -> bool:
    """Call on server startup"""
    return await redis_manager.initialize()


async def check_redis_health() -> RedisHealth:
    return await redis_manager.check_health()


async def get_redis_info(section: Optional[str] = None) -> Dict[str, str]:
    return await redis_manager.get_info(section)


async def close_redis() -> None:
    """Call on server shutdown"""
    await redis_manager.close()


def is_redis_available() -> bool:
    return redis_manager.is_available()
