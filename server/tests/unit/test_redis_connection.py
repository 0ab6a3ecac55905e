"""
Unit tests for Redis connection management
"""
import asyncio
import logging
import pytest
from unittest.mock import AsyncMock, patch

from redis.exceptions import ConnectionError as RedisConnectionError, ReadOnlyError, ResponseError

from app.core.redis import (
    ClientRole,
    ClientStatus,
    HealthStatus,
    LinearBackoff,
    RedisManager,
    create_redis_client,
    retry_strategy,
    should_reconnect,
)


class TestRetryStrategy:
    """Reconnect backoff schedule"""

    @pytest.mark.parametrize("times,expected", [(1, 100), (2, 200), (5, 500), (10, 1000)])
    def test_linear_ramp(self, times, expected):
        assert retry_strategy(times) == expected

    def test_stops_after_ten_attempts(self):
        assert retry_strategy(11) is None
        assert retry_strategy(50) is None

    def test_delay_never_exceeds_cap(self):
        assert all(retry_strategy(times) <= 3000 for times in range(1, 11))

    def test_backoff_returns_seconds(self):
        backoff = LinearBackoff()
        assert backoff.compute(3) == pytest.approx(0.3)
        assert backoff.compute(11) == 0.0


class TestShouldReconnect:

    @pytest.mark.parametrize("message", [
        "READONLY You can't write against a read only replica.",
        "read ECONNRESET",
        "connect ETIMEDOUT 10.0.0.1:6379",
    ])
    def test_marker_messages(self, message):
        assert should_reconnect(Exception(message)) is True

    def test_typed_errors(self):
        assert should_reconnect(ReadOnlyError("replica")) is True
        assert should_reconnect(ConnectionResetError()) is True

    def test_other_errors(self):
        assert should_reconnect(ResponseError("WRONGTYPE Operation against a key")) is False
        assert should_reconnect(ValueError("bad value")) is False


class TestCreateRedisClient:

    def test_client_is_named_per_role(self):
        client = create_redis_client("subscriber", "redis://localhost:6379")
        kwargs = client.connection_pool.connection_kwargs

        assert kwargs["client_name"] == "palytt-subscriber"
        assert kwargs["decode_responses"] is True

    def test_manager_creates_three_handles(self):
        created = []

        def factory(role):
            created.append(role)
            return AsyncMock()

        manager = RedisManager(client_factory=factory)

        assert created == ["main", "subscriber", "publisher"]
        assert all(manager.status(role) == ClientStatus.WAIT for role in ClientRole)


class TestInitialize:

    @pytest.mark.asyncio
    async def test_initialize_success(self, redis_manager):
        assert await redis_manager.initialize() is True

        redis_manager.main.ping.assert_awaited_once()
        assert redis_manager.is_available() is True

    @pytest.mark.asyncio
    async def test_initialize_failure_is_swallowed(self, redis_manager):
        redis_manager.main.ping.side_effect = RedisConnectionError("Connection refused")

        assert await redis_manager.initialize() is False
        assert redis_manager.is_available() is False

    @pytest.mark.asyncio
    async def test_initialize_unexpected_reply(self, redis_manager):
        redis_manager.main.ping.return_value = False

        assert await redis_manager.initialize() is False
        assert redis_manager.is_available() is False


class TestHealthCheck:

    @pytest.mark.asyncio
    async def test_fast_ping_is_healthy(self, redis_manager):
        with patch("app.core.redis.time") as mock_time:
            mock_time.perf_counter.side_effect = [0.0, 0.012]
            health = await redis_manager.check_health()

        assert health.status == HealthStatus.HEALTHY
        assert health.latency == 12
        assert health.error is None
        assert redis_manager.is_available() is True

    @pytest.mark.asyncio
    async def test_slow_ping_is_degraded(self, redis_manager):
        with patch("app.core.redis.time") as mock_time:
            mock_time.perf_counter.side_effect = [0.0, 0.25]
            health = await redis_manager.check_health()

        assert health.status == HealthStatus.DEGRADED
        assert health.latency == 250

    @pytest.mark.asyncio
    async def test_threshold_is_degraded(self, redis_manager):
        with patch("app.core.redis.time") as mock_time:
            mock_time.perf_counter.side_effect = [0.0, 0.1]
            health = await redis_manager.check_health()

        assert health.latency == 100
        assert health.status == HealthStatus.DEGRADED

    @pytest.mark.asyncio
    async def test_ping_failure_is_unhealthy(self, ready_manager):
        ready_manager.main.ping.side_effect = RedisConnectionError("Connection refused")

        health = await ready_manager.check_health()

        assert health.status == HealthStatus.UNHEALTHY
        assert health.error == "Connection refused"
        assert health.latency is None
        assert ready_manager.is_available() is False

    @pytest.mark.asyncio
    async def test_unexpected_reply_is_unhealthy(self, redis_manager):
        redis_manager.main.ping.return_value = False

        health = await redis_manager.check_health()

        assert health.status == HealthStatus.UNHEALTHY
        assert health.error == "Unexpected PING response"


class TestGetInfo:

    @pytest.mark.asyncio
    async def test_info_is_flattened(self, redis_manager):
        redis_manager.main.info.return_value = {
            "redis_version": "7.2.4",
            "connected_clients": 3,
            "db0": {"keys": 12, "expires": 2},
        }

        info = await redis_manager.get_info()

        assert info == {
            "redis_version": "7.2.4",
            "connected_clients": "3",
            "db0": "keys=12,expires=2",
        }

    @pytest.mark.asyncio
    async def test_info_section(self, redis_manager):
        redis_manager.main.info.return_value = {"used_memory_human": "1.2M"}

        info = await redis_manager.get_info("memory")

        redis_manager.main.info.assert_awaited_once_with("memory")
        assert info["used_memory_human"] == "1.2M"

    @pytest.mark.asyncio
    async def test_info_error(self, redis_manager):
        redis_manager.main.info.side_effect = RedisConnectionError("Connection refused")

        assert await redis_manager.get_info() == {"error": "Connection refused"}


class TestClose:

    @pytest.mark.asyncio
    async def test_close_quits_all_handles(self, ready_manager):
        await ready_manager.close()

        for role in ClientRole:
            ready_manager._clients[role].aclose.assert_awaited_once()
            assert ready_manager.status(role) == ClientStatus.END
        assert ready_manager.is_available() is False

    @pytest.mark.asyncio
    async def test_close_continues_when_one_handle_fails(self, redis_manager):
        finished = []

        async def slow_close():
            await asyncio.sleep(0.01)
            finished.append("publisher")

        redis_manager.main.aclose.side_effect = RuntimeError("socket already closed")
        redis_manager.subscriber.aclose.side_effect = RedisConnectionError("reset by peer")
        redis_manager.publisher.aclose.side_effect = slow_close

        await redis_manager.close()

        redis_manager.main.aclose.assert_awaited_once()
        redis_manager.subscriber.aclose.assert_awaited_once()
        redis_manager.publisher.aclose.assert_awaited_once()
        assert finished == ["publisher"]
        assert all(redis_manager.status(role) == ClientStatus.END for role in ClientRole)


class TestAvailability:

    def test_only_main_handle_counts(self, redis_manager):
        redis_manager.mark_ready(ClientRole.SUBSCRIBER)
        redis_manager.mark_ready(ClientRole.PUBLISHER)
        assert redis_manager.is_available() is False

        redis_manager.mark_ready(ClientRole.MAIN)
        redis_manager._status[ClientRole.SUBSCRIBER] = ClientStatus.END
        redis_manager._status[ClientRole.PUBLISHER] = ClientStatus.RECONNECTING
        assert redis_manager.is_available() is True

    def test_reconnect_worthy_error_marks_main_unavailable(self, ready_manager):
        ready_manager.report_error(ClientRole.MAIN, ReadOnlyError("READONLY replica"))

        assert ready_manager.status(ClientRole.MAIN) == ClientStatus.RECONNECTING
        assert ready_manager.is_available() is False

    def test_command_error_keeps_main_available(self, ready_manager):
        ready_manager.report_error(ClientRole.MAIN, ResponseError("WRONGTYPE"))

        assert ready_manager.is_available() is True

    def test_subscriber_error_does_not_affect_availability(self, ready_manager):
        ready_manager.mark_ready(ClientRole.SUBSCRIBER)
        ready_manager.report_error(ClientRole.SUBSCRIBER, RedisConnectionError("lost"))

        assert ready_manager.status(ClientRole.SUBSCRIBER) == ClientStatus.RECONNECTING
        assert ready_manager.is_available() is True


class TestRecovery:
    """Main handle re-verification after it was lost"""

    @pytest.mark.asyncio
    async def test_ready_handle_is_not_pinged(self, clocked_manager):
        assert await clocked_manager.ensure_available() is True
        clocked_manager.main.ping.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_uninitialized_handle_is_not_pinged(self, redis_manager):
        assert await redis_manager.ensure_available() is False
        redis_manager.main.ping.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_recovers_after_first_delay(self, clocked_manager, clock):
        clocked_manager.report_error(ClientRole.MAIN, RedisConnectionError("Connection reset by peer"))

        assert await clocked_manager.ensure_available() is False
        clocked_manager.main.ping.assert_not_awaited()

        clock.advance(0.2)
        assert await clocked_manager.ensure_available() is True
        clocked_manager.main.ping.assert_awaited_once()
        assert clocked_manager.status(ClientRole.MAIN) == ClientStatus.READY

    @pytest.mark.asyncio
    async def test_failed_pings_follow_linear_schedule(self, clocked_manager, clock):
        clocked_manager.report_error(ClientRole.MAIN, RedisConnectionError("Connection reset by peer"))
        clocked_manager.main.ping.side_effect = RedisConnectionError("Connection refused")

        clock.advance(0.2)
        assert await clocked_manager.ensure_available() is False
        assert clocked_manager.main.ping.await_count == 1

        # Second attempt waits 200ms
        clock.advance(0.1)
        assert await clocked_manager.ensure_available() is False
        assert clocked_manager.main.ping.await_count == 1

        clock.advance(0.15)
        clocked_manager.main.ping.side_effect = None
        assert await clocked_manager.ensure_available() is True
        assert clocked_manager.main.ping.await_count == 2

    @pytest.mark.asyncio
    async def test_failed_initialize_recovers_later(self, waiting_manager, clock):
        waiting_manager.main.ping.side_effect = RedisConnectionError("Connection refused")

        assert await waiting_manager.initialize() is False
        assert waiting_manager.status(ClientRole.MAIN) == ClientStatus.RECONNECTING

        waiting_manager.main.ping.side_effect = None
        clock.advance(1)
        assert await waiting_manager.ensure_available() is True

    @pytest.mark.asyncio
    async def test_recovery_callbacks_run_once(self, clocked_manager, clock):
        callback = AsyncMock()
        clocked_manager.add_recovery_callback(callback)
        clocked_manager.report_error(ClientRole.MAIN, RedisConnectionError("Connection reset by peer"))

        clock.advance(1)
        await clocked_manager.ensure_available()
        await clocked_manager.ensure_available()

        callback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_block_recovery(self, clocked_manager, clock):
        clocked_manager.add_recovery_callback(AsyncMock(side_effect=RuntimeError("boom")))
        clocked_manager.report_error(ClientRole.MAIN, RedisConnectionError("Connection reset by peer"))

        clock.advance(1)
        assert await clocked_manager.ensure_available() is True

    @pytest.mark.asyncio
    async def test_health_check_runs_recovery_callbacks(self, clocked_manager):
        callback = AsyncMock()
        clocked_manager.add_recovery_callback(callback)
        clocked_manager.report_error(ClientRole.MAIN, RedisConnectionError("Connection reset by peer"))

        await clocked_manager.check_health()

        callback.assert_awaited_once()
        assert clocked_manager.is_available() is True


class TestLogging:

    @pytest.mark.asyncio
    async def test_exhausted_retries_are_logged_on_initialize(self, redis_manager, caplog):
        redis_manager.main.ping.side_effect = RedisConnectionError("Connection refused")

        with caplog.at_level(logging.ERROR, logger="app.core.redis"):
            await redis_manager.initialize()

        assert "connection failed after 10 retries" in caplog.text

    def test_exhausted_retries_are_logged_on_command_error(self, ready_manager, caplog):
        with caplog.at_level(logging.ERROR, logger="app.core.redis"):
            ready_manager.report_error(ClientRole.MAIN, RedisConnectionError("Connection reset by peer"))

        assert "Redis [main] connection failed after 10 retries" in caplog.text

    def test_command_error_is_not_a_connection_failure(self, ready_manager, caplog):
        with caplog.at_level(logging.ERROR, logger="app.core.redis"):
            ready_manager.report_error(ClientRole.MAIN, ResponseError("WRONGTYPE"))

        assert "retries" not in caplog.text

    @pytest.mark.asyncio
    async def test_failed_close_is_not_logged_as_closed(self, redis_manager, caplog):
        redis_manager.main.aclose.side_effect = RuntimeError("socket already closed")

        with caplog.at_level(logging.INFO, logger="app.core.redis"):
            await redis_manager.close()

        assert "Redis [main] connection closed" not in caplog.text
        assert "Redis [publisher] connection closed" in caplog.text
        assert "Error closing Redis [main] connection" in caplog.text
