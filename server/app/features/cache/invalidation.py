"""
Cross-instance cache invalidation over Redis pub/sub
"""
import asyncio
import logging
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from ...core.config import settings
from ...core.redis import ClientRole, RedisManager, redis_manager
from .schemas import InvalidationMessage
from .service import CacheService, cache_service

logger = logging.getLogger(__name__)


class CacheInvalidationBus:
    """
    Publishes invalidation events and applies events from other instances.

    Subscriptions use the dedicated subscriber handle: a connection in
    subscribe mode cannot issue other commands.
    """

    def __init__(
        self,
        cache: CacheService,
        manager: RedisManager,
        channel: str = settings.CACHE_INVALIDATION_CHANNEL
    ):
        self.cache = cache
        self.manager = manager
        self.channel = channel
        self._pubsub = None
        self._listener: Optional[asyncio.Task] = None
        self._wanted = False
        manager.add_recovery_callback(self._resubscribe)

    @property
    def is_subscribed(self) -> bool:
        return self._listener is not None and not self._listener.done()

    async def apply(self, message: InvalidationMessage) -> None:
        """Apply an invalidation locally"""
        if message.type == "key":
            await self.cache.delete(message.value)
        elif message.type == "pattern":
            await self.cache.delete_pattern(message.value)
        elif message.type == "user":
            await self.cache.invalidate_user(message.value)
        elif message.type == "post":
            await self.cache.invalidate_post(message.value, message.author_id)

    async def handle_message(self, data: Union[str, bytes]) -> None:
        """
        Parse and apply one raw channel payload.

        Malformed payloads are logged and skipped.
        """
        try:
            message = InvalidationMessage.model_validate_json(data)
        except ValidationError as e:
            logger.error(f"❌ Error processing invalidation message: {e}")
            return

        try:
            await self.apply(message)
        except Exception as e:
            logger.error(f"❌ Error processing invalidation message: {e}")

    async def subscribe(self) -> bool:
        """
        Start listening for invalidation events.

        Call on server startup for multi-instance deployments.

        Returns:
            True if the listener is running
        """
        # Retried automatically once the main handle recovers
        self._wanted = True

        if not self.manager.is_available():
            logger.warning("⚠️ Redis not available, skipping pub/sub subscription")
            return False

        if self.is_subscribed:
            return True

        await self._release_pubsub()

        try:
            pubsub = self.manager.subscriber.pubsub(ignore_subscribe_messages=True)
            await pubsub.subscribe(self.channel)
            self._pubsub = pubsub
            self.manager.mark_ready(ClientRole.SUBSCRIBER)
            self._listener = asyncio.create_task(self._listen(pubsub))
            logger.info("✅ Subscribed to cache invalidation channel")
            return True

        except Exception as e:
            logger.error(f"❌ Failed to subscribe to cache invalidation: {e}")
            self.manager.report_error(ClientRole.SUBSCRIBER, e)
            return False

    async def _listen(self, pubsub) -> None:
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message" or message.get("channel") != self.channel:
                    continue
                await self.handle_message(message["data"])
        except Exception as e:
            logger.error(f"❌ Cache invalidation listener stopped: {e}")
            self.manager.report_error(ClientRole.SUBSCRIBER, e)

    async def _resubscribe(self) -> None:
        if self._wanted and not self.is_subscribed:
            logger.info("🔄 Resubscribing to cache invalidation channel")
            await self.subscribe()

    async def unsubscribe(self) -> None:
        """Stop the listener and release the pub/sub connection"""
        self._wanted = False

        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None

        await self._release_pubsub()

    async def _release_pubsub(self) -> None:
        if self._pubsub is not None:
            try:
                await self._pubsub.unsubscribe(self.channel)
                await self._pubsub.aclose()
            except Exception as e:
                logger.error(f"❌ Error closing cache invalidation subscription: {e}")
            self._pubsub = None

    async def publish(self, message: Union[InvalidationMessage, Dict[str, Any]]) -> bool:
        """
        Publish an invalidation event to all instances

        Returns:
            True if the event was published
        """
        if not await self.manager.ensure_available():
            return False

        try:
            if not isinstance(message, InvalidationMessage):
                message = InvalidationMessage.model_validate(message)
        except ValidationError as e:
            logger.error(f"❌ Invalid cache invalidation message: {e}")
            return False

        try:
            payload = message.model_dump_json(by_alias=True, exclude_none=True)
            await self.manager.publisher.publish(self.channel, payload)
            self.manager.mark_ready(ClientRole.PUBLISHER)
            return True

        except Exception as e:
            logger.error(f"❌ Failed to publish cache invalidation: {e}")
            self.manager.report_error(ClientRole.PUBLISHER, e)
            return False

    async def broadcast_user_invalidation(self, user_id: str) -> None:
        await self.cache.invalidate_user(user_id)
        await self.publish(InvalidationMessage(type="user", value=user_id))

    async def broadcast_post_invalidation(self, post_id: str, author_id: Optional[str] = None) -> None:
        await self.cache.invalidate_post(post_id, author_id)
        await self.publish(InvalidationMessage(type="post", value=post_id, author_id=author_id))


invalidation_bus = CacheInvalidationBus(cache_service, redis_manager)


async def subscribe_to_cache_invalidation() -> bool:
    return await invalidation_bus.subscribe()


async def unsubscribe_from_cache_invalidation() -> None:
    await invalidation_bus.unsubscribe()


async def publish_cache_invalidation(message: Union[InvalidationMessage, Dict[str, Any]]) -> bool:
    return await invalidation_bus.publish(message)


async def broadcast_user_invalidation(user_id: str) -> None:
    await invalidation_bus.broadcast_user_invalidation(user_id)


async def broadcast_post_invalidation(post_id: str, author_id: Optional[str] = None) -> None:
    await invalidation_bus.broadcast_post_invalidation(post_id, author_id)
