"""
Live-update feed for chat messages.

The feed is a best-effort, at-least-once notification layer on top of the
durable ``messages`` table. Consumers must de-duplicate by message id and
re-fetch history after reconnecting (see ``ChatTimeline``).
"""
import asyncio
import json
import logging
from collections import defaultdict
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional, Set
import uuid

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from app.core.config import settings
from app.core.errors import LiveFeedUnavailable
from app.schemas.chat import ChatMessage
from app.config.constants import MESSAGE_CHANNEL_PREFIX, LOCAL_FEED_QUEUE_SIZE

logger = logging.getLogger(__name__)


def channel_name(connection_id: uuid.UUID) -> str:
    return f"{MESSAGE_CHANNEL_PREFIX}:{connection_id}"


class Subscription:
    """
    Cancellable stream of messages for one connection.

    Consume with ``async for``; release with ``close()`` or ``async with``.
    Re-subscribe to restart after a disconnect.
    """

    def __init__(
        self,
        connection_id: uuid.UUID,
        source: AsyncIterator[ChatMessage],
        closer: Callable[[], Awaitable[None]],
    ):
        self.connection_id = connection_id
        self._source = source
        self._closer = closer
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChatMessage:
        if self._closed:
            raise StopAsyncIteration
        try:
            return await self._source.__anext__()
        except StopAsyncIteration:
            await self.close()
            raise

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._closer()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


class MessageFeed:
    async def publish(self, message: ChatMessage) -> None:
        raise NotImplementedError

    async def subscribe(self, connection_id: uuid.UUID) -> Subscription:
        raise NotImplementedError

    async def close(self) -> None:
        pass


class LocalMessageFeed(MessageFeed):
    """In-process fan-out over asyncio queues, for single-process deployments."""

    _CLOSED = object()

    def __init__(self, queue_size: int = LOCAL_FEED_QUEUE_SIZE):
        self.queue_size = queue_size
        self._queues: Dict[str, Set[asyncio.Queue]] = defaultdict(set)

    def subscriber_count(self, connection_id: uuid.UUID) -> int:
        return len(self._queues.get(channel_name(connection_id), ()))

    async def publish(self, message: ChatMessage) -> None:
        for queue in list(self._queues.get(channel_name(message.connection_id), ())):
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                # Slow consumer; it recovers the message from history
                logger.warning(f"Dropping live notification for message {message.id}: subscriber queue full")

    async def subscribe(self, connection_id: uuid.UUID) -> Subscription:
        key = channel_name(connection_id)
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._queues[key].add(queue)

        async def _source():
            while True:
                item = await queue.get()
                if item is self._CLOSED:
                    return
                yield item

        async def _close():
            subscribers = self._queues.get(key)
            if subscribers is not None:
                subscribers.discard(queue)
                if not subscribers:
                    self._queues.pop(key, None)
            try:
                queue.put_nowait(self._CLOSED)
            except asyncio.QueueFull:
                # Make room so a blocked receive loop still sees the end marker
                queue.get_nowait()
                queue.put_nowait(self._CLOSED)

        return Subscription(connection_id, _source(), _close)


class RedisMessageFeed(MessageFeed):
    """Redis pub/sub feed shared by every API process."""

    def __init__(self, redis_url: str = None, client: Optional[aioredis.Redis] = None):
        self.redis = client or aioredis.from_url(str(redis_url or settings.REDIS_URL), decode_responses=True)

    async def publish(self, message: ChatMessage) -> None:
        await self.redis.publish(channel_name(message.connection_id), message.model_dump_json())

    async def subscribe(self, connection_id: uuid.UUID) -> Subscription:
        channel = channel_name(connection_id)
        pubsub = self.redis.pubsub()
        try:
            await pubsub.subscribe(channel)
        except RedisError as e:
            logger.error(f"Could not subscribe to {channel}: {e}")
            try:
                await pubsub.aclose()
            except RedisError:
                pass
            raise LiveFeedUnavailable("Live updates are unavailable, fall back to message history") from e

        async def _source():
            try:
                async for event in pubsub.listen():
                    if event.get("type") != "message":
                        continue
                    try:
                        yield ChatMessage.model_validate(json.loads(event["data"]))
                    except (ValueError, TypeError) as e:
                        logger.error(f"Discarding malformed live notification on {channel}: {e}")
            except RedisError as e:
                logger.error(f"Live feed for {channel} dropped: {e}")
                raise LiveFeedUnavailable("Live updates were interrupted, re-fetch message history") from e

        async def _close():
            try:
                await pubsub.unsubscribe(channel)
            except RedisError as e:
                logger.warning(f"Failed to unsubscribe from {channel}: {e}")
            finally:
                try:
                    await pubsub.aclose()
                except RedisError as e:
                    logger.warning(f"Failed to release pubsub for {channel}: {e}")

        return Subscription(connection_id, _source(), _close)

    async def close(self) -> None:
        await self.redis.aclose()


_feed: Optional[MessageFeed] = None


def get_message_feed() -> MessageFeed:
    global _feed
    if _feed is None:
        if settings.LIVE_FEED_BACKEND == "local":
            _feed = LocalMessageFeed()
        else:
            _feed = RedisMessageFeed()
        logger.info(f"Live message feed backend: {_feed.__class__.__name__}")
    return _feed


async def close_message_feed() -> None:
    global _feed
    if _feed is not None:
        await _feed.close()
        _feed = None
