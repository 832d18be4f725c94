from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from app.models.match import ConnectionStatus
from app.models.message import Message
from app.schemas.chat import ChatMessage
from app.services.connection_service import ConnectionService
from app.services.message_feed import MessageFeed, Subscription, get_message_feed
from app.db.session import store_guard
from app.core.errors import EmptyContentError, NotAcceptedError, ValidationError
from app.config.constants import CHAT_REFETCH_INTERVAL_SECONDS, MAX_MESSAGE_LENGTH
from datetime import datetime
from typing import AsyncIterator, Dict, Iterable, List, Optional
import asyncio
import uuid
import logging

logger = logging.getLogger(__name__)


class ChatTimeline:
    """
    Client-side merge of history fetches and live notifications.

    Messages can arrive twice (history and live feed) and out of order
    relative to a concurrent fetch, so everything is de-duplicated by id and
    kept sorted by (created_at, id).
    """

    def __init__(self, messages: Iterable[ChatMessage] = ()):
        self._by_id: Dict[uuid.UUID, ChatMessage] = {}
        self._ordered: List[ChatMessage] = []
        self.merge(messages)

    def merge(self, messages: Iterable[ChatMessage]) -> List[ChatMessage]:
        """Add messages, returning the ones that were new."""
        added = []
        for message in messages:
            if message.id in self._by_id:
                continue
            self._by_id[message.id] = message
            added.append(message)
        if added:
            self._ordered = sorted(self._by_id.values(), key=lambda m: m.sort_key())
        return added

    def add(self, message: ChatMessage) -> bool:
        return bool(self.merge([message]))

    @property
    def messages(self) -> List[ChatMessage]:
        return list(self._ordered)

    @property
    def latest_created_at(self) -> Optional[datetime]:
        return self._ordered[-1].created_at if self._ordered else None

    def __len__(self):
        return len(self._ordered)


class MessageService:
    def __init__(self, session: AsyncSession, feed: Optional[MessageFeed] = None):
        self.session = session
        self.connection_service = ConnectionService(session)
        self._feed = feed

    @property
    def feed(self) -> MessageFeed:
        if self._feed is None:
            self._feed = get_message_feed()
        return self._feed

    async def send(self, connection_id: uuid.UUID, sender_id: uuid.UUID, content: str) -> Message:
        """
        Append a message to an accepted connection.

        The insert is the source of truth; the live notification afterwards is
        best-effort and never fails the send.
        """
        text = (content or "").strip()
        if not text:
            raise EmptyContentError("Message content must not be empty")
        if len(text) > MAX_MESSAGE_LENGTH:
            raise ValidationError(f"Message must be at most {MAX_MESSAGE_LENGTH} characters")

        connection = await self.connection_service.require_participant(connection_id, sender_id)
        if connection.status != ConnectionStatus.ACCEPTED.value:
            raise NotAcceptedError("Messages can only be sent on accepted connections")

        message = Message(id=uuid.uuid4(), connection_id=connection.id, sender_id=sender_id, content=text)
        async with store_guard(self.session, "message insert"):
            self.session.add(message)
            await self.session.commit()
            # created_at is assigned by the store
            await self.session.refresh(message)

        await self._notify(message)
        return message

    async def _notify(self, message: Message) -> None:
        try:
            await self.feed.publish(ChatMessage.model_validate(message))
        except Exception as e:
            logger.warning(f"Live notification for message {message.id} failed: {e.__class__.__name__}: {e}")

    async def history(
        self,
        connection_id: uuid.UUID,
        user_id: uuid.UUID,
        after: Optional[datetime] = None,
    ) -> List[Message]:
        """
        Messages of a connection ordered by (created_at, id).

        ``after`` limits the fetch for incremental re-fetch. It is inclusive so
        messages sharing the boundary timestamp are not lost; ChatTimeline drops
        the repeats.
        """
        await self.connection_service.require_participant(connection_id, user_id)

        stmt = select(Message).where(Message.connection_id == connection_id)
        if after is not None:
            stmt = stmt.where(Message.created_at >= after)
        stmt = stmt.order_by(Message.created_at.asc(), Message.id.asc())

        async with store_guard(self.session, "message read"):
            result = await self.session.execute(stmt)
            return result.scalars().all()

    async def refetch(
        self,
        connection_id: uuid.UUID,
        user_id: uuid.UUID,
        timeline: ChatTimeline,
    ) -> List[ChatMessage]:
        """Pull messages newer than the timeline's tail and merge them. Returns the new ones."""
        rows = await self.history(connection_id, user_id, after=timeline.latest_created_at)
        return timeline.merge(ChatMessage.model_validate(m) for m in rows)

    async def poll(
        self,
        connection_id: uuid.UUID,
        user_id: uuid.UUID,
        timeline: ChatTimeline,
        interval: Optional[float] = None,
    ) -> AsyncIterator[List[ChatMessage]]:
        """
        Periodic re-fetch for when the live feed is down.

        Yields each non-empty batch of new messages; runs until the consumer
        stops iterating.
        """
        interval = CHAT_REFETCH_INTERVAL_SECONDS if interval is None else interval
        while True:
            added = await self.refetch(connection_id, user_id, timeline)
            if added:
                yield added
            await asyncio.sleep(interval)

    async def subscribe(self, connection_id: uuid.UUID, user_id: uuid.UUID) -> Subscription:
        """Open a live stream for a participant. The caller must close it."""
        await self.connection_service.require_participant(connection_id, user_id)
        return await self.feed.subscribe(connection_id)
