from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, or_, func
from sqlalchemy.exc import IntegrityError
from app.models.match import Connection, ConnectionStatus, make_pair_key
from app.models.profile import Profile
from app.db.session import store_guard
from app.core.errors import (
    ValidationError,
    PermissionDeniedError,
    NotFoundError,
    ConflictError,
    InvalidTransitionError,
)
from typing import Any, Dict, List, Optional
import uuid
import logging

logger = logging.getLogger(__name__)


class ConnectionService:
    """
    Connection lifecycle: NONE -> PENDING -> ACCEPTED | REJECTED.

    NONE is the absence of a row. The store enforces one row per unordered
    pair (unique ``pair_key``); every mutation re-reads the row first.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, connection_id: uuid.UUID) -> Optional[Connection]:
        async with store_guard(self.session, "connection read"):
            result = await self.session.execute(select(Connection).where(Connection.id == connection_id))
            return result.scalar_one_or_none()

    async def get_for_pair(self, user_1: uuid.UUID, user_2: uuid.UUID) -> Optional[Connection]:
        async with store_guard(self.session, "connection read"):
            result = await self.session.execute(
                select(Connection).where(Connection.pair_key == make_pair_key(user_1, user_2))
            )
            return result.scalar_one_or_none()

    async def require(self, connection_id: uuid.UUID) -> Connection:
        connection = await self.get(connection_id)
        if connection is None:
            raise NotFoundError("Connection not found")
        return connection

    async def require_participant(self, connection_id: uuid.UUID, user_id: uuid.UUID) -> Connection:
        connection = await self.require(connection_id)
        if not connection.has_participant(user_id):
            raise PermissionDeniedError("Not a participant of this connection")
        return connection

    async def list_for_user(self, user_id: uuid.UUID, status: Optional[str] = None) -> List[Connection]:
        stmt = select(Connection).where(
            or_(Connection.user_a_id == user_id, Connection.user_b_id == user_id)
        )
        if status:
            stmt = stmt.where(Connection.status == status)
        stmt = stmt.order_by(Connection.created_at.desc())
        async with store_guard(self.session, "connection read"):
            result = await self.session.execute(stmt)
            return result.scalars().all()

    async def count_for_user(self, user_id: uuid.UUID, status: Optional[str] = None) -> int:
        stmt = select(func.count(Connection.id)).where(
            or_(Connection.user_a_id == user_id, Connection.user_b_id == user_id)
        )
        if status:
            stmt = stmt.where(Connection.status == status)
        async with store_guard(self.session, "connection count"):
            result = await self.session.execute(stmt)
            return result.scalar() or 0

    async def connect(self, initiator_id: uuid.UUID, counterpart_id: uuid.UUID, reason: str = None) -> Connection:
        """
        Open a PENDING connection, or return the row that already exists for the pair.

        A concurrent connect for the same pair loses on the unique constraint;
        the loser rolls back and returns the winner's row.
        """
        if initiator_id == counterpart_id:
            raise ValidationError("Cannot connect with yourself")

        existing = await self.get_for_pair(initiator_id, counterpart_id)
        if existing is not None:
            logger.info(f"Connect for existing pair returns connection {existing.id} ({existing.status})")
            return existing

        connection = Connection(
            id=uuid.uuid4(),
            user_a_id=initiator_id,
            user_b_id=counterpart_id,
            pair_key=make_pair_key(initiator_id, counterpart_id),
            status=ConnectionStatus.PENDING.value,
            reason=(reason or None),
        )
        try:
            async with store_guard(self.session, "connection insert"):
                try:
                    self.session.add(connection)
                    await self.session.commit()
                except IntegrityError:
                    await self.session.rollback()
                    raise ConflictError("Connection for this pair already exists")
                await self.session.refresh(connection)
        except ConflictError:
            winner = await self.get_for_pair(initiator_id, counterpart_id)
            if winner is None:
                raise
            logger.info(f"Concurrent connect resolved to connection {winner.id}")
            return winner

        logger.info(f"Connection {connection.id} created: {initiator_id} -> {counterpart_id}")
        return connection

    async def accept(self, connection_id: uuid.UUID, actor_id: uuid.UUID) -> Connection:
        return await self._transition(connection_id, actor_id, ConnectionStatus.ACCEPTED)

    async def reject(self, connection_id: uuid.UUID, actor_id: uuid.UUID) -> Connection:
        return await self._transition(connection_id, actor_id, ConnectionStatus.REJECTED)

    async def _transition(self, connection_id: uuid.UUID, actor_id: uuid.UUID, target: ConnectionStatus) -> Connection:
        connection = await self.require_participant(connection_id, actor_id)

        if connection.user_b_id != actor_id:
            raise PermissionDeniedError("Only the invited user can respond to a connection request")
        if connection.status != ConnectionStatus.PENDING.value:
            raise InvalidTransitionError(
                f"Cannot move connection from {connection.status} to {target.value}"
            )

        # Conditional update: a concurrent double transition changes at most one row
        async with store_guard(self.session, "connection update"):
            result = await self.session.execute(
                update(Connection)
                .where(Connection.id == connection_id, Connection.status == ConnectionStatus.PENDING.value)
                .values(status=target.value)
            )
            if result.rowcount != 1:
                await self.session.rollback()
                raise InvalidTransitionError("Connection was already answered")
            connection.status = target.value
            await self.session.commit()
            await self.session.refresh(connection)

        logger.info(f"Connection {connection_id} {target.value} by {actor_id}")
        return connection

    async def set_reason(self, connection_id: uuid.UUID, reason: str) -> Connection:
        connection = await self.require(connection_id)
        async with store_guard(self.session, "connection update"):
            connection.reason = reason
            await self.session.commit()
            await self.session.refresh(connection)
        return connection

    async def list_accepted_with_profiles(self, user_id: uuid.UUID) -> List[Dict[str, Any]]:
        """Accepted connections enriched with the other user's profile (merged on user_id)."""
        connections = await self.list_for_user(user_id, status=ConnectionStatus.ACCEPTED.value)
        if not connections:
            return []

        other_ids = [c.other_user_id(user_id) for c in connections]
        async with store_guard(self.session, "profile read"):
            result = await self.session.execute(select(Profile).where(Profile.user_id.in_(other_ids)))
            profiles = {p.user_id: p for p in result.scalars().all()}

        return [
            {"connection": c, "other_user": profiles.get(c.other_user_id(user_id))}
            for c in connections
        ]
