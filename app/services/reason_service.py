from sqlalchemy.ext.asyncio import AsyncSession
from app.services.oracle_service import OracleService
from app.services.profile_service import ProfileService
from app.services.connection_service import ConnectionService
from app.services.prompts import build_reason_prompt, REASON_SYSTEM_PROMPT
from app.core.errors import OracleUnavailable, ValidationError
from app.config.constants import DEFAULT_MATCH_REASON
from typing import Optional
import uuid
import logging

logger = logging.getLogger(__name__)


class ReasonService:
    """Short freeform explanation of why two users would make good swap partners."""

    def __init__(self, session: AsyncSession, oracle: Optional[OracleService] = None):
        self.session = session
        self.profile_service = ProfileService(session)
        self.connection_service = ConnectionService(session)
        self._oracle = oracle

    @property
    def oracle(self) -> OracleService:
        if self._oracle is None:
            self._oracle = OracleService()
        return self._oracle

    async def generate_reason(self, user_id: uuid.UUID, other_user_id: uuid.UUID) -> str:
        """
        Ask the oracle for a reason and save it on the pair's connection, if any.

        Rate-limit and quota errors propagate; an unavailable oracle yields the
        generic reason.
        """
        if user_id == other_user_id:
            raise ValidationError("Cannot generate a reason for yourself")

        me = await self.profile_service.get_summary(user_id)
        other = await self.profile_service.get_summary(other_user_id)

        try:
            reason = await self.oracle.complete_text(
                build_reason_prompt(me, other), system_prompt=REASON_SYSTEM_PROMPT
            )
        except OracleUnavailable as e:
            logger.warning(f"Using default match reason for {user_id}/{other_user_id}: {e.message}")
            reason = DEFAULT_MATCH_REASON

        connection = await self.connection_service.get_for_pair(user_id, other_user_id)
        if connection is not None:
            await self.connection_service.set_reason(connection.id, reason)
        return reason
