"""
Session context for the logged-in user.

Identity is established once on login and torn down on logout; services receive
the context explicitly instead of reading identity from globals.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from app.core.errors import NotAuthenticatedError

logger = logging.getLogger(__name__)


class SessionContext:
    def __init__(self):
        self._user_id: Optional[uuid.UUID] = None
        self._started_at: Optional[datetime] = None

    @property
    def is_authenticated(self) -> bool:
        return self._user_id is not None

    @property
    def current_user_id(self) -> uuid.UUID:
        if self._user_id is None:
            raise NotAuthenticatedError("Authentication required")
        return self._user_id

    @property
    def started_at(self) -> Optional[datetime]:
        return self._started_at

    def login(self, user_id: uuid.UUID) -> "SessionContext":
        if self._user_id is not None and self._user_id != user_id:
            logger.info(f"Replacing session for user {self._user_id}")
        self._user_id = user_id
        self._started_at = datetime.now(timezone.utc)
        return self

    def logout(self) -> None:
        self._user_id = None
        self._started_at = None
