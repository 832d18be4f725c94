"""Bearer-token authentication for the API."""
import logging
import hashlib
import hmac
import uuid
from typing import Optional
from fastapi import Header, Depends
from app.core.config import settings
from app.core.errors import NotAuthenticatedError
from app.core.session_context import SessionContext

logger = logging.getLogger(__name__)


def _signature(user_id: str) -> str:
    return hmac.new(settings.SESSION_SECRET.encode(), user_id.encode(), hashlib.sha256).hexdigest()


def issue_session_token(user_id: uuid.UUID) -> str:
    """Token handed out by the identity provider on login: ``<user_id>.<hmac>``."""
    return f"{user_id}.{_signature(str(user_id))}"


def parse_session_token(token: str) -> Optional[uuid.UUID]:
    """Validate a session token and return its user id, or None."""
    if not token or "." not in token:
        return None

    raw_user_id, received_signature = token.rsplit(".", 1)
    try:
        user_id = uuid.UUID(raw_user_id)
    except ValueError:
        return None

    if not hmac.compare_digest(_signature(str(user_id)), received_signature):
        logger.warning("Session token signature mismatch")
        return None
    return user_id


async def get_session_context(authorization: Optional[str] = Header(None)):
    """One SessionContext per request: login from the bearer token, logout on teardown."""
    context = SessionContext()
    if authorization and authorization.lower().startswith("bearer "):
        user_id = parse_session_token(authorization[7:].strip())
        if user_id:
            context.login(user_id)
    try:
        yield context
    finally:
        context.logout()


def require_user(context: SessionContext = Depends(get_session_context)) -> uuid.UUID:
    if not context.is_authenticated:
        raise NotAuthenticatedError("Authentication required")
    return context.current_user_id
