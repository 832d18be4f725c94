"""Connection lifecycle and chat endpoints."""
import logging
import uuid
from datetime import datetime
from typing import Optional
import anyio
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel
from app.db.session import AsyncSessionLocal
from app.api.auth import require_user, parse_session_token
from app.core.errors import LiveFeedUnavailable, SkillSwapError
from app.models.match import Connection, ConnectionStatus
from app.schemas.chat import ChatMessage
from app.services.connection_service import ConnectionService
from app.services.message_service import MessageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/connections", tags=["connections"])

VALID_STATUSES = {s.value for s in ConnectionStatus}


class ConnectRequest(BaseModel):
    user_id: uuid.UUID
    reason: Optional[str] = None


class SendMessageRequest(BaseModel):
    content: str


def _connection_out(c: Connection, viewer_id: uuid.UUID) -> dict:
    return {
        "id": str(c.id),
        "user_a_id": str(c.user_a_id),
        "user_b_id": str(c.user_b_id),
        "other_user_id": str(c.other_user_id(viewer_id)),
        "initiated_by_me": c.user_a_id == viewer_id,
        "status": c.status,
        "reason": c.reason,
        "created_at": c.created_at.isoformat() if c.created_at else None,
    }


def _message_out(m) -> dict:
    return ChatMessage.model_validate(m).model_dump(mode="json")


# ========================
# Lifecycle
# ========================

@router.post("", status_code=201)
async def connect(req: ConnectRequest, user_id: uuid.UUID = Depends(require_user)):
    async with AsyncSessionLocal() as session:
        connection = await ConnectionService(session).connect(user_id, req.user_id, reason=req.reason)
    return _connection_out(connection, user_id)


@router.get("")
async def list_connections(
    status_filter: Optional[str] = Query(None, alias="status"),
    user_id: uuid.UUID = Depends(require_user),
):
    if status_filter and status_filter not in VALID_STATUSES:
        status_filter = None
    async with AsyncSessionLocal() as session:
        connections = await ConnectionService(session).list_for_user(user_id, status=status_filter)
    return {"connections": [_connection_out(c, user_id) for c in connections]}


@router.get("/inbox")
async def inbox(user_id: uuid.UUID = Depends(require_user)):
    async with AsyncSessionLocal() as session:
        entries = await ConnectionService(session).list_accepted_with_profiles(user_id)

    result = []
    for entry in entries:
        other = entry["other_user"]
        item = _connection_out(entry["connection"], user_id)
        item["other_user"] = {
            "user_id": str(other.user_id),
            "full_name": other.full_name,
            "avatar_url": other.avatar_url,
            "location": other.location,
        } if other else None
        result.append(item)
    return {"connections": result}


@router.post("/{connection_id}/accept")
async def accept(connection_id: uuid.UUID, user_id: uuid.UUID = Depends(require_user)):
    async with AsyncSessionLocal() as session:
        connection = await ConnectionService(session).accept(connection_id, user_id)
    return _connection_out(connection, user_id)


@router.post("/{connection_id}/reject")
async def reject(connection_id: uuid.UUID, user_id: uuid.UUID = Depends(require_user)):
    async with AsyncSessionLocal() as session:
        connection = await ConnectionService(session).reject(connection_id, user_id)
    return _connection_out(connection, user_id)


# ========================
# Chat
# ========================

@router.get("/{connection_id}/messages")
async def get_messages(
    connection_id: uuid.UUID,
    after: Optional[datetime] = Query(None),
    user_id: uuid.UUID = Depends(require_user),
):
    async with AsyncSessionLocal() as session:
        messages = await MessageService(session).history(connection_id, user_id, after=after)
    return {"messages": [_message_out(m) for m in messages]}


@router.post("/{connection_id}/messages", status_code=201)
async def send_message(
    connection_id: uuid.UUID,
    req: SendMessageRequest,
    user_id: uuid.UUID = Depends(require_user),
):
    async with AsyncSessionLocal() as session:
        message = await MessageService(session).send(connection_id, user_id, req.content)
    return _message_out(message)


@router.websocket("/{connection_id}/messages/live")
async def live_messages(websocket: WebSocket, connection_id: uuid.UUID, token: str = Query("")):
    """
    Push new messages of an accepted connection as JSON text frames.

    Best-effort: clients load history first, de-duplicate by id and re-fetch
    history after a reconnect.
    """
    user_id = parse_session_token(token)
    if not user_id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    try:
        async with AsyncSessionLocal() as session:
            subscription = await MessageService(session).subscribe(connection_id, user_id)
    except LiveFeedUnavailable as e:
        logger.warning(f"Live feed unavailable for {connection_id}: {e}")
        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER)
        return
    except SkillSwapError as e:
        logger.info(f"Live feed refused for {user_id} on {connection_id}: {e.code}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    close_code = status.WS_1000_NORMAL_CLOSURE
    client_gone = False

    async def _forward(tg):
        nonlocal close_code
        try:
            async for message in subscription:
                await websocket.send_text(message.model_dump_json())
        except LiveFeedUnavailable as e:
            logger.warning(f"Live feed dropped for {connection_id}: {e}")
            close_code = status.WS_1013_TRY_AGAIN_LATER
        tg.cancel_scope.cancel()

    async def _drain(tg):
        nonlocal client_gone
        try:
            while True:
                # Client frames are ignored; keep listening for disconnect
                await websocket.receive_text()
        except WebSocketDisconnect:
            client_gone = True
        tg.cancel_scope.cancel()

    try:
        async with anyio.create_task_group() as tg:
            tg.start_soon(_forward, tg)
            tg.start_soon(_drain, tg)
    finally:
        with anyio.CancelScope(shield=True):
            try:
                await subscription.close()
            except Exception as e:
                logger.warning(f"Failed to release live feed for {connection_id}: {e.__class__.__name__}: {e}")
        logger.info(f"Live feed closed for {user_id} on {connection_id}")

    if not client_gone:
        await websocket.close(code=close_code)
