"""Debate session endpoints and WebSocket streams."""

import logging

from fastapi import APIRouter, Depends, WebSocket

from joust.engine.core import DebateEngine
from joust.engine.debate_engine.models import DebateSession, Message
from joust.engine.exceptions import JoustError
from joust.web.dependencies import get_engine
from joust.web.errors import rejection, to_http_exception
from joust.web.schemas import MessageRequest, SubmitResponse, UserRequest
from joust.web.streaming import stream_subscription

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")
ws_router = APIRouter(prefix="/ws")


@router.get("/debates", response_model=list[DebateSession])
async def list_debates(engine: DebateEngine = Depends(get_engine)):
    """List concluded debates, newest first."""
    return await engine.list_past_debates()


@router.get("/users/{user_id}/debates", response_model=list[DebateSession])
async def list_active_debates(user_id: str, engine: DebateEngine = Depends(get_engine)):
    """List the active debates a user takes part in."""
    return await engine.list_active_debates(user_id)


@router.get("/debates/{session_id}", response_model=DebateSession)
async def get_debate(session_id: str, engine: DebateEngine = Depends(get_engine)):
    """Get a debate session's state."""
    try:
        return await engine.get_session(session_id)
    except JoustError as e:
        raise to_http_exception(e)


@router.get("/debates/{session_id}/messages", response_model=list[Message])
async def list_messages(session_id: str, engine: DebateEngine = Depends(get_engine)):
    """Get a debate's messages in order."""
    try:
        return await engine.list_messages(session_id)
    except JoustError as e:
        raise to_http_exception(e)


@router.post("/debates/{session_id}/messages", response_model=SubmitResponse)
async def submit_message(
    session_id: str, request: MessageRequest, engine: DebateEngine = Depends(get_engine)
):
    """Submit a turn. Rejected turns answer 409 with a reason code."""
    try:
        result = await engine.submit_message(session_id, request.user_id, request.text)
    except JoustError as e:
        logger.warning(f"Message from {request.user_id} to {session_id} failed: {e}")
        raise to_http_exception(e)

    if not result.accepted and result.reason is not None:
        raise rejection(result.reason)

    return SubmitResponse(
        accepted=True,
        message_id=result.message_id,
        word_count=result.word_count,
        session=result.session,
    )


@router.post("/debates/{session_id}/exit", response_model=DebateSession)
async def exit_debate(
    session_id: str, request: UserRequest, engine: DebateEngine = Depends(get_engine)
):
    """Leave a debate."""
    try:
        return await engine.exit(session_id, request.user_id)
    except JoustError as e:
        raise to_http_exception(e)


@ws_router.websocket("/users/{user_id}/debates")
async def active_debates_stream(websocket: WebSocket, user_id: str):
    """Stream the user's active debates; a new entry means a pairing happened."""
    engine: DebateEngine = websocket.app.state.engine
    await stream_subscription(websocket, engine.notifier.active_debates(user_id))


@ws_router.websocket("/debates/{session_id}")
async def debate_stream(websocket: WebSocket, session_id: str):
    """Stream a session document."""
    engine: DebateEngine = websocket.app.state.engine
    await stream_subscription(websocket, engine.notifier.session(session_id))


@ws_router.websocket("/debates/{session_id}/messages")
async def messages_stream(websocket: WebSocket, session_id: str):
    """Stream a session's messages."""
    engine: DebateEngine = websocket.app.state.engine
    await stream_subscription(websocket, engine.notifier.messages(session_id))
