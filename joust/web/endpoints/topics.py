"""Topic catalogue and matchmaking endpoints."""

import logging

from fastapi import APIRouter, Depends, WebSocket

from joust.engine.core import DebateEngine
from joust.engine.debate_engine.models import Topic
from joust.engine.exceptions import JoustError
from joust.web.dependencies import get_engine
from joust.web.errors import to_http_exception
from joust.web.schemas import InterestResponse, TopicCreateRequest, UserRequest
from joust.web.streaming import stream_subscription

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")
ws_router = APIRouter(prefix="/ws")


@router.post("/topics", response_model=Topic)
async def create_topic(request: TopicCreateRequest, engine: DebateEngine = Depends(get_engine)):
    """Create a new debate topic."""
    try:
        return await engine.create_topic(request.name, request.description, request.user_id)
    except JoustError as e:
        raise to_http_exception(e)


@router.get("/topics", response_model=list[Topic])
async def list_topics(engine: DebateEngine = Depends(get_engine)):
    """List all topics."""
    return await engine.list_topics()


@router.get("/topics/{topic_id}", response_model=Topic)
async def get_topic(topic_id: str, engine: DebateEngine = Depends(get_engine)):
    """Get a topic and its waiting users."""
    try:
        return await engine.get_topic(topic_id)
    except JoustError as e:
        raise to_http_exception(e)


@router.post("/topics/{topic_id}/interest", response_model=InterestResponse)
async def signal_interest(
    topic_id: str, request: UserRequest, engine: DebateEngine = Depends(get_engine)
):
    """Wait on a topic, or join a debate with someone already waiting."""
    try:
        session_id = await engine.signal_interest(topic_id, request.user_id)
    except JoustError as e:
        logger.warning(f"Interest from {request.user_id} on topic {topic_id} failed: {e}")
        raise to_http_exception(e)

    if session_id:
        return InterestResponse(status="paired", session_id=session_id)
    return InterestResponse(status="waiting")


@ws_router.websocket("/topics")
async def topics_stream(websocket: WebSocket):
    """Stream topic list snapshots."""
    engine: DebateEngine = websocket.app.state.engine
    await stream_subscription(websocket, engine.notifier.topics())
