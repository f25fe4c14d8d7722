"""FastAPI dependencies."""

from fastapi import Request

from joust.engine.core import DebateEngine


def get_engine(request: Request) -> DebateEngine:
    """The engine built during application startup."""
    return request.app.state.engine
