"""System health and rules endpoints."""

from fastapi import APIRouter, Depends

from joust.engine.core import DebateEngine
from joust.web.dependencies import get_engine

router = APIRouter(prefix="/api")


@router.get("/health")
async def health_check():
    """Health check endpoint to verify API is running."""
    return {"isAlive": True}


@router.get("/rules")
async def get_rules(engine: DebateEngine = Depends(get_engine)):
    """Word budgets clients should display."""
    rules = engine.config.rules
    return {
        "max_words_per_reply": rules.max_words_per_reply,
        "max_words_per_debate_total": rules.max_words_per_debate_total,
        "mention_token": rules.mention_token,
    }
