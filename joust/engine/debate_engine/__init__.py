"""Matchmaking and turn-taking for paired debates."""

from .matchmaking import MatchmakingEngine
from .models import DebateSession, Message, ParticipantInfo, SubmitResult, Topic
from .paths import StorePaths
from .turns import TurnManager
from .types import MODERATOR_ID, SessionStatus, TopicStatus
from .words import count_words

__all__ = [
    "MatchmakingEngine",
    "DebateSession",
    "Message",
    "ParticipantInfo",
    "SubmitResult",
    "Topic",
    "StorePaths",
    "TurnManager",
    "MODERATOR_ID",
    "SessionStatus",
    "TopicStatus",
    "count_words",
]
