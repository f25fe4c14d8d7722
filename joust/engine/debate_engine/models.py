"""Data models for topics, debate sessions and messages."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from joust.engine.database import DocumentSnapshot
from joust.engine.exceptions import RejectionReason
from .types import MODERATOR_ID, SessionStatus, TopicStatus


class DocumentModel(BaseModel):
    """Base for models stored as camelCase documents."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str

    @classmethod
    def from_snapshot(cls, snapshot: DocumentSnapshot, **extra: Any):
        return cls.model_validate({**snapshot.to_dict(), **extra})


class Topic(DocumentModel):
    """A debate subject with a pool of waiting users."""

    name: str
    description: str = ""
    created_by: str
    created_at: datetime | None = None
    interested_users: list[str] = Field(default_factory=list)
    status: TopicStatus = TopicStatus.OPEN


class ParticipantInfo(BaseModel):
    """Per-participant word usage and exit flag."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    words_used: int = 0
    has_exited: bool = False


class DebateSession(DocumentModel):
    """A paired, turn-based exchange between exactly two users."""

    topic_id: str
    topic_name: str
    participants: list[str]
    participant_info: dict[str, ParticipantInfo]
    status: SessionStatus
    turn: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status is SessionStatus.ACTIVE

    def other_participant(self, user_id: str) -> str:
        """The participant who is not ``user_id``."""
        return next(p for p in self.participants if p != user_id)

    def info_for(self, user_id: str) -> ParticipantInfo:
        return self.participant_info.get(user_id) or ParticipantInfo()

    def participant_info_document(self) -> dict[str, dict[str, Any]]:
        """Participant info in stored form, ready to be modified and written back."""
        return {
            user_id: info.model_dump(by_alias=True)
            for user_id, info in self.participant_info.items()
        }


class Message(DocumentModel):
    """A single immutable message within a session."""

    session_id: str
    sender_id: str
    text: str
    timestamp: datetime | None = None
    word_count: int = 0
    is_fallacy_alert: bool = False
    is_gemini_response: bool = False

    @property
    def is_moderator(self) -> bool:
        return self.sender_id == MODERATOR_ID


@dataclass
class SubmitResult:
    """Outcome of a message submission."""

    accepted: bool
    reason: RejectionReason | None = None
    message_id: str | None = None
    word_count: int = 0
    session: DebateSession | None = None

    @classmethod
    def rejected(cls, reason: RejectionReason) -> "SubmitResult":
        return cls(accepted=False, reason=reason)
