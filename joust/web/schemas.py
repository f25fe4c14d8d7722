"""Request and response models for the web API."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from joust.engine.debate_engine.models import DebateSession


class TopicCreateRequest(BaseModel):
    """Request model for creating a topic."""

    name: str = Field(..., description="Topic name")
    description: str = Field(default="", description="Optional description")
    user_id: str = Field(..., description="Creator's user id")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError("Topic name must not be empty")
        return v


class UserRequest(BaseModel):
    """Request carrying only the acting user."""

    user_id: str = Field(..., min_length=1)


class MessageRequest(BaseModel):
    """Request model for submitting a turn."""

    user_id: str = Field(..., min_length=1)
    text: str


class InterestResponse(BaseModel):
    """Outcome of signalling interest in a topic."""

    status: Literal["waiting", "paired"]
    session_id: str | None = None


class SubmitResponse(BaseModel):
    """Accepted turn."""

    accepted: bool
    message_id: str | None = None
    word_count: int
    session: DebateSession | None = None
