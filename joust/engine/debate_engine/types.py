"""Shared types and enums for the debate engine."""

from enum import Enum

MODERATOR_ID = "moderator"


class SessionStatus(Enum):
    """Lifecycle states of a debate session."""

    ACTIVE = "active"
    CONCLUDED_WORD_LIMIT = "concluded_word_limit"
    CONCLUDED_ONE_EXITED = "concluded_one_exited"
    CONCLUDED_ONE_EXIT_ONE_LIMIT = "concluded_one_exit_one_limit"
    CONCLUDED_BOTH_EXITED = "concluded_both_exited"

    @property
    def is_terminal(self) -> bool:
        return self is not SessionStatus.ACTIVE


class TopicStatus(Enum):
    """Topic availability."""

    OPEN = "open"
