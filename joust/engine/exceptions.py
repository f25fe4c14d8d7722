"""Exceptions raised by the joust engine."""

from enum import Enum


class RejectionReason(Enum):
    """Reason codes attached to rejected operations."""

    NOT_A_PARTICIPANT = "not_a_participant"
    SESSION_NOT_ACTIVE = "session_not_active"
    NOT_YOUR_TURN = "not_your_turn"
    PARTICIPANT_EXITED = "participant_exited"
    EMPTY_MESSAGE = "empty_message"
    REPLY_TOO_LONG = "reply_too_long"
    DEBATE_BUDGET_EXCEEDED = "debate_budget_exceeded"
    ALREADY_EXITED = "already_exited"
    INVALID_TOPIC = "invalid_topic"


class JoustError(Exception):
    """Base exception for engine errors."""

    pass


class NotFoundError(JoustError):
    """Raised when a topic, session or message does not exist."""

    def __init__(self, kind: str, identifier: str):
        super().__init__(f"{kind} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class PreconditionFailedError(JoustError):
    """Raised when an operation violates turn, status or budget rules."""

    def __init__(self, reason: RejectionReason, message: str | None = None):
        super().__init__(message or reason.value)
        self.reason = reason


class TransactionConflictError(JoustError):
    """Raised when a store transaction keeps conflicting after all retries."""

    def __init__(self, attempts: int):
        super().__init__(f"Transaction aborted after {attempts} conflicting attempts")
        self.attempts = attempts


class JoinFailedError(JoustError):
    """Raised when matchmaking could not commit."""

    pass


class SendFailedError(JoustError):
    """Raised when a turn or exit could not commit."""

    pass


class ExternalServiceError(JoustError):
    """Raised when the text completion service fails."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(JoustError):
    """Raised at startup when required settings are missing."""

    pass
