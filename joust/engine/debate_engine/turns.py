"""Turn-taking state machine for debate sessions."""

import asyncio
import logging
from typing import Any

from joust.engine.config.settings import RulesConfig
from joust.engine.database import SERVER_TIMESTAMP, DocumentStore, Transaction
from joust.engine.exceptions import (
    NotFoundError,
    PreconditionFailedError,
    RejectionReason,
    SendFailedError,
    TransactionConflictError,
)
from .models import DebateSession, SubmitResult
from .paths import StorePaths
from .types import SessionStatus
from .words import count_words, within_debate_budget, within_reply_budget

logger = logging.getLogger(__name__)


def check_submission(
    session: DebateSession, user_id: str, word_count: int, rules: RulesConfig
) -> None:
    """Raise PreconditionFailedError for the first rule the submission breaks.

    The order is fixed so that repeating an invalid submission always yields
    the same reason.
    """
    if user_id not in session.participants:
        raise PreconditionFailedError(RejectionReason.NOT_A_PARTICIPANT)
    if not session.is_active:
        raise PreconditionFailedError(RejectionReason.SESSION_NOT_ACTIVE)
    if session.turn != user_id:
        raise PreconditionFailedError(RejectionReason.NOT_YOUR_TURN)
    info = session.info_for(user_id)
    if info.has_exited:
        raise PreconditionFailedError(RejectionReason.PARTICIPANT_EXITED)
    if word_count < 1:
        raise PreconditionFailedError(RejectionReason.EMPTY_MESSAGE)
    if not within_reply_budget(word_count, rules.max_words_per_reply):
        raise PreconditionFailedError(
            RejectionReason.REPLY_TOO_LONG,
            f"Reply has {word_count} words, limit is {rules.max_words_per_reply}",
        )
    if not within_debate_budget(info.words_used, word_count, rules.max_words_per_debate_total):
        raise PreconditionFailedError(
            RejectionReason.DEBATE_BUDGET_EXCEEDED,
            f"Reply would bring total to {info.words_used + word_count}, "
            f"limit is {rules.max_words_per_debate_total}",
        )


def concludes_on_message(
    session: DebateSession, sender_id: str, new_words_used: int, cap: int
) -> bool:
    """Whether accepting a message ends the debate on word limits."""
    sender = session.info_for(sender_id)
    other = session.info_for(session.other_participant(sender_id))
    return (
        (new_words_used >= cap and other.words_used >= cap)
        or (new_words_used >= cap and other.has_exited)
        or (other.words_used >= cap and sender.has_exited)
    )


def exit_status(session: DebateSession, user_id: str, cap: int) -> SessionStatus:
    """Status a session takes when ``user_id`` exits."""
    other = session.info_for(session.other_participant(user_id))
    if other.has_exited:
        return SessionStatus.CONCLUDED_BOTH_EXITED
    if session.status.is_terminal:
        # Concluded sessions only record the exit
        return session.status
    if other.words_used >= cap:
        return SessionStatus.CONCLUDED_ONE_EXIT_ONE_LIMIT
    return SessionStatus.CONCLUDED_ONE_EXITED


class TurnManager:
    """Applies messages and exits to sessions inside store transactions."""

    def __init__(self, store: DocumentStore, paths: StorePaths, rules: RulesConfig):
        self.store = store
        self.paths = paths
        self.rules = rules

    def _load_session(self, transaction: Transaction, session_id: str) -> DebateSession:
        snapshot = transaction.get(self.paths.debate_room(session_id))
        if not snapshot.exists:
            raise NotFoundError("session", session_id)
        return DebateSession.from_snapshot(snapshot)

    def get_session(self, session_id: str) -> DebateSession:
        snapshot = self.store.get(self.paths.debate_room(session_id))
        if not snapshot.exists:
            raise NotFoundError("session", session_id)
        return DebateSession.from_snapshot(snapshot)

    async def submit_message(self, session_id: str, user_id: str, text: str) -> SubmitResult:
        """Append a message from the turn holder and hand the turn over.

        Returns:
            An accepted result with the new message id, or a rejected result
            carrying the reason. Rejections never mutate the session.

        Raises:
            NotFoundError: if the session does not exist
            SendFailedError: if the transaction kept conflicting
        """
        try:
            result = await asyncio.to_thread(
                self.store.run_transaction,
                lambda transaction: self._submit(transaction, session_id, user_id, text),
            )
        except PreconditionFailedError as e:
            logger.warning(f"Rejected message from {user_id} in session {session_id}: {e}")
            return SubmitResult.rejected(e.reason)
        except TransactionConflictError as e:
            logger.error(f"Send failed for {user_id} in session {session_id}: {e}")
            raise SendFailedError(f"Could not send message to {session_id}, please retry") from e

        result.session = await asyncio.to_thread(self.get_session, session_id)
        logger.info(
            f"Accepted {result.word_count}-word message {result.message_id} from {user_id} "
            f"in session {session_id} (status: {result.session.status.value})"
        )
        return result

    def _submit(
        self, transaction: Transaction, session_id: str, user_id: str, text: str
    ) -> SubmitResult:
        session = self._load_session(transaction, session_id)
        word_count = count_words(text)
        check_submission(session, user_id, word_count, self.rules)

        cap = self.rules.max_words_per_debate_total
        participant_info = session.participant_info_document()
        new_words_used = participant_info[user_id]["wordsUsed"] + word_count
        participant_info[user_id]["wordsUsed"] = new_words_used

        updates: dict[str, Any] = {
            "participantInfo": participant_info,
            # Turn flips even when the debate concludes
            "turn": session.other_participant(user_id),
            "updatedAt": SERVER_TIMESTAMP,
        }
        if concludes_on_message(session, user_id, new_words_used, cap):
            updates["status"] = SessionStatus.CONCLUDED_WORD_LIMIT.value

        message_ref = self.store.new_ref(self.paths.messages(session_id))
        transaction.set(
            message_ref,
            {
                "sessionId": session_id,
                "senderId": user_id,
                "text": text.strip(),
                "timestamp": SERVER_TIMESTAMP,
                "wordCount": word_count,
                "isFallacyAlert": False,
                "isGeminiResponse": False,
            },
        )
        transaction.update(self.paths.debate_room(session_id), updates)

        return SubmitResult(accepted=True, message_id=message_ref.id, word_count=word_count)

    async def exit(self, session_id: str, user_id: str) -> DebateSession:
        """Leave a debate. Leaving an active debate concludes it.

        Raises:
            NotFoundError: if the session does not exist
            PreconditionFailedError: if the user is not a participant or already left
            SendFailedError: if the transaction kept conflicting
        """
        try:
            status = await asyncio.to_thread(
                self.store.run_transaction,
                lambda transaction: self._exit(transaction, session_id, user_id),
            )
        except TransactionConflictError as e:
            logger.error(f"Exit failed for {user_id} in session {session_id}: {e}")
            raise SendFailedError(f"Could not exit {session_id}, please retry") from e

        logger.info(f"User {user_id} exited session {session_id} (status: {status.value})")
        return await asyncio.to_thread(self.get_session, session_id)

    def _exit(self, transaction: Transaction, session_id: str, user_id: str) -> SessionStatus:
        session = self._load_session(transaction, session_id)
        if user_id not in session.participants:
            raise PreconditionFailedError(RejectionReason.NOT_A_PARTICIPANT)
        if session.info_for(user_id).has_exited:
            raise PreconditionFailedError(RejectionReason.ALREADY_EXITED)

        cap = self.rules.max_words_per_debate_total
        status = exit_status(session, user_id, cap)

        participant_info = session.participant_info_document()
        participant_info[user_id]["hasExited"] = True
        updates: dict[str, Any] = {
            "participantInfo": participant_info,
            "status": status.value,
            "updatedAt": SERVER_TIMESTAMP,
        }
        if session.is_active and status is SessionStatus.CONCLUDED_ONE_EXITED:
            updates["turn"] = session.other_participant(user_id)

        transaction.update(self.paths.debate_room(session_id), updates)
        return status
