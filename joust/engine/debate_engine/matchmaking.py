"""Pairing of waiting users into debate sessions."""

import asyncio
import logging
import random

from joust.engine.database import (
    SERVER_TIMESTAMP,
    ArrayRemove,
    ArrayUnion,
    DocumentSnapshot,
    DocumentStore,
    Transaction,
)
from joust.engine.exceptions import (
    JoinFailedError,
    NotFoundError,
    TransactionConflictError,
)
from .paths import StorePaths
from .types import SessionStatus

logger = logging.getLogger(__name__)


class MatchmakingEngine:
    """Pairs users waiting on a topic, each user at most once.

    The whole read-pair-create-update sequence runs in one optimistic store
    transaction against the topic document, so two concurrent callers can
    never both consume the same waiting user.
    """

    def __init__(
        self,
        store: DocumentStore,
        paths: StorePaths,
        rng: random.Random | None = None,
    ):
        self.store = store
        self.paths = paths
        self.rng = rng or random.Random()

    async def signal_interest(self, topic_id: str, user_id: str) -> str | None:
        """Wait on a topic or pair with someone already waiting.

        Returns:
            The new session id when a pairing happened, otherwise None

        Raises:
            NotFoundError: if the topic does not exist
            JoinFailedError: if the transaction kept conflicting
        """
        try:
            session_id = await asyncio.to_thread(
                self.store.run_transaction,
                lambda transaction: self._signal_interest(transaction, topic_id, user_id),
            )
        except TransactionConflictError as e:
            logger.error(f"Join failed for {user_id} on topic {topic_id}: {e}")
            raise JoinFailedError(f"Could not join topic {topic_id}, please retry") from e

        if session_id:
            logger.info(f"Created debate session {session_id} on topic {topic_id} for {user_id}")
        else:
            logger.info(f"User {user_id} is waiting on topic {topic_id}")
        return session_id

    def _signal_interest(
        self, transaction: Transaction, topic_id: str, user_id: str
    ) -> str | None:
        topic_ref = self.paths.topic(topic_id)
        topic = transaction.get(topic_ref)
        if not topic.exists:
            raise NotFoundError("topic", topic_id)

        waiting: list[str] = list(topic.get("interestedUsers") or [])

        if user_id in waiting:
            # Already waiting: pair with the earliest other waiter, if any
            partner = next((uid for uid in waiting if uid != user_id), None)
            if partner is None:
                return None
        elif waiting:
            partner = waiting[0]
        else:
            transaction.update(topic_ref, {"interestedUsers": ArrayUnion(user_id)})
            return None

        return self._create_session(transaction, topic, user_id, partner)

    def _create_session(
        self,
        transaction: Transaction,
        topic: DocumentSnapshot,
        user_id: str,
        partner_id: str,
    ) -> str:
        room_ref = self.store.new_ref(self.paths.debate_rooms)
        transaction.set(
            room_ref,
            {
                "topicId": topic.id,
                "topicName": topic.get("name", ""),
                "participants": [user_id, partner_id],
                "participantInfo": {
                    user_id: {"wordsUsed": 0, "hasExited": False},
                    partner_id: {"wordsUsed": 0, "hasExited": False},
                },
                "status": SessionStatus.ACTIVE.value,
                "turn": self.rng.choice([user_id, partner_id]),
                "createdAt": SERVER_TIMESTAMP,
                "updatedAt": SERVER_TIMESTAMP,
            },
        )
        transaction.update(topic.ref, {"interestedUsers": ArrayRemove(user_id, partner_id)})
        return room_ref.id
