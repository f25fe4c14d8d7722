"""Debate engine: wires matchmaking, turn-taking, moderation and notifications."""

import asyncio
import logging
import random

from joust.engine.config.settings import AppConfig
from joust.engine.database import SERVER_TIMESTAMP, DocumentStore, QueryFilter
from joust.engine.debate_engine.matchmaking import MatchmakingEngine
from joust.engine.debate_engine.models import DebateSession, Message, SubmitResult, Topic
from joust.engine.debate_engine.paths import StorePaths
from joust.engine.debate_engine.turns import TurnManager
from joust.engine.debate_engine.types import SessionStatus, TopicStatus
from joust.engine.exceptions import NotFoundError, PreconditionFailedError, RejectionReason
from joust.engine.moderation import BaseCompletionClient, GeminiClient, ModerationPipeline
from joust.engine.notifier import SessionNotifier

logger = logging.getLogger(__name__)


class DebateEngine:
    """Entry point for every user-facing debate operation."""

    def __init__(
        self,
        config: AppConfig,
        store: DocumentStore,
        completion_client: BaseCompletionClient,
        rng: random.Random | None = None,
    ):
        self.config = config
        self.store = store
        self.completion_client = completion_client
        self.paths = StorePaths(config.store.app_id)
        self.matchmaking = MatchmakingEngine(store, self.paths, rng)
        self.turns = TurnManager(store, self.paths, config.rules)
        self.moderation = ModerationPipeline(
            completion_client,
            store,
            self.paths,
            config.rules,
            config.moderation,
            config.gemini,
        )
        self.notifier = SessionNotifier(store, self.paths)
        self._moderation_tasks: set[asyncio.Task[None]] = set()

    @classmethod
    def from_config(cls, config: AppConfig) -> "DebateEngine":
        """Build the store and Gemini client described by ``config``.

        Raises:
            ConfigurationError: if the Gemini API key is missing
        """
        completion_client = GeminiClient.from_config(config.gemini)
        store = DocumentStore(
            config.store.db_path,
            max_transaction_attempts=config.store.max_transaction_attempts,
            busy_timeout=config.store.busy_timeout,
        )
        return cls(config, store, completion_client)

    # ------------------------------------------------------------------
    # Topics
    # ------------------------------------------------------------------

    async def create_topic(self, name: str, description: str, created_by: str) -> Topic:
        """Create an open topic with nobody waiting."""
        name = (name or "").strip()
        if not name:
            raise PreconditionFailedError(RejectionReason.INVALID_TOPIC, "Topic name is required")

        ref = await asyncio.to_thread(
            self.store.add,
            self.paths.topics,
            {
                "name": name,
                "description": (description or "").strip(),
                "createdBy": created_by,
                "createdAt": SERVER_TIMESTAMP,
                "interestedUsers": [],
                "status": TopicStatus.OPEN.value,
            },
        )
        logger.info(f"Created topic {ref.id}: {name}")
        return await self.get_topic(ref.id)

    async def get_topic(self, topic_id: str) -> Topic:
        snapshot = await asyncio.to_thread(self.store.get, self.paths.topic(topic_id))
        if not snapshot.exists:
            raise NotFoundError("topic", topic_id)
        return Topic.from_snapshot(snapshot)

    async def list_topics(self) -> list[Topic]:
        snapshots = await asyncio.to_thread(self.store.query, self.paths.topics)
        return [Topic.from_snapshot(s) for s in snapshots]

    # ------------------------------------------------------------------
    # Matchmaking and turns
    # ------------------------------------------------------------------

    async def signal_interest(self, topic_id: str, user_id: str) -> str | None:
        return await self.matchmaking.signal_interest(topic_id, user_id)

    async def submit_message(self, session_id: str, user_id: str, text: str) -> SubmitResult:
        """Submit a turn; accepted turns are moderated in the background."""
        result = await self.turns.submit_message(session_id, user_id, text)
        if result.accepted:
            self._schedule_moderation(session_id, text.strip())
        return result

    async def exit(self, session_id: str, user_id: str) -> DebateSession:
        return await self.turns.exit(session_id, user_id)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def get_session(self, session_id: str) -> DebateSession:
        return await asyncio.to_thread(self.turns.get_session, session_id)

    async def list_messages(self, session_id: str) -> list[Message]:
        """Messages of a session in timestamp order, ties in creation order."""
        await self.get_session(session_id)
        snapshots = await asyncio.to_thread(
            self.store.query, self.paths.messages(session_id), (), "timestamp"
        )
        return [Message.from_snapshot(s, sessionId=session_id) for s in snapshots]

    async def list_past_debates(self) -> list[DebateSession]:
        """Concluded debates, newest first."""
        snapshots = await asyncio.to_thread(
            self.store.query,
            self.paths.debate_rooms,
            [QueryFilter("status", "!=", SessionStatus.ACTIVE.value)],
            "createdAt",
            True,
        )
        return [DebateSession.from_snapshot(s) for s in snapshots]

    async def list_active_debates(self, user_id: str) -> list[DebateSession]:
        snapshots = await asyncio.to_thread(
            self.store.query,
            self.paths.debate_rooms,
            [
                QueryFilter("participants", "array_contains", user_id),
                QueryFilter("status", "==", SessionStatus.ACTIVE.value),
            ],
        )
        return [DebateSession.from_snapshot(s) for s in snapshots]

    # ------------------------------------------------------------------
    # Background moderation
    # ------------------------------------------------------------------

    def _schedule_moderation(self, session_id: str, text: str) -> None:
        task = asyncio.create_task(self._run_moderation(session_id, text))
        self._moderation_tasks.add(task)
        task.add_done_callback(self._moderation_tasks.discard)

    async def _run_moderation(self, session_id: str, text: str) -> None:
        try:
            await self.moderation.moderate(session_id, text)
        except asyncio.CancelledError:
            logger.info(f"Moderation for session {session_id} was cancelled")
            raise
        except Exception as e:
            logger.error(f"Moderation for session {session_id} failed: {e}")

    async def wait_for_moderation(self) -> None:
        """Wait until every scheduled moderation task has finished."""
        while self._moderation_tasks:
            await asyncio.gather(*list(self._moderation_tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel outstanding moderation and release the completion client."""
        tasks = list(self._moderation_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self.completion_client.aclose()
        logger.info("Debate engine stopped")
