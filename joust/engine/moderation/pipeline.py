"""Post-turn moderation: fallacy alerts and assistant answers."""

import asyncio
import logging

from joust.engine.config.settings import GeminiConfig, ModerationConfig, RulesConfig
from joust.engine.database import SERVER_TIMESTAMP, DocumentStore
from joust.engine.debate_engine.paths import StorePaths
from joust.engine.debate_engine.types import MODERATOR_ID
from joust.engine.debate_engine.words import count_words
from joust.engine.exceptions import ExternalServiceError
from .gemini_client import BaseCompletionClient
from .prompts import (
    create_fallacy_prompt,
    create_question_prompt,
    extract_question,
    is_no_fallacy_response,
)

logger = logging.getLogger(__name__)


class ModerationPipeline:
    """Annotates accepted turns with moderator messages.

    Runs after the turn is committed and never affects it: every completion
    failure, timeout or empty answer simply produces no moderator message.
    """

    def __init__(
        self,
        client: BaseCompletionClient,
        store: DocumentStore,
        paths: StorePaths,
        rules: RulesConfig,
        config: ModerationConfig,
        models: GeminiConfig,
    ):
        self.client = client
        self.store = store
        self.paths = paths
        self.rules = rules
        self.config = config
        self.models = models

    async def moderate(
        self, session_id: str, text: str, deadline: float | None = None
    ) -> list[str]:
        """Run the fallacy check and, for mentions, the Q&A request.

        Args:
            session_id: Session the turn belongs to
            text: The accepted message text
            deadline: Seconds allowed per completion call (defaults to config)

        Returns:
            Ids of the moderator messages appended
        """
        if not self.config.enabled:
            return []

        timeout = deadline if deadline is not None else self.config.deadline
        appended: list[str] = []

        if self.config.fallacy_detection:
            message_id = await self._check_fallacies(session_id, text, timeout)
            if message_id:
                appended.append(message_id)

        if self.config.question_answering:
            question = extract_question(text, self.rules.mention_token)
            if question:
                message_id = await self._answer_question(session_id, question, timeout)
                if message_id:
                    appended.append(message_id)

        return appended

    async def _check_fallacies(self, session_id: str, text: str, timeout: float) -> str | None:
        prompt = create_fallacy_prompt(text, self.rules.no_fallacy_token)
        analysis = await self._complete(prompt, self.models.fallacy_model, timeout)
        if not analysis or not analysis.strip():
            return None
        if is_no_fallacy_response(analysis, self.rules.no_fallacy_token):
            logger.debug(f"No fallacies detected in session {session_id}")
            return None
        return await self._append(session_id, analysis, is_fallacy_alert=True)

    async def _answer_question(self, session_id: str, question: str, timeout: float) -> str | None:
        answer = await self._complete(create_question_prompt(question), self.models.qa_model, timeout)
        if not answer or not answer.strip():
            return None
        return await self._append(session_id, answer, is_gemini_response=True)

    async def _complete(self, prompt: str, model_id: str, timeout: float) -> str | None:
        try:
            return await asyncio.wait_for(self.client.complete(prompt, model_id), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Moderation call to {model_id} exceeded {timeout}s deadline")
        except ExternalServiceError as e:
            logger.warning(f"Moderation call to {model_id} failed: {e}")
        except Exception as e:
            logger.error(f"Unexpected error from moderation call to {model_id}: {e}")
        return None

    async def _append(
        self,
        session_id: str,
        text: str,
        is_fallacy_alert: bool = False,
        is_gemini_response: bool = False,
    ) -> str:
        ref = await asyncio.to_thread(
            self.store.add,
            self.paths.messages(session_id),
            {
                "sessionId": session_id,
                "senderId": MODERATOR_ID,
                "text": text,
                "timestamp": SERVER_TIMESTAMP,
                "wordCount": count_words(text),
                "isFallacyAlert": is_fallacy_alert,
                "isGeminiResponse": is_gemini_response,
            },
        )
        kind = "fallacy alert" if is_fallacy_alert else "answer"
        logger.info(f"Appended moderator {kind} {ref.id} to session {session_id}")
        return ref.id
