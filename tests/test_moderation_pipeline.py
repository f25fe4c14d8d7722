"""Tests for the post-turn moderation pipeline."""

from __future__ import annotations

import asyncio

from joust.engine.config.settings import GeminiConfig, ModerationConfig, RulesConfig
from joust.engine.core import DebateEngine
from joust.engine.database import DocumentStore
from joust.engine.debate_engine.models import DebateSession
from joust.engine.debate_engine.paths import StorePaths
from joust.engine.debate_engine.types import MODERATOR_ID
from joust.engine.exceptions import ExternalServiceError
from joust.engine.moderation.pipeline import ModerationPipeline
from joust.engine.moderation.prompts import (
    create_fallacy_prompt,
    extract_question,
    is_no_fallacy_response,
)

from conftest import FakeCompletionClient


def build_pipeline(
    store: DocumentStore,
    paths: StorePaths,
    client: FakeCompletionClient,
    **moderation,
) -> ModerationPipeline:
    return ModerationPipeline(
        client,
        store,
        paths,
        RulesConfig(),
        ModerationConfig(**moderation),
        GeminiConfig(fallacy_model="fallacy-model", qa_model="qa-model"),
    )


def moderator_messages(store: DocumentStore, paths: StorePaths, session_id: str) -> list[dict]:
    return [
        s.to_dict()
        for s in store.query(paths.messages(session_id), order_by="timestamp")
        if s.get("senderId") == MODERATOR_ID
    ]


def test_extract_question_requires_leading_mention() -> None:
    assert extract_question("@gemini what is a strawman?", "@gemini") == "what is a strawman?"
    assert extract_question("  @Gemini   why?  ", "@gemini") == "why?"
    assert extract_question("@gemini   ", "@gemini") is None
    assert extract_question("ask @gemini later", "@gemini") is None


def test_no_fallacy_token_is_matched_loosely() -> None:
    assert is_no_fallacy_response("  no_fallacies_detected\n", "NO_FALLACIES_DETECTED")
    assert not is_no_fallacy_response("Ad hominem. NO_FALLACIES_DETECTED", "NO_FALLACIES_DETECTED")


def test_fallacy_prompt_embeds_statement_and_token() -> None:
    prompt = create_fallacy_prompt("  Everyone agrees, so it is true. ", "CLEAN")

    assert '"Everyone agrees, so it is true."' in prompt
    assert "'CLEAN'" in prompt


def test_clean_statement_appends_nothing(store, paths) -> None:
    client = FakeCompletionClient("NO_FALLACIES_DETECTED")
    pipeline = build_pipeline(store, paths, client)

    appended = asyncio.run(pipeline.moderate("s1", "Solar capacity doubled last year."))

    assert appended == []
    assert client.calls[0][1] == "fallacy-model"
    assert moderator_messages(store, paths, "s1") == []


def test_fallacy_alert_is_appended(store, paths) -> None:
    client = FakeCompletionClient("Bandwagon fallacy: popularity is not proof.")
    pipeline = build_pipeline(store, paths, client)

    appended = asyncio.run(pipeline.moderate("s1", "Everyone agrees, so it is true."))

    messages = moderator_messages(store, paths, "s1")
    assert appended == [messages[0]["id"]]
    assert messages[0]["text"] == "Bandwagon fallacy: popularity is not proof."
    assert messages[0]["isFallacyAlert"] is True
    assert messages[0]["isGeminiResponse"] is False
    assert messages[0]["wordCount"] == 6


def test_mention_gets_an_answer_after_the_fallacy_check(store, paths) -> None:
    client = FakeCompletionClient("NO_FALLACIES_DETECTED", "A strawman misrepresents an argument.")
    pipeline = build_pipeline(store, paths, client)

    asyncio.run(pipeline.moderate("s1", "@gemini what is a strawman?"))

    messages = moderator_messages(store, paths, "s1")
    assert [m["isGeminiResponse"] for m in messages] == [True]
    assert messages[0]["text"] == "A strawman misrepresents an argument."
    assert [model for _, model in client.calls] == ["fallacy-model", "qa-model"]
    assert "what is a strawman?" in client.calls[1][0]


def test_service_failures_are_swallowed(store, paths) -> None:
    client = FakeCompletionClient(
        ExternalServiceError("quota exceeded", status_code=429),
        ExternalServiceError("still down"),
    )
    pipeline = build_pipeline(store, paths, client)

    appended = asyncio.run(pipeline.moderate("s1", "@gemini are you there?"))

    assert appended == []
    assert len(client.calls) == 2


def test_unexpected_client_errors_do_not_skip_the_answer(store, paths) -> None:
    client = FakeCompletionClient(RuntimeError("bad url"), "Ad hominem attacks the person.")
    pipeline = build_pipeline(store, paths, client)

    appended = asyncio.run(pipeline.moderate("s1", "@gemini what is ad hominem?"))

    messages = moderator_messages(store, paths, "s1")
    assert appended == [messages[0]["id"]]
    assert messages[0]["isGeminiResponse"] is True
    assert [model for _, model in client.calls] == ["fallacy-model", "qa-model"]


def test_blank_answers_are_ignored(store, paths) -> None:
    client = FakeCompletionClient("   ", "")
    pipeline = build_pipeline(store, paths, client)

    assert asyncio.run(pipeline.moderate("s1", "@gemini anything?")) == []


def test_slow_calls_hit_the_deadline(store, paths) -> None:
    client = FakeCompletionClient("Too late", delay=1.0)
    pipeline = build_pipeline(store, paths, client)

    appended = asyncio.run(pipeline.moderate("s1", "Some claim.", deadline=0.05))

    assert appended == []
    assert moderator_messages(store, paths, "s1") == []


def test_disabled_pipeline_makes_no_calls(store, paths) -> None:
    client = FakeCompletionClient()
    pipeline = build_pipeline(store, paths, client, enabled=False)

    assert asyncio.run(pipeline.moderate("s1", "@gemini hi")) == []
    assert client.calls == []


def test_engine_moderates_accepted_turns_only(
    engine: DebateEngine, session: DebateSession, completion_client: FakeCompletionClient
) -> None:
    completion_client.default = "Slippery slope."
    sender = session.turn
    waiting = session.other_participant(sender)

    async def scenario():
        await engine.submit_message(session.id, waiting, "Not my turn.")
        await engine.submit_message(session.id, sender, "If we allow this, chaos follows.")
        await engine.wait_for_moderation()
        return await engine.list_messages(session.id)

    messages = asyncio.run(scenario())

    assert [m.sender_id for m in messages] == [sender, MODERATOR_ID]
    assert messages[1].is_fallacy_alert is True
    assert messages[1].is_moderator
    assert len(completion_client.calls) == 1


def test_moderator_messages_do_not_touch_turn_or_budget(
    engine: DebateEngine, session: DebateSession, completion_client: FakeCompletionClient
) -> None:
    completion_client.default = "Ad hominem."
    sender = session.turn

    async def scenario():
        await engine.submit_message(session.id, sender, "You would say that.")
        await engine.wait_for_moderation()
        return await engine.get_session(session.id)

    after = asyncio.run(scenario())

    assert after.turn == session.other_participant(sender)
    assert after.info_for(sender).words_used == 4
    assert after.info_for(MODERATOR_ID).words_used == 0
    assert MODERATOR_ID not in after.participant_info


def test_shutdown_cancels_pending_moderation(
    engine: DebateEngine, session: DebateSession, completion_client: FakeCompletionClient
) -> None:
    completion_client.delay = 5.0

    async def scenario():
        await engine.submit_message(session.id, session.turn, "A slow claim.")
        await engine.shutdown()
        return await engine.list_messages(session.id)

    messages = asyncio.run(scenario())

    assert len(messages) == 1
    assert completion_client.closed is True
