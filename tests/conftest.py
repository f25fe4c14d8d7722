"""Pytest configuration and shared fixtures.

Fixtures here build a real SQLite document store under ``tmp_path`` and an
engine wired to a scripted completion client, so tests exercise the same
transactions production code runs.
"""

from __future__ import annotations

import asyncio
import random

import pytest

from joust.engine.config.settings import AppConfig, ModerationConfig, StoreConfig
from joust.engine.core import DebateEngine
from joust.engine.database import DocumentStore
from joust.engine.debate_engine.models import DebateSession
from joust.engine.debate_engine.paths import StorePaths
from joust.engine.moderation import BaseCompletionClient


class FakeCompletionClient(BaseCompletionClient):
    """Completion client answering from a queue of scripted replies.

    Each queued item is returned as-is, or raised when it is an exception.
    An empty queue answers with the default reply.
    """

    def __init__(self, *replies, default: str = "NO_FALLACIES_DETECTED", delay: float = 0.0):
        self._replies = list(replies)
        self.default = default
        self.delay = delay
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    async def complete(self, prompt: str, model_id: str) -> str:
        self.calls.append((prompt, model_id))
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self._replies:
            return self.default
        item = self._replies.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def aclose(self) -> None:
        self.closed = True


# =============================================================================
# SHARED FIXTURES - Available to all test modules
# =============================================================================


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    """Configuration pointing at a throwaway database."""
    return AppConfig(
        store=StoreConfig(db_path=str(tmp_path / "joust.db"), app_id="test-app"),
        moderation=ModerationConfig(deadline=2.0),
    )


@pytest.fixture
def store(app_config: AppConfig) -> DocumentStore:
    return DocumentStore(app_config.store.db_path)


@pytest.fixture
def paths(app_config: AppConfig) -> StorePaths:
    return StorePaths(app_config.store.app_id)


@pytest.fixture
def completion_client() -> FakeCompletionClient:
    return FakeCompletionClient()


@pytest.fixture
def engine(
    app_config: AppConfig, store: DocumentStore, completion_client: FakeCompletionClient
) -> DebateEngine:
    """Engine with a seeded RNG so the first turn is reproducible."""
    return DebateEngine(app_config, store, completion_client, rng=random.Random(7))


def pair_users(engine: DebateEngine, first: str = "alice", second: str = "bob") -> DebateSession:
    """Create a topic, pair two users on it and return the new session."""

    async def scenario() -> DebateSession:
        topic = await engine.create_topic("Pineapple on pizza", "", first)
        assert await engine.signal_interest(topic.id, first) is None
        session_id = await engine.signal_interest(topic.id, second)
        assert session_id is not None
        return await engine.get_session(session_id)

    return asyncio.run(scenario())


@pytest.fixture
def session(engine: DebateEngine) -> DebateSession:
    """An active session between alice and bob."""
    return pair_users(engine)


@pytest.fixture
def pair(engine: DebateEngine):
    """Pair two named users on a fresh topic of the shared engine."""

    def factory(first: str, second: str) -> DebateSession:
        return pair_users(engine, first, second)

    return factory


@pytest.fixture
def make_session(app_config: AppConfig, store: DocumentStore, completion_client: FakeCompletionClient):
    """Factory for an engine with overridden rules and a fresh session on it."""

    def factory(**rule_overrides) -> tuple[DebateEngine, DebateSession]:
        rules = app_config.rules.model_copy(update=rule_overrides)
        config = app_config.model_copy(update={"rules": rules})
        engine = DebateEngine(config, store, completion_client, rng=random.Random(7))
        return engine, pair_users(engine)

    return factory


# =============================================================================
# PYTEST CONFIGURATION HOOKS
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
