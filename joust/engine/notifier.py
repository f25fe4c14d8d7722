"""Snapshot subscriptions over store collections."""

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass
from typing import Any

from joust.engine.database import DocumentRef, DocumentStore, QueryFilter
from joust.engine.debate_engine.paths import StorePaths
from joust.engine.debate_engine.types import SessionStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    """Full matching document set at one point in time."""

    documents: list[dict[str, Any]]
    version: int


class Subscription:
    """Lazy, infinite stream of snapshots for one query.

    The first snapshot is the current matching set; later ones follow commits
    touching the collection. Identical consecutive snapshots are coalesced, so
    consumers only ever see the latest state. ``cancel()`` ends the stream;
    re-subscribing starts a fresh one.
    """

    def __init__(
        self,
        store: DocumentStore,
        collection: str,
        filters: Iterable[QueryFilter] = (),
        order_by: str | None = None,
        descending: bool = False,
        document: DocumentRef | None = None,
    ):
        self.store = store
        self.collection = collection
        self.filters = tuple(filters)
        self.order_by = order_by
        self.descending = descending
        self.document = document
        self._changed = asyncio.Event()
        self._cancelled = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._iterator: AsyncIterator[Snapshot] | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def __aiter__(self) -> AsyncIterator[Snapshot]:
        if self._iterator is None:
            self._iterator = self._stream()
        return self._iterator

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def cancel(self) -> None:
        """Stop the stream; safe to call from any coroutine."""
        self._cancelled = True
        self._wake()

    async def aclose(self) -> None:
        self.cancel()
        iterator = self._iterator
        if iterator is not None and not getattr(iterator, "ag_running", False):
            await iterator.aclose()  # type: ignore[attr-defined]

    def _wake(self) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._changed.set)

    def _on_commit(self, collections: frozenset[str]) -> None:
        # Called from whichever thread committed
        if self.collection in collections:
            self._wake()

    def _read(self) -> list[dict[str, Any]]:
        if self.document is not None:
            snapshot = self.store.get(self.document)
            return [snapshot.to_dict()] if snapshot.exists else []
        return [
            snapshot.to_dict()
            for snapshot in self.store.query(
                self.collection, self.filters, self.order_by, self.descending
            )
        ]

    async def _stream(self) -> AsyncIterator[Snapshot]:
        self._loop = asyncio.get_running_loop()
        remove_listener = self.store.add_listener(self._on_commit)
        last: list[dict[str, Any]] | None = None
        version = 0
        try:
            while not self._cancelled:
                self._changed.clear()
                documents = await asyncio.to_thread(self._read)
                if documents != last:
                    last = documents
                    version += 1
                    yield Snapshot(documents=documents, version=version)
                if self._cancelled:
                    break
                await self._changed.wait()
                logger.debug(f"Subscription on {self.collection} woke up")
        finally:
            remove_listener()


class SessionNotifier:
    """Subscription surface for topics, sessions and messages."""

    def __init__(self, store: DocumentStore, paths: StorePaths):
        self.store = store
        self.paths = paths

    def subscribe(
        self,
        collection: str,
        filters: Iterable[QueryFilter] = (),
        order_by: str | None = None,
        descending: bool = False,
    ) -> Subscription:
        return Subscription(self.store, collection, filters, order_by, descending)

    def topics(self) -> Subscription:
        return self.subscribe(self.paths.topics)

    def active_debates(self, user_id: str) -> Subscription:
        return self.subscribe(
            self.paths.debate_rooms,
            filters=[
                QueryFilter("participants", "array_contains", user_id),
                QueryFilter("status", "==", SessionStatus.ACTIVE.value),
            ],
        )

    def past_debates(self) -> Subscription:
        return self.subscribe(
            self.paths.debate_rooms,
            filters=[QueryFilter("status", "!=", SessionStatus.ACTIVE.value)],
            order_by="createdAt",
            descending=True,
        )

    def session(self, session_id: str) -> Subscription:
        return Subscription(
            self.store,
            self.paths.debate_rooms,
            document=self.paths.debate_room(session_id),
        )

    def messages(self, session_id: str) -> Subscription:
        return self.subscribe(self.paths.messages(session_id), order_by="timestamp")
