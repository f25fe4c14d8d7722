"""SQLite-backed transactional document store."""

import json
import logging
import random
import sqlite3
import threading
import time
import uuid
from collections.abc import Callable, Iterable
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Literal, TypeVar

from joust.engine.exceptions import NotFoundError, TransactionConflictError
from .documents import (
    DocumentRef,
    DocumentSnapshot,
    QueryFilter,
    apply_field_updates,
    resolve_value,
)
from .schema import SchemaManager

logger = logging.getLogger(__name__)

T = TypeVar("T")

CommitListener = Callable[[frozenset[str]], None]


@dataclass
class _Write:
    kind: Literal["set", "update"]
    ref: DocumentRef
    data: dict[str, Any] | None = None


class WriteBatch:
    """Collects writes and applies them atomically on commit."""

    def __init__(self, store: "DocumentStore"):
        self._store = store
        self._writes: list[_Write] = []

    def set(self, ref: DocumentRef, data: dict[str, Any]) -> "WriteBatch":
        self._writes.append(_Write("set", ref, data))
        return self

    def update(self, ref: DocumentRef, fields: dict[str, Any]) -> "WriteBatch":
        self._writes.append(_Write("update", ref, fields))
        return self

    def commit(self) -> None:
        self._store._commit({}, self._writes)


class Transaction(WriteBatch):
    """Optimistic read-modify-write transaction.

    Reads record the version they observed. Commit succeeds only if none of
    those documents changed in the meantime; otherwise the store retries the
    whole transaction function. All reads must happen before any write.
    """

    def __init__(self, store: "DocumentStore"):
        super().__init__(store)
        self._reads: dict[DocumentRef, int] = {}
        self._cache: dict[DocumentRef, DocumentSnapshot] = {}

    def get(self, ref: DocumentRef) -> DocumentSnapshot:
        if self._writes:
            raise RuntimeError("Transactions require all reads before writes")
        if ref in self._cache:
            return self._cache[ref]
        snapshot = self._store.get(ref)
        self._reads[ref] = snapshot.version
        self._cache[ref] = snapshot
        return snapshot

    def commit(self) -> None:
        raise RuntimeError("Transactions are committed by DocumentStore.run_transaction")


class DocumentStore:
    """Manages collections of JSON documents in a SQLite database."""

    def __init__(
        self,
        db_path: str = "joust.db",
        max_transaction_attempts: int = 5,
        busy_timeout: float = 30.0,
    ):
        self.db_path = Path(db_path)
        self.max_transaction_attempts = max_transaction_attempts
        self.busy_timeout = busy_timeout
        self.schema_manager = SchemaManager()
        self._listeners: list[CommitListener] = []
        self._listeners_lock = threading.Lock()
        self._init_database()

    def _init_database(self):
        """Initialize the database with required tables using schema manager."""
        if not self.schema_manager.validate_schema_files():
            raise RuntimeError("Database schema validation failed - missing schema files")

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._get_connection() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            cursor = conn.cursor()
            cursor.execute("BEGIN")
            self.schema_manager.initialize_database_schema(cursor)
            conn.commit()
            logger.info(f"Document store initialized at {self.db_path}")

    @contextmanager
    def _get_connection(self):
        """Get a database connection with proper error handling."""
        conn = None
        try:
            conn = sqlite3.connect(
                self.db_path,
                timeout=self.busy_timeout,
                isolation_level=None,  # Transactions are managed explicitly
            )
            conn.row_factory = sqlite3.Row
            yield conn
        except sqlite3.Error as e:
            if conn and conn.in_transaction:
                conn.rollback()
            logger.error(f"Document store error: {e}")
            raise
        finally:
            if conn:
                conn.close()

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: CommitListener) -> Callable[[], None]:
        """Register a callback receiving the collections touched by each commit."""
        with self._listeners_lock:
            self._listeners.append(listener)

        def remove() -> None:
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return remove

    def _notify(self, collections: frozenset[str]) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(collections)
            except Exception as e:
                logger.error(f"Commit listener failed: {e}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def new_ref(self, collection: str) -> DocumentRef:
        """Reference to a new document with a generated id."""
        return DocumentRef(collection, uuid.uuid4().hex)

    def get(self, ref: DocumentRef) -> DocumentSnapshot:
        """Get a document by reference. Missing documents have no data."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT data, version, sequence FROM documents WHERE collection = ? AND doc_id = ?",
                (ref.collection, ref.id),
            ).fetchone()

        if not row:
            return DocumentSnapshot(ref=ref, data=None)
        return DocumentSnapshot(
            ref=ref,
            data=json.loads(row["data"]),
            version=row["version"],
            sequence=row["sequence"],
        )

    def query(
        self,
        collection: str,
        filters: Iterable[QueryFilter] = (),
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[DocumentSnapshot]:
        """Documents in a collection matching every filter.

        Without ``order_by`` documents come back in creation order. With it,
        documents missing the field sort first and ties keep creation order.
        """
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT doc_id, data, version, sequence FROM documents "
                "WHERE collection = ? ORDER BY sequence",
                (collection,),
            ).fetchall()

        filters = tuple(filters)
        snapshots = [
            DocumentSnapshot(
                ref=DocumentRef(collection, row["doc_id"]),
                data=json.loads(row["data"]),
                version=row["version"],
                sequence=row["sequence"],
            )
            for row in rows
        ]
        matching = [s for s in snapshots if all(f.matches(s) for f in filters)]

        if order_by:
            def sort_key(snapshot: DocumentSnapshot):
                value = snapshot.get(order_by)
                return (value is not None, value if value is not None else 0)

            # Stable sort keeps creation order for equal keys
            matching.sort(key=sort_key, reverse=descending)

        return matching

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add(self, collection: str, data: dict[str, Any]) -> DocumentRef:
        """Create a document with a generated id."""
        ref = self.new_ref(collection)
        self._commit({}, [_Write("set", ref, data)])
        return ref

    def batch(self) -> WriteBatch:
        """Start an atomic multi-document write batch."""
        return WriteBatch(self)

    def run_transaction(
        self, fn: Callable[[Transaction], T], max_attempts: int | None = None
    ) -> T:
        """Run ``fn`` in an optimistic transaction, retrying on conflicts.

        Exceptions raised by ``fn`` abort the transaction without writing and
        propagate unchanged.

        Raises:
            TransactionConflictError: if every attempt conflicted
        """
        attempts = max_attempts or self.max_transaction_attempts

        for attempt in range(1, attempts + 1):
            transaction = Transaction(self)
            result = fn(transaction)
            if self._commit(transaction._reads, transaction._writes):
                return result

            logger.debug(f"Transaction conflict on attempt {attempt}/{attempts}, retrying")
            time.sleep(random.uniform(0, 0.005 * attempt))

        logger.error(f"Transaction abandoned after {attempts} conflicting attempts")
        raise TransactionConflictError(attempts)

    def _commit(self, reads: dict[DocumentRef, int], writes: list[_Write]) -> bool:
        """Apply writes atomically if every read version is still current."""
        if not writes and not reads:
            return True

        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                for ref, expected_version in reads.items():
                    if self._current_version(conn, ref) != expected_version:
                        conn.rollback()
                        return False

                if writes:
                    timestamp, sequence = self._advance_clock(conn, len(writes))
                    for offset, write in enumerate(writes):
                        self._apply_write(conn, write, timestamp, sequence + offset)

                conn.commit()
            except Exception:
                if conn.in_transaction:
                    conn.rollback()
                raise

        if writes:
            self._notify(frozenset(write.ref.collection for write in writes))
        return True

    @staticmethod
    def _current_version(conn: sqlite3.Connection, ref: DocumentRef) -> int:
        row = conn.execute(
            "SELECT version FROM documents WHERE collection = ? AND doc_id = ?",
            (ref.collection, ref.id),
        ).fetchone()
        return row["version"] if row else 0

    @staticmethod
    def _advance_clock(conn: sqlite3.Connection, write_count: int) -> tuple[str, int]:
        """Reserve a strictly increasing commit timestamp and sequence numbers."""
        row = conn.execute(
            "SELECT last_timestamp, last_sequence FROM store_clock WHERE id = 1"
        ).fetchone()
        last_timestamp = datetime.fromisoformat(row["last_timestamp"])
        now = datetime.now(timezone.utc)
        if now <= last_timestamp:
            now = last_timestamp + timedelta(microseconds=1)

        first_sequence = row["last_sequence"] + 1
        conn.execute(
            "UPDATE store_clock SET last_timestamp = ?, last_sequence = ? WHERE id = 1",
            (now.isoformat(), row["last_sequence"] + write_count),
        )
        return now.isoformat(), first_sequence

    @staticmethod
    def _apply_write(
        conn: sqlite3.Connection, write: _Write, timestamp: str, sequence: int
    ) -> None:
        ref = write.ref
        row = conn.execute(
            "SELECT data, version FROM documents WHERE collection = ? AND doc_id = ?",
            (ref.collection, ref.id),
        ).fetchone()

        if write.kind == "update":
            if not row:
                raise NotFoundError("document", ref.path)
            data = apply_field_updates(json.loads(row["data"]), write.data or {}, timestamp)
        else:
            data = resolve_value(write.data or {}, None, timestamp)

        payload = json.dumps(data)
        if row:
            conn.execute(
                "UPDATE documents SET data = ?, version = version + 1, updated_at = ? "
                "WHERE collection = ? AND doc_id = ?",
                (payload, timestamp, ref.collection, ref.id),
            )
        else:
            conn.execute(
                "INSERT INTO documents (collection, doc_id, data, version, sequence, created_at, updated_at) "
                "VALUES (?, ?, ?, 1, ?, ?, ?)",
                (ref.collection, ref.id, payload, sequence, timestamp, timestamp),
            )
