"""Tests for the SQLite document store."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

import pytest

from joust.engine.database import (
    SERVER_TIMESTAMP,
    ArrayRemove,
    ArrayUnion,
    DocumentRef,
    DocumentStore,
    QueryFilter,
)
from joust.engine.exceptions import NotFoundError, TransactionConflictError


def test_add_and_get_round_trip(store: DocumentStore) -> None:
    ref = store.add("things", {"name": "first", "tags": ["a"]})

    snapshot = store.get(ref)

    assert snapshot.exists
    assert snapshot.version == 1
    assert snapshot.get("name") == "first"
    assert snapshot.to_dict() == {"id": ref.id, "name": "first", "tags": ["a"]}


def test_missing_document_has_no_data(store: DocumentStore) -> None:
    snapshot = store.get(DocumentRef("things", "nope"))

    assert not snapshot.exists
    assert snapshot.version == 0
    assert snapshot.get("name", "fallback") == "fallback"


def test_server_timestamps_are_strictly_increasing(store: DocumentStore) -> None:
    refs = [store.add("events", {"at": SERVER_TIMESTAMP}) for _ in range(20)]

    stamps = [datetime.fromisoformat(store.get(ref).get("at")) for ref in refs]

    assert all(earlier < later for earlier, later in zip(stamps, stamps[1:]))


def test_update_applies_dotted_paths_and_sentinels(store: DocumentStore) -> None:
    ref = store.add("rooms", {"info": {"a": {"words": 1}}, "users": ["a", "b"]})

    store.batch().update(
        ref,
        {
            "info.a.words": 5,
            "info.b.words": 2,
            "users": ArrayRemove("a"),
            "touched": SERVER_TIMESTAMP,
        },
    ).commit()

    snapshot = store.get(ref)
    assert snapshot.get("info.a.words") == 5
    assert snapshot.get("info.b.words") == 2
    assert snapshot.get("users") == ["b"]
    assert isinstance(snapshot.get("touched"), str)
    assert snapshot.version == 2


def test_array_union_skips_existing_values(store: DocumentStore) -> None:
    ref = store.add("topics", {"waiting": ["a"]})

    store.batch().update(ref, {"waiting": ArrayUnion("a", "b")}).commit()

    assert store.get(ref).get("waiting") == ["a", "b"]


def test_update_of_missing_document_raises(store: DocumentStore) -> None:
    with pytest.raises(NotFoundError):
        store.batch().update(DocumentRef("things", "ghost"), {"x": 1}).commit()


def test_batch_is_atomic(store: DocumentStore) -> None:
    """A failing write rolls back the writes queued before it."""
    ref = DocumentRef("things", "kept-out")
    batch = store.batch().set(ref, {"x": 1}).update(DocumentRef("things", "ghost"), {"x": 2})

    with pytest.raises(NotFoundError):
        batch.commit()

    assert not store.get(ref).exists


def test_query_filters_and_creation_order(store: DocumentStore) -> None:
    store.add("rooms", {"status": "active", "participants": ["a", "b"]})
    second = store.add("rooms", {"status": "done", "participants": ["a", "c"]})
    third = store.add("rooms", {"status": "active", "participants": ["a", "d"]})
    store.add("rooms", {"participants": ["a"]})

    active_for_a = store.query(
        "rooms",
        [QueryFilter("participants", "array_contains", "a"), QueryFilter("status", "==", "active")],
    )
    not_active = store.query("rooms", [QueryFilter("status", "!=", "active")])

    assert [s.get("participants")[1] for s in active_for_a] == ["b", "d"]
    assert active_for_a[1].id == third.id
    # Documents without the field are excluded from inequality filters
    assert [s.id for s in not_active] == [second.id]


def test_query_order_by_is_stable_for_ties(store: DocumentStore) -> None:
    first = store.add("msgs", {"n": 1})
    second = store.add("msgs", {"n": 1})
    third = store.add("msgs", {"n": 0})

    ascending = store.query("msgs", order_by="n")
    descending = store.query("msgs", order_by="n", descending=True)

    assert [s.id for s in ascending] == [third.id, first.id, second.id]
    assert descending[-1].id == third.id


def test_transaction_retries_after_conflict(store: DocumentStore) -> None:
    ref = store.add("counters", {"value": 0})
    attempts = []

    def increment(transaction):
        snapshot = transaction.get(ref)
        attempts.append(snapshot.get("value"))
        if len(attempts) == 1:
            # Someone else commits between our read and our commit
            store.batch().update(ref, {"value": 10}).commit()
        transaction.update(ref, {"value": snapshot.get("value") + 1})
        return snapshot.get("value") + 1

    result = store.run_transaction(increment)

    assert attempts == [0, 10]
    assert result == 11
    assert store.get(ref).get("value") == 11


def test_transaction_gives_up_after_max_attempts(store: DocumentStore) -> None:
    ref = store.add("counters", {"value": 0})
    calls = []

    def always_conflicts(transaction):
        calls.append(1)
        snapshot = transaction.get(ref)
        store.batch().update(ref, {"value": snapshot.get("value") + 1}).commit()
        transaction.update(ref, {"value": -1})

    with pytest.raises(TransactionConflictError):
        store.run_transaction(always_conflicts, max_attempts=3)

    assert len(calls) == 3
    assert store.get(ref).get("value") == 3


def test_transaction_errors_abort_without_writing(store: DocumentStore) -> None:
    ref = store.add("counters", {"value": 0})

    def fails(transaction):
        transaction.get(ref)
        transaction.update(ref, {"value": 99})
        raise ValueError("boom")

    with pytest.raises(ValueError):
        store.run_transaction(fails)

    assert store.get(ref).get("value") == 0


def test_transaction_rejects_reads_after_writes(store: DocumentStore) -> None:
    ref = store.add("counters", {"value": 0})

    def misordered(transaction):
        transaction.update(ref, {"value": 1})
        transaction.get(ref)

    with pytest.raises(RuntimeError):
        store.run_transaction(misordered)


@pytest.mark.slow
def test_concurrent_transactions_do_not_lose_updates(store: DocumentStore) -> None:
    ref = store.add("counters", {"value": 0})

    def increment(transaction):
        snapshot = transaction.get(ref)
        transaction.update(ref, {"value": snapshot.get("value") + 1})

    with ThreadPoolExecutor(max_workers=4) as pool:
        futures = [
            pool.submit(store.run_transaction, increment, 50) for _ in range(12)
        ]
        for future in futures:
            future.result()

    assert store.get(ref).get("value") == 12


def test_listeners_receive_touched_collections(store: DocumentStore) -> None:
    seen: list[frozenset[str]] = []
    remove = store.add_listener(seen.append)

    store.add("a", {})
    store.batch().set(DocumentRef("b", "x"), {}).set(DocumentRef("c", "y"), {}).commit()
    remove()
    store.add("a", {})

    assert seen == [frozenset({"a"}), frozenset({"b", "c"})]


def test_failing_listener_does_not_break_commit(store: DocumentStore) -> None:
    def broken(_collections):
        raise RuntimeError("listener bug")

    store.add_listener(broken)
    ref = store.add("a", {"ok": True})

    assert store.get(ref).get("ok") is True


def test_schema_survives_reopening(tmp_path) -> None:
    db_path = tmp_path / "reopen.db"
    ref = DocumentStore(str(db_path)).add("things", {"x": 1})

    reopened = DocumentStore(str(db_path))

    assert reopened.get(ref).get("x") == 1
    assert reopened.add("things", {"x": 2}) != ref
