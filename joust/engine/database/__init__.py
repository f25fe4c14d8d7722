"""Transactional document store."""

from .database import DocumentStore, Transaction, WriteBatch
from .documents import (
    SERVER_TIMESTAMP,
    ArrayRemove,
    ArrayUnion,
    DocumentRef,
    DocumentSnapshot,
    QueryFilter,
)

__all__ = [
    "DocumentStore",
    "Transaction",
    "WriteBatch",
    "SERVER_TIMESTAMP",
    "ArrayRemove",
    "ArrayUnion",
    "DocumentRef",
    "DocumentSnapshot",
    "QueryFilter",
]
