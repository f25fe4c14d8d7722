"""Document references, snapshots, filters and write sentinels."""

import copy
from dataclasses import dataclass, field
from typing import Any, Literal


class _ServerTimestamp:
    """Placeholder replaced by the commit timestamp when a write is applied."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


class ArrayUnion:
    """Append values to an array field, skipping values already present."""

    def __init__(self, *values: Any):
        self.values = values

    def apply(self, current: Any) -> list[Any]:
        result = list(current) if isinstance(current, list) else []
        for value in self.values:
            if value not in result:
                result.append(value)
        return result


class ArrayRemove:
    """Remove every occurrence of the given values from an array field."""

    def __init__(self, *values: Any):
        self.values = values

    def apply(self, current: Any) -> list[Any]:
        if not isinstance(current, list):
            return []
        return [item for item in current if item not in self.values]


def resolve_value(value: Any, current: Any, timestamp: str) -> Any:
    """Resolve write sentinels against the stored value."""
    if value is SERVER_TIMESTAMP:
        return timestamp
    if isinstance(value, (ArrayUnion, ArrayRemove)):
        return value.apply(current)
    if isinstance(value, dict):
        existing = current if isinstance(current, dict) else {}
        return {
            key: resolve_value(item, existing.get(key), timestamp)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [resolve_value(item, None, timestamp) for item in value]
    return value


def apply_field_updates(
    data: dict[str, Any], updates: dict[str, Any], timestamp: str
) -> dict[str, Any]:
    """Apply dotted-path field updates to a copy of ``data``."""
    result = copy.deepcopy(data)
    for path, value in updates.items():
        parts = path.split(".")
        target = result
        for part in parts[:-1]:
            child = target.get(part)
            if not isinstance(child, dict):
                child = {}
                target[part] = child
            target = child
        leaf = parts[-1]
        target[leaf] = resolve_value(value, target.get(leaf), timestamp)
    return result


@dataclass(frozen=True)
class DocumentRef:
    """Address of a document within a collection."""

    collection: str
    id: str

    @property
    def path(self) -> str:
        return f"{self.collection}/{self.id}"


@dataclass
class DocumentSnapshot:
    """A document as read from the store."""

    ref: DocumentRef
    data: dict[str, Any] | None
    version: int = 0
    sequence: int = 0

    @property
    def id(self) -> str:
        return self.ref.id

    @property
    def exists(self) -> bool:
        return self.data is not None

    def get(self, field_path: str, default: Any = None) -> Any:
        """Read a possibly dotted field path."""
        value: Any = self.data or {}
        for part in field_path.split("."):
            if not isinstance(value, dict) or part not in value:
                return default
            value = value[part]
        return value

    def to_dict(self) -> dict[str, Any]:
        """Document data with its id merged in."""
        return {"id": self.ref.id, **(self.data or {})}


FilterOp = Literal["==", "!=", "array_contains"]


@dataclass(frozen=True)
class QueryFilter:
    """Single-field predicate evaluated against document data."""

    field: str
    op: FilterOp
    value: Any = field(default=None)

    def matches(self, snapshot: DocumentSnapshot) -> bool:
        missing = object()
        current = snapshot.get(self.field, missing)
        if self.op == "==":
            return current is not missing and current == self.value
        if self.op == "!=":
            # A missing field never matches an inequality filter
            return current is not missing and current != self.value
        if self.op == "array_contains":
            return isinstance(current, list) and self.value in current
        raise ValueError(f"Unsupported filter operator: {self.op}")
