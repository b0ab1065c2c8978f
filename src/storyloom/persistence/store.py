"""Document storage backend protocol and dict-based implementation.

The DocumentStore protocol is the low-level keyed-record layer that
DocumentGateway delegates to. Records live at slash-separated paths; a
collection is every record whose path is ``{collection}/{doc_id}``.

Collections list in insertion order. Re-writing an existing record keeps
its position, so the first node written to a story stays first.

DictDocumentStore is the in-memory backend. SqliteDocumentStore provides
file-backed storage with a write audit trail.
"""

from __future__ import annotations

import copy
from typing import Any, Protocol, runtime_checkable


def merge_fields(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    """Merge *updates* into a copy of *base*.

    Nested dicts merge key by key. Any other value (lists included) replaces
    the old value wholesale. Keys absent from *updates* are kept.
    """
    merged = copy.deepcopy(base)
    for key, value in updates.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_fields(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def split_path(path: str) -> tuple[str, str]:
    """Split ``a/b/c`` into collection ``a/b`` and document id ``c``."""
    collection, sep, doc_id = path.rstrip("/").rpartition("/")
    if not sep or not doc_id:
        raise ValueError(f"Invalid document path {path!r}: expected '<collection>/<id>'")
    return collection, doc_id


@runtime_checkable
class DocumentStore(Protocol):
    """Storage backend protocol for keyed records.

    Implementations provide raw CRUD only. DocumentGateway adds scoping,
    model conversion and logging on top.
    """

    def get(self, path: str) -> dict[str, Any] | None:
        """Get a record by path, or None if absent."""
        ...

    def set(self, path: str, data: dict[str, Any], *, merge: bool = False) -> None:
        """Write a record. With *merge*, fields not in *data* are kept."""
        ...

    def delete(self, path: str) -> None:
        """Delete a record. Deleting an absent record is not an error."""
        ...

    def list_collection(self, collection: str) -> list[tuple[str, dict[str, Any]]]:
        """Return ``(doc_id, data)`` pairs directly under *collection*, in insertion order."""
        ...

    def count(self) -> int:
        """Return the total number of records."""
        ...


class DictDocumentStore:
    """In-memory document store backed by an insertion-ordered dict."""

    def __init__(self, data: dict[str, dict[str, Any]] | None = None) -> None:
        self._docs: dict[str, dict[str, Any]] = data or {}

    def get(self, path: str) -> dict[str, Any] | None:
        doc = self._docs.get(path)
        return copy.deepcopy(doc) if doc is not None else None

    def set(self, path: str, data: dict[str, Any], *, merge: bool = False) -> None:
        split_path(path)
        existing = self._docs.get(path)
        if merge and existing is not None:
            self._docs[path] = merge_fields(existing, data)
        else:
            self._docs[path] = copy.deepcopy(data)

    def delete(self, path: str) -> None:
        self._docs.pop(path, None)

    def list_collection(self, collection: str) -> list[tuple[str, dict[str, Any]]]:
        prefix = collection.rstrip("/") + "/"
        return [
            (path[len(prefix) :], copy.deepcopy(doc))
            for path, doc in self._docs.items()
            if path.startswith(prefix) and "/" not in path[len(prefix) :]
        ]

    def count(self) -> int:
        return len(self._docs)

    def to_dict(self) -> dict[str, dict[str, Any]]:
        """Serialize the entire store (deep copy)."""
        return copy.deepcopy(self._docs)
