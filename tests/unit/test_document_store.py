"""Tests for the DocumentStore backends.

Both backends run the same protocol tests; SQLite-specific behaviour
(audit trail, persistence across connections) is tested separately.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from storyloom.persistence.sqlite_store import SqliteDocumentStore
from storyloom.persistence.store import DictDocumentStore, DocumentStore, merge_fields, split_path

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(params=["dict", "sqlite"])
def store(request: pytest.FixtureRequest) -> DocumentStore:
    if request.param == "dict":
        return DictDocumentStore()
    return SqliteDocumentStore()


class TestMergeFields:
    def test_nested_dicts_merge(self) -> None:
        base = {"a": 1, "meta": {"x": 1, "y": 2}}
        merged = merge_fields(base, {"meta": {"y": 3}})
        assert merged == {"a": 1, "meta": {"x": 1, "y": 3}}

    def test_lists_replace(self) -> None:
        merged = merge_fields({"choices": [1, 2, 3]}, {"choices": [4]})
        assert merged == {"choices": [4]}

    def test_base_not_mutated(self) -> None:
        base = {"meta": {"x": 1}}
        merge_fields(base, {"meta": {"x": 2}})
        assert base == {"meta": {"x": 1}}


class TestSplitPath:
    def test_split(self) -> None:
        assert split_path("users/u/nodes/n1") == ("users/u/nodes", "n1")

    def test_rejects_bare_id(self) -> None:
        with pytest.raises(ValueError, match="Invalid document path"):
            split_path("n1")


class TestDocumentStoreProtocol:
    def test_is_runtime_checkable(self, store: DocumentStore) -> None:
        assert isinstance(store, DocumentStore)

    def test_set_and_get(self, store: DocumentStore) -> None:
        store.set("c/a", {"title": "A"})
        assert store.get("c/a") == {"title": "A"}
        assert store.count() == 1

    def test_get_missing_returns_none(self, store: DocumentStore) -> None:
        assert store.get("c/missing") is None

    def test_set_without_merge_replaces(self, store: DocumentStore) -> None:
        store.set("c/a", {"title": "A", "content": "x"})
        store.set("c/a", {"title": "B"})
        assert store.get("c/a") == {"title": "B"}

    def test_merge_keeps_unedited_fields(self, store: DocumentStore) -> None:
        store.set("c/a", {"title": "A", "content": "x"})
        store.set("c/a", {"title": "B"}, merge=True)
        assert store.get("c/a") == {"title": "B", "content": "x"}

    def test_merge_on_missing_creates(self, store: DocumentStore) -> None:
        store.set("c/a", {"title": "A"}, merge=True)
        assert store.get("c/a") == {"title": "A"}

    def test_delete(self, store: DocumentStore) -> None:
        store.set("c/a", {"title": "A"})
        store.delete("c/a")
        assert store.get("c/a") is None

    def test_delete_missing_is_noop(self, store: DocumentStore) -> None:
        store.delete("c/missing")
        assert store.count() == 0

    def test_list_collection_in_insertion_order(self, store: DocumentStore) -> None:
        store.set("c/zeta", {"n": 1})
        store.set("c/alpha", {"n": 2})
        store.set("c/mid", {"n": 3})

        assert [doc_id for doc_id, _ in store.list_collection("c")] == ["zeta", "alpha", "mid"]

    def test_upsert_keeps_position(self, store: DocumentStore) -> None:
        store.set("c/first", {"n": 1})
        store.set("c/second", {"n": 2})
        store.set("c/first", {"n": 10}, merge=True)

        listed = store.list_collection("c")
        assert listed == [("first", {"n": 10}), ("second", {"n": 2})]

    def test_list_collection_excludes_nested_and_siblings(self, store: DocumentStore) -> None:
        store.set("s/nodes/a", {"n": 1})
        store.set("s/nodes/a/sub/x", {"n": 2})
        store.set("s/config/stats", {"n": 3})

        assert [doc_id for doc_id, _ in store.list_collection("s/nodes")] == ["a"]

    def test_returned_data_is_a_copy(self, store: DocumentStore) -> None:
        store.set("c/a", {"tags": ["x"]})
        data = store.get("c/a")
        assert data is not None
        data["tags"].append("y")
        assert store.get("c/a") == {"tags": ["x"]}


class TestSqliteDocumentStore:
    def test_mutations_recorded(self) -> None:
        store = SqliteDocumentStore()
        store.set("c/a", {"title": "A"})
        store.set("c/a", {"content": "x"}, merge=True)
        store.delete("c/a")

        ops = [m["operation"] for m in store.mutations("c/a")]
        assert ops == ["create", "update", "delete"]
        update = store.mutations("c/a")[1]
        assert update["before_state"] == {"title": "A"}
        assert update["delta"] == {"content": "x"}

    def test_persists_across_connections(self, tmp_path: Path) -> None:
        db = tmp_path / "nested" / "story.db"
        first = SqliteDocumentStore(db)
        first.set("c/a", {"title": "A"})
        first.close()

        second = SqliteDocumentStore(db)
        assert second.get("c/a") == {"title": "A"}
        assert second.db_path == str(db)
        second.close()
