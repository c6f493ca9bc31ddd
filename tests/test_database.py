"""
Tests for the SQLite JSON document store (followup/database.py).
"""
import sqlite3
from concurrent.futures import ThreadPoolExecutor

import pytest

from followup.database import RecordStore, StoreError, deep_merge, split_path


class TestPaths:
    def test_split_path(self):
        assert split_path("users/c1/follow_ups/fu-1") == ("users/c1/follow_ups", "fu-1")
        assert split_path("/products/p1/") == ("products", "p1")

    @pytest.mark.parametrize("path", ["products", "users/c1/follow_ups", ""])
    def test_collection_path_rejected(self, path):
        with pytest.raises(StoreError):
            split_path(path)

    def test_deep_merge(self):
        base = {"a": {"x": 1, "y": 2}, "b": [1], "c": 1}
        assert deep_merge(base, {"a": {"y": 3}, "b": [2]}) == {"a": {"x": 1, "y": 3}, "b": [2], "c": 1}
        assert base["a"] == {"x": 1, "y": 2}


class TestRecordStore:
    def test_set_and_get(self, store):
        store.set("products/p1", {"title": "Tea", "tags": ["sleep"]})
        assert store.get("products", "p1") == {"id": "p1", "title": "Tea", "tags": ["sleep"]}
        assert store.get("products", "missing") is None

    def test_id_not_stored_in_body(self, store):
        store.set("products/p1", {"id": "other", "title": "Tea"})
        assert store.get("products", "p1")["id"] == "p1"

    def test_set_replaces_without_merge(self, store):
        store.set("products/p1", {"title": "Tea", "tags": ["sleep"]})
        store.set("products/p1", {"title": "Green tea"})
        assert "tags" not in store.get("products", "p1")

    def test_set_merge_keeps_other_fields(self, store):
        store.set("clients/c1", {"name": "Alice", "meta": {"a": 1}})
        store.set("clients/c1", {"meta": {"b": 2}}, merge=True)
        assert store.get("clients", "c1") == {"id": "c1", "name": "Alice", "meta": {"a": 1, "b": 2}}

    def test_add_generates_id(self, store):
        new_id = store.add("products", {"title": "Oil"})
        assert len(new_id) == 20
        assert store.get("products", new_id)["title"] == "Oil"

    def test_delete(self, store):
        store.set("products/p1", {"title": "Tea"})
        store.delete("products/p1")
        assert store.get("products", "p1") is None

    def test_query_filters(self, store):
        store.set("fu/a", {"clientId": "c1", "status": "pending", "tags": ["x"]})
        store.set("fu/b", {"clientId": "c2", "status": "completed", "tags": ["y"]})
        store.set("fu/c", {"clientId": "c1", "status": "completed", "tags": ["x", "y"]})
        assert [d["id"] for d in store.query("fu")] == ["a", "b", "c"]
        assert [d["id"] for d in store.query("fu", [("clientId", "==", "c1")])] == ["a", "c"]
        assert [d["id"] for d in store.query("fu", [("status", "!=", "pending")])] == ["b", "c"]
        assert [d["id"] for d in store.query("fu", [("clientId", "in", ["c2"])])] == ["b"]
        assert [d["id"] for d in store.query("fu", [("tags", "array-contains", "y"),
                                                      ("clientId", "==", "c1")])] == ["c"]

    def test_update_read_modify_write(self, store):
        store.set("fu/a", {"n": 1, "keep": True})
        out = store.update("fu/a", lambda doc: {**doc, "n": doc["n"] + 1})
        assert out["n"] == 2
        assert store.get("fu", "a") == {"id": "a", "n": 2, "keep": True}

    def test_update_missing_document(self, store):
        with pytest.raises(StoreError, match="does not exist"):
            store.update("fu/none", lambda doc: doc)
        assert store.get("fu", "none") is None

    def test_concurrent_updates_are_not_lost(self, store):
        store.set("fu/a", {"n": 0})

        def bump(_):
            store.update("fu/a", lambda doc: {**doc, "n": doc["n"] + 1})

        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(bump, range(20)))
        assert store.get("fu", "a")["n"] == 20

    def test_unsupported_operator(self, store):
        store.set("fu/a", {"n": 1})
        with pytest.raises(StoreError, match="Unsupported filter"):
            store.query("fu", [("n", ">", 0)])

    def test_collections_are_isolated(self, store):
        store.set("users/c1/clients/x", {"name": "A"})
        store.set("users/c2/clients/x", {"name": "B"})
        assert store.get("users/c1/clients", "x")["name"] == "A"
        assert len(store.query("users/c2/clients")) == 1

    def test_not_serialisable(self, store):
        with pytest.raises(StoreError, match="JSON"):
            store.set("products/p1", {"when": object()})

    def test_corrupt_document(self, store):
        with sqlite3.connect(store.db_path) as conn:
            conn.execute("INSERT INTO documents (collection, id, data_json) VALUES ('products', 'bad', '{oops')")
        with pytest.raises(StoreError, match="Corrupt"):
            store.get("products", "bad")

    def test_unreachable_store(self, tmp_path):
        with pytest.raises(StoreError):
            RecordStore(tmp_path / "missing-dir" / "store.db")
