"""
followup/database.py – SQLite JSON document store (the record store)
=====================================================================
Stores arbitrary JSON documents in named collections, addressed by
slash-separated paths in the usual document-store style:

    users/demo-counselor/follow_ups/fu-001
    └──────── collection ─────────┘ └ id ┘

Design decisions
----------------
- **Single-table schema**: one `documents` row per (collection, id) with
  the document as a JSON TEXT column.  Queries load a collection and
  filter in Python; collections here hold tens of documents, not millions.
- **WAL journal mode**: the Streamlit UI and the terminal demo may read the
  same file while the other writes.
- **check_same_thread=False**: repository.py runs every call in a worker
  thread via asyncio.to_thread, and each call opens its own connection.
- Every sqlite / JSON failure is re-raised as StoreError so callers have
  one thing to catch.

Document table (see RecordStore._init_db)
-----------------------------------------
  collection   TEXT  NOT NULL   e.g. "users/demo-counselor/follow_ups"
  id           TEXT  NOT NULL   unique within the collection
  data_json    TEXT  NOT NULL   the document, without its id
  created_at / updated_at TEXT  ISO-8601 timestamps

Public API
----------
  get(collection, id)                  → dict | None   (document + "id")
  query(collection, filters)           → list[dict]    filters: (field, op, value)
                                         op ∈ "==", "!=", "in", "array-contains"
  set(path, data, merge=False)         create/replace; merge=True deep-merges maps
  update(path, fn)                     → dict          read-modify-write of an existing
                                         document in one BEGIN IMMEDIATE transaction
  add(collection, data)                → new id
  delete(path)
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, Sequence, Union

logger = logging.getLogger(__name__)

FILTER_OPS = ("==", "!=", "in", "array-contains")

Filter = tuple[str, str, Any]


class StoreError(Exception):
    """The record store could not complete a read or write."""


def split_path(path: str) -> tuple[str, str]:
    """'a/b/c/d' → ('a/b/c', 'd').  A document path has an even segment count."""
    parts = [p for p in path.strip("/").split("/") if p]
    if len(parts) < 2 or len(parts) % 2:
        raise StoreError(f"'{path}' is not a document path")
    return "/".join(parts[:-1]), parts[-1]


def deep_merge(base: dict, patch: dict) -> dict:
    """Nested maps are merged key by key; any other value in *patch* replaces."""
    out = dict(base)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = deep_merge(out[key], value)
        else:
            out[key] = value
    return out


def _matches(doc: dict, flt: Filter) -> bool:
    field_name, op, value = flt
    actual = doc.get(field_name)
    if op == "==":
        return actual == value
    if op == "!=":
        return actual != value
    if op == "in":
        return actual in value
    if op == "array-contains":
        return isinstance(actual, list) and value in actual
    raise StoreError(f"Unsupported filter operator '{op}' (expected one of {FILTER_OPS})")


class RecordStore:
    def __init__(self, db_path: Union[str, Path]) -> None:
        self.db_path = Path(db_path)
        self._init_db()

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot open {self.db_path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StoreError(str(exc)) from exc
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Create the documents table if it doesn't exist."""
        with self._conn() as conn:
            conn.executescript("""
            CREATE TABLE IF NOT EXISTS documents (
                collection  TEXT NOT NULL,
                id          TEXT NOT NULL,
                data_json   TEXT NOT NULL,
                created_at  TEXT DEFAULT (datetime('now')),
                updated_at  TEXT DEFAULT (datetime('now')),
                PRIMARY KEY (collection, id)
            );
            """)

    # ── Encoding ──────────────────────────────────────────────────────────────

    @staticmethod
    def _decode(row: sqlite3.Row) -> dict:
        try:
            data = json.loads(row["data_json"])
        except json.JSONDecodeError as exc:
            raise StoreError(f"Corrupt document {row['collection']}/{row['id']}: {exc}") from exc
        if not isinstance(data, dict):
            data = {"value": data}
        return {**data, "id": row["id"]}

    @staticmethod
    def _encode(data: dict) -> str:
        body = {k: v for k, v in data.items() if k != "id"}
        try:
            return json.dumps(body, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise StoreError(f"Document is not JSON-serialisable: {exc}") from exc

    # ── Reads ─────────────────────────────────────────────────────────────────

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT * FROM documents WHERE collection = ? AND id = ?",
                (collection.strip("/"), doc_id),
            ).fetchone()
        return self._decode(row) if row is not None else None

    def query(self, collection: str, filters: Sequence[Filter] = ()) -> list[dict]:
        """Documents of *collection* matching every filter, oldest first."""
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT * FROM documents WHERE collection = ? ORDER BY created_at, rowid",
                (collection.strip("/"),),
            ).fetchall()
        docs = [self._decode(r) for r in rows]
        return [d for d in docs if all(_matches(d, f) for f in filters)]

    # ── Writes ────────────────────────────────────────────────────────────────

    def set(self, path: str, data: dict, merge: bool = False) -> None:
        collection, doc_id = split_path(path)
        with self._conn() as conn:
            if merge:
                row = conn.execute(
                    "SELECT * FROM documents WHERE collection = ? AND id = ?",
                    (collection, doc_id),
                ).fetchone()
                if row is not None:
                    data = deep_merge(self._decode(row), data)
            conn.execute(
                """
                INSERT INTO documents (collection, id, data_json) VALUES (?, ?, ?)
                ON CONFLICT(collection, id) DO UPDATE SET
                    data_json = excluded.data_json,
                    updated_at = datetime('now')
                """,
                (collection, doc_id, self._encode(data)),
            )
        logger.debug("set %s (merge=%s)", path, merge)

    def update(self, path: str, fn: Callable[[dict], dict]) -> dict:
        """
        Replace the document at *path* with fn(current document).  The read
        and the write share one write-locked transaction.  Raises StoreError
        when the document does not exist.
        """
        collection, doc_id = split_path(path)
        with self._conn() as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT * FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            ).fetchone()
            if row is None:
                raise StoreError(f"Document '{path}' does not exist")
            data = fn(self._decode(row))
            conn.execute(
                "UPDATE documents SET data_json = ?, updated_at = datetime('now') "
                "WHERE collection = ? AND id = ?",
                (self._encode(data), collection, doc_id),
            )
        logger.debug("update %s", path)
        return data

    def add(self, collection: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex[:20]
        self.set(f"{collection.strip('/')}/{doc_id}", data)
        return doc_id

    def delete(self, path: str) -> None:
        collection, doc_id = split_path(path)
        with self._conn() as conn:
            conn.execute("DELETE FROM documents WHERE collection = ? AND id = ?", (collection, doc_id))
        logger.debug("delete %s", path)
