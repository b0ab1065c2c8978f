"""SQLite-backed document storage with a write audit trail.

SqliteDocumentStore implements the DocumentStore protocol using stdlib
sqlite3. Every write and delete is recorded in the ``mutations`` table
together with the record's previous contents.

Records keep the row sequence of their first insert, so collections list in
creation order even after merge upserts.
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any, cast

from storyloom.errors import DeleteFailure, LoadFailure, SaveFailure
from storyloom.persistence.store import merge_fields, split_path

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS documents (
    seq        INTEGER PRIMARY KEY AUTOINCREMENT,
    path       TEXT NOT NULL UNIQUE,
    collection TEXT NOT NULL,
    doc_id     TEXT NOT NULL,
    data       JSON NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now'))
);
CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents(collection);

CREATE TABLE IF NOT EXISTS mutations (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp    TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now')),
    operation    TEXT NOT NULL,
    path         TEXT NOT NULL,
    delta        JSON,
    before_state JSON
);
CREATE INDEX IF NOT EXISTS idx_mutations_path ON mutations(path);
"""


class SqliteDocumentStore:
    """SQLite-backed document store.

    sqlite3 errors are translated into LoadFailure, SaveFailure and
    DeleteFailure so callers never see driver exceptions.
    """

    def __init__(
        self,
        db_path: str | Path = ":memory:",
        *,
        _conn: sqlite3.Connection | None = None,
    ) -> None:
        """Open or create a SQLite document database.

        Args:
            db_path: Path to ``.db`` file, or ``":memory:"`` for in-memory.
            _conn: Pre-existing connection (for testing). If provided,
                   *db_path* is ignored.
        """
        if _conn is not None:
            self._conn = _conn
            self._db_path: str = ":memory:"
        else:
            self._db_path = str(db_path) if isinstance(db_path, Path) else db_path
            if self._db_path != ":memory:":
                Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(
                self._db_path,
                isolation_level=None,  # autocommit
                check_same_thread=False,  # gateway calls run in worker threads
            )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.executescript(_SCHEMA)

    @property
    def db_path(self) -> str:
        return self._db_path

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # -- Audit -----------------------------------------------------------------

    def _record_mutation(
        self,
        operation: str,
        path: str,
        delta: dict[str, Any] | None = None,
        before_state: dict[str, Any] | None = None,
    ) -> None:
        self._conn.execute(
            "INSERT INTO mutations (operation, path, delta, before_state) VALUES (?, ?, ?, ?)",
            (
                operation,
                path,
                json.dumps(delta) if delta is not None else None,
                json.dumps(before_state) if before_state is not None else None,
            ),
        )

    def mutations(self, path: str | None = None) -> list[dict[str, Any]]:
        """Return recorded mutations, oldest first, optionally for one path."""
        sql = "SELECT operation, path, delta, before_state FROM mutations"
        params: tuple[str, ...] = ()
        if path is not None:
            sql += " WHERE path = ?"
            params = (path,)
        rows = self._conn.execute(sql + " ORDER BY id", params).fetchall()
        return [
            {
                "operation": row["operation"],
                "path": row["path"],
                "delta": json.loads(row["delta"]) if row["delta"] else None,
                "before_state": json.loads(row["before_state"]) if row["before_state"] else None,
            }
            for row in rows
        ]

    # -- Documents -------------------------------------------------------------

    def get(self, path: str) -> dict[str, Any] | None:
        try:
            row = self._conn.execute(
                "SELECT data FROM documents WHERE path = ?", (path,)
            ).fetchone()
        except sqlite3.Error as e:
            raise LoadFailure(path, str(e)) from e
        if row is None:
            return None
        return cast("dict[str, Any]", json.loads(row["data"]))

    def set(self, path: str, data: dict[str, Any], *, merge: bool = False) -> None:
        collection, doc_id = split_path(path)
        try:
            before = self.get(path)
            new_data = merge_fields(before, data) if merge and before is not None else data
            self._conn.execute(
                "INSERT INTO documents (path, collection, doc_id, data) VALUES (?, ?, ?, ?) "
                "ON CONFLICT(path) DO UPDATE SET "
                "  data = excluded.data, "
                "  updated_at = strftime('%Y-%m-%dT%H:%M:%f','now')",
                (path, collection, doc_id, json.dumps(new_data)),
            )
            op = "update" if before is not None else "create"
            self._record_mutation(op, path, delta=data, before_state=before)
        except (sqlite3.Error, LoadFailure) as e:
            raise SaveFailure(path, str(e)) from e

    def delete(self, path: str) -> None:
        try:
            before = self.get(path)
            if before is None:
                return
            self._conn.execute("DELETE FROM documents WHERE path = ?", (path,))
            self._record_mutation("delete", path, before_state=before)
        except (sqlite3.Error, LoadFailure) as e:
            raise DeleteFailure(path, str(e)) from e

    def list_collection(self, collection: str) -> list[tuple[str, dict[str, Any]]]:
        try:
            rows = self._conn.execute(
                "SELECT doc_id, data FROM documents WHERE collection = ? ORDER BY seq",
                (collection.rstrip("/"),),
            ).fetchall()
        except sqlite3.Error as e:
            raise LoadFailure(collection, str(e)) from e
        return [(row["doc_id"], json.loads(row["data"])) for row in rows]

    def count(self) -> int:
        row = self._conn.execute("SELECT COUNT(*) FROM documents").fetchone()
        return int(row[0])
