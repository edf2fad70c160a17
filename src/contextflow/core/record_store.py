"""SQLite-backed key/value record store, one namespace per collection."""

from __future__ import annotations

import json
import sqlite3
from threading import Lock
from pathlib import Path
from typing import Any

import structlog

from .config_loader import get_storage_config, repo_root

DEFAULT_DB_PATH = "memory/contextflow.db"

COLLECTION_KEYS: dict[str, str] = {
    "users": "username",
    "profile": "id",
    "files": "id",
    "tasks": "id",
    "messages": "id",
}

log = structlog.get_logger(__name__)


def resolve_db_path(path: str | Path | None = None) -> Path:
    raw = path
    if raw is None:
        configured = get_storage_config().get("db_path")
        raw = configured if isinstance(configured, str) and configured.strip() else DEFAULT_DB_PATH
    candidate = Path(raw)
    if not candidate.is_absolute():
        candidate = repo_root() / candidate
    return candidate.resolve()


class RecordStore:
    """Generic get/put/get_all/delete/clear over named collections.

    The store is an explicit handle: call `open()` before use and `close()`
    when done, or use it as a context manager. One connection is shared by
    every caller thread, so each statement runs under the store lock.
    """

    def __init__(self, db_path: str | Path | None = None) -> None:
        self._db_path = resolve_db_path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._lock = Lock()

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> "RecordStore":
        if self._conn is not None:
            return self
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS records (
                collection TEXT NOT NULL,
                record_id TEXT NOT NULL,
                payload TEXT NOT NULL,
                PRIMARY KEY (collection, record_id)
            );
            """
        )
        conn.commit()
        self._conn = conn
        log.debug("record_store_opened", db_path=str(self._db_path))
        return self

    def close(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None
        log.debug("record_store_closed", db_path=str(self._db_path))

    def __enter__(self) -> "RecordStore":
        return self.open()

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("RecordStore is not open.")
        return self._conn

    @staticmethod
    def _key_field(collection: str) -> str:
        key_field = COLLECTION_KEYS.get(collection)
        if key_field is None:
            raise ValueError(f"Unknown collection '{collection}'.")
        return key_field

    def get(self, collection: str, key: str) -> dict[str, Any] | None:
        self._key_field(collection)
        with self._lock:
            row = self._connection().execute(
                "SELECT payload FROM records WHERE collection = ? AND record_id = ?;",
                (collection, key),
            ).fetchone()
        if row is None:
            return None
        parsed = json.loads(row["payload"])
        return parsed if isinstance(parsed, dict) else None

    def get_all(self, collection: str) -> list[dict[str, Any]]:
        """Return every record in insertion order."""
        self._key_field(collection)
        with self._lock:
            rows = self._connection().execute(
                "SELECT payload FROM records WHERE collection = ? ORDER BY rowid ASC;",
                (collection,),
            ).fetchall()
        out: list[dict[str, Any]] = []
        for row in rows:
            parsed = json.loads(row["payload"])
            if isinstance(parsed, dict):
                out.append(parsed)
        return out

    def put(self, collection: str, record: dict[str, Any]) -> str:
        """Upsert `record` keyed by its collection key field; return the key."""
        key_field = self._key_field(collection)
        key = record.get(key_field)
        if not isinstance(key, str) or not key:
            raise ValueError(f"Record for '{collection}' requires non-empty string `{key_field}`.")
        payload = json.dumps(record, ensure_ascii=False)
        with self._lock:
            conn = self._connection()
            conn.execute(
                """
                INSERT INTO records (collection, record_id, payload)
                VALUES (?, ?, ?)
                ON CONFLICT(collection, record_id) DO UPDATE SET payload = excluded.payload;
                """,
                (collection, key, payload),
            )
            conn.commit()
        return key

    def delete(self, collection: str, key: str) -> bool:
        self._key_field(collection)
        with self._lock:
            conn = self._connection()
            cur = conn.execute(
                "DELETE FROM records WHERE collection = ? AND record_id = ?;",
                (collection, key),
            )
            conn.commit()
            return cur.rowcount > 0

    def clear(self, collection: str) -> int:
        self._key_field(collection)
        with self._lock:
            conn = self._connection()
            cur = conn.execute("DELETE FROM records WHERE collection = ?;", (collection,))
            conn.commit()
            return int(cur.rowcount)
