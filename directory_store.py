"""
directory_store.py
------------------
CampusGuide - Campus Directory Assistant - Directory store client
------------------------------------------------------------------
SQLite-backed store of teacher records, wrapped in an async client with an
explicit connected/disconnected state. One DirectoryStore is created at
startup, connected once, and injected into the orchestrator; request
handlers never reach for module-level connection globals.

Table: teachers
  - One row per teacher. ``name`` is the canonical display name;
    ``document`` is the full record as JSON (English field names).
  - Rows keep insertion order (rowid) so "first match" is stable.

Read contract (used on the request path):
    find_by_approximate_name() - case-insensitive substring match in either
                                 direction; first row wins. None on miss.
    list_all_names()           - every canonical name in store order.
Both fail closed: when disconnected, or on any sqlite error, they log and
return None / [] instead of raising into the orchestrator.

Write helpers (seeding and tests only):
    upsert_record(), seed_from_json()

DB file: directory.sqlite (see config.DIRECTORY_DB_PATH)

Project: CampusGuide - Campus Directory Assistant
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Iterable, List, Optional, Union

from pydantic import ValidationError

from schemas import Record

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------
_DDL = """
CREATE TABLE IF NOT EXISTS teachers (
    id        INTEGER PRIMARY KEY AUTOINCREMENT,
    name      TEXT    NOT NULL UNIQUE,
    document  TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_teachers_name ON teachers (name);
"""

_FIND_SQL = """
SELECT document FROM teachers
WHERE instr(casefold(name), ?) > 0
   OR instr(?, casefold(name)) > 0
ORDER BY id
LIMIT 1
"""

_UPSERT_SQL = """
INSERT INTO teachers (name, document) VALUES (?, ?)
ON CONFLICT(name) DO UPDATE SET document = excluded.document
"""


def _casefold(value: Optional[str]) -> Optional[str]:
    return value.casefold() if isinstance(value, str) else value


class DirectoryStoreError(Exception):
    """Raised by write helpers when the store is not usable."""


class DirectoryStore:
    """
    Async client over the SQLite teacher directory.

    Args:
        db_path: SQLite file location. ``":memory:"`` is accepted for
                 throwaway stores.

    The single ``sqlite3.Connection`` is opened with
    ``check_same_thread=False`` because blocking calls are dispatched to
    worker threads via ``asyncio.to_thread``. Every worker holds a
    ``threading.Lock`` while it touches the connection, so a lookup whose
    awaiting task was cancelled still finishes before the next one starts.

    Name matching uses a ``casefold`` SQL function registered on the
    connection; SQLite's built-in ``lower()`` only folds ASCII.
    """

    def __init__(self, db_path: Union[str, Path]) -> None:
        self.db_path = str(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        self._db_lock = threading.Lock()

    # ── Lifecycle ────────────────────────────────────────────────────────────

    @property
    def connected(self) -> bool:
        return self._conn is not None

    async def connect(self) -> bool:
        """
        Open the connection, create the table if absent and ping it.
        Idempotent. Returns the resulting connected state.

        Raises:
            Never - a failed connect is logged and leaves the store
            disconnected so the service keeps running.
        """
        if self._conn is not None:
            return True
        try:
            self._conn = await asyncio.to_thread(self._open)
            logger.info("DirectoryStore: connected to '%s'.", self.db_path)
        except sqlite3.Error as e:
            self._conn = None
            logger.error("DirectoryStore: failed to connect to '%s': %s", self.db_path, e)
            logger.info("DirectoryStore: service will continue without a directory connection.")
        return self.connected

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.create_function("casefold", 1, _casefold, deterministic=True)
        try:
            conn.executescript(_DDL)
            conn.execute("SELECT 1").fetchone()
            conn.commit()
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    async def close(self) -> None:
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await asyncio.to_thread(self._close_locked, conn)
            logger.debug("DirectoryStore: connection closed.")

    def _close_locked(self, conn: sqlite3.Connection) -> None:
        with self._db_lock:
            conn.close()

    async def __aenter__(self) -> "DirectoryStore":
        await self.connect()
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()

    # ── Read operations (fail closed) ────────────────────────────────────────

    async def find_by_approximate_name(self, name: str) -> Optional[Record]:
        """
        Return the first record whose name contains ``name`` (or is contained
        in it), ignoring case. None on miss, on a blank name, when
        disconnected, or on any store error.
        """
        needle = (name or "").strip()
        if not needle or self._conn is None:
            return None
        try:
            row = await asyncio.to_thread(self._fetch_one, needle.casefold())
        except sqlite3.Error as e:
            logger.error("DirectoryStore: lookup for '%s' failed: %s", needle, e)
            return None
        if row is None:
            return None
        try:
            return Record.from_document(json.loads(row["document"]))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error("DirectoryStore: stored document for '%s' is invalid: %s", needle, e)
            return None

    def _fetch_one(self, needle: str) -> Optional[sqlite3.Row]:
        with self._db_lock:
            return self._conn.execute(_FIND_SQL, (needle, needle)).fetchone()

    async def list_all_names(self) -> List[str]:
        """Every canonical name in store order; [] when disconnected or on error."""
        if self._conn is None:
            return []
        try:
            rows = await asyncio.to_thread(self._fetch_names)
        except sqlite3.Error as e:
            logger.error("DirectoryStore: listing names failed: %s", e)
            return []
        return [row["name"] for row in rows]

    def _fetch_names(self) -> List[sqlite3.Row]:
        with self._db_lock:
            return self._conn.execute("SELECT name FROM teachers ORDER BY id").fetchall()

    # ── Write helpers ────────────────────────────────────────────────────────

    async def upsert_record(self, record: Record) -> None:
        """
        Insert or replace one record keyed by canonical name.

        Raises:
            DirectoryStoreError: when the store is disconnected.
            sqlite3.Error: propagated from the write.
        """
        if self._conn is None:
            raise DirectoryStoreError("DirectoryStore is not connected")
        payload = json.dumps(record.to_document(), ensure_ascii=False)
        await asyncio.to_thread(self._write, [(record.canonical_name, payload)])

    def _write(self, rows: Iterable[tuple]) -> None:
        with self._db_lock, self._conn:
            self._conn.executemany(_UPSERT_SQL, list(rows))

    async def seed_from_json(self, path: Union[str, Path]) -> int:
        """
        Load ``{"teachers": [...]}`` from a JSON file and upsert every valid
        entry. Invalid entries are logged and skipped.

        Returns:
            int: number of records written.

        Raises:
            DirectoryStoreError: when disconnected or the file is unreadable.
        """
        if self._conn is None:
            raise DirectoryStoreError("DirectoryStore is not connected")
        try:
            with open(path, encoding="utf-8") as f:
                documents = json.load(f)["teachers"]
        except (OSError, KeyError, json.JSONDecodeError) as e:
            raise DirectoryStoreError(f"Could not load seed file '{path}': {e}") from e

        rows = []
        for doc in documents:
            try:
                record = Record.from_document(doc)
            except ValidationError as e:
                logger.warning("DirectoryStore: skipping invalid seed entry: %s", e.errors()[0]["msg"])
                continue
            rows.append((record.canonical_name, json.dumps(record.to_document(), ensure_ascii=False)))

        await asyncio.to_thread(self._write, rows)
        logger.info("DirectoryStore: seeded %d record(s) from '%s'.", len(rows), path)
        return len(rows)
