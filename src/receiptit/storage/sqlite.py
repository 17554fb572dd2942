"""
receiptit.storage.sqlite
~~~~~~~~~~~~~~~~~~~~~~~~
SQLite-backed receipt persistence for local profiles.

Table
-----
receipts — id, owning user, purchase date (for ordering) and the raw
           record as JSON. Records keep whatever shape they arrived in;
           the client normalises on read.

Subscribers registered through ``subscribe()`` are called synchronously
after each committed write, on the writing thread.

Default path: ``~/.receiptit/default/receiptit.db``
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List

from .base import ChangeCallback, ChangeEvent, RawRecord, Unsubscribe
from .profile import resolve_profile
from ..exceptions import PersistenceError
from ..normalizer import normalize_record, superseded_keys

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = resolve_profile(env_var=False).db_path   # ~/.receiptit/default/receiptit.db
_SCHEMA_VERSION = 1

# Keys owned by the table columns, never merged from caller data
_RESERVED = frozenset({"id", "user_id"})


class SQLiteRepository:
    """Persistent SQLite storage implementing ``ReceiptRepository``."""

    def __init__(self, db_path: Path | str | None = None) -> None:
        self.db_path = Path(db_path) if db_path else resolve_profile().db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._subscribers: Dict[str, List[ChangeCallback]] = {}
        try:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._init_schema()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot open receipt database at {self.db_path}", cause=exc) from exc

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> "SQLiteRepository":
        return self

    def __exit__(self, *_) -> None:
        self.close()

    def close(self) -> None:
        with self._lock:
            self._subscribers.clear()
            self._conn.close()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def _init_schema(self) -> None:
        with self._lock:
            version = self._conn.execute("PRAGMA user_version").fetchone()[0]
            if version == 0:
                self._conn.executescript("""
                    CREATE TABLE IF NOT EXISTS receipts (
                        id           TEXT PRIMARY KEY,
                        user_id      TEXT NOT NULL,
                        record_date  TEXT NOT NULL DEFAULT '',
                        data         TEXT NOT NULL,
                        created_at   TEXT NOT NULL,
                        updated_at   TEXT
                    );

                    CREATE INDEX IF NOT EXISTS idx_receipts_user_date
                        ON receipts (user_id, record_date);
                """)
                self._conn.execute(f"PRAGMA user_version = {_SCHEMA_VERSION}")
                self._conn.commit()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _exec(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            with self._lock:
                cur = self._conn.execute(sql, params)
                self._conn.commit()
                return cur
        except sqlite3.Error as exc:
            raise PersistenceError("Receipt database write failed", cause=exc) from exc

    def _query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        try:
            with self._lock:
                return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError("Receipt database read failed", cause=exc) from exc

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    @staticmethod
    def _record_date(record: RawRecord) -> str:
        return normalize_record(record).date

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> RawRecord:
        record = json.loads(row["data"])
        record["id"] = row["id"]
        record["user_id"] = row["user_id"]
        return record

    def _notify(self, event: ChangeEvent) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(event.user_id, ()))
        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                logger.warning("Change subscriber failed for %s", event, exc_info=True)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def list(self, user_id: str) -> List[RawRecord]:
        rows = self._query(
            """SELECT id, user_id, data FROM receipts
               WHERE user_id = ?
               ORDER BY record_date DESC, created_at DESC""",
            (user_id,),
        )
        return [self._row_to_record(row) for row in rows]

    def get(self, user_id: str, record_id: str) -> RawRecord | None:
        rows = self._query(
            "SELECT id, user_id, data FROM receipts WHERE id = ? AND user_id = ?",
            (record_id, user_id),
        )
        return self._row_to_record(rows[0]) if rows else None

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def insert(self, user_id: str, record: RawRecord) -> str:
        """
        Store a raw record for ``user_id``.

        Raises ``PersistenceError`` when a record with the same id exists.
        """
        record_id = str(record.get("id") or uuid.uuid4())
        data = {k: v for k, v in record.items() if k not in _RESERVED}
        try:
            self._exec(
                """INSERT INTO receipts (id, user_id, record_date, data, created_at)
                   VALUES (?,?,?,?,?)""",
                (
                    record_id, user_id, self._record_date(record),
                    json.dumps(data, ensure_ascii=False, default=str), self._now(),
                ),
            )
        except PersistenceError as exc:
            if isinstance(exc.cause, sqlite3.IntegrityError):
                raise PersistenceError(f"Receipt {record_id} already exists", cause=exc.cause) from exc
            raise
        logger.debug("Inserted receipt %s for %s", record_id, user_id)
        self._notify(ChangeEvent("INSERT", user_id, record_id))
        return record_id

    def update(self, user_id: str, record_id: str, fields: RawRecord) -> bool:
        """
        Merge ``fields`` into the stored record.

        A ``None`` value clears that key, and every alias of a written key
        is dropped. Returns False if the record does not belong to
        ``user_id`` or does not exist.
        """
        current = self.get(user_id, record_id)
        if current is None:
            return False

        stale = _RESERVED | superseded_keys(fields)
        merged = {k: v for k, v in current.items() if k not in stale}
        merged.update({k: v for k, v in fields.items() if k not in _RESERVED})

        self._exec(
            """UPDATE receipts SET data = ?, record_date = ?, updated_at = ?
               WHERE id = ? AND user_id = ?""",
            (
                json.dumps(merged, ensure_ascii=False, default=str),
                self._record_date(merged), self._now(),
                record_id, user_id,
            ),
        )
        self._notify(ChangeEvent("UPDATE", user_id, record_id))
        return True

    def delete(self, user_id: str, record_id: str) -> bool:
        cur = self._exec(
            "DELETE FROM receipts WHERE id = ? AND user_id = ?", (record_id, user_id)
        )
        deleted = cur.rowcount > 0
        if deleted:
            self._notify(ChangeEvent("DELETE", user_id, record_id))
        return deleted

    # ------------------------------------------------------------------
    # Change feed
    # ------------------------------------------------------------------

    def subscribe(self, user_id: str, callback: ChangeCallback) -> Unsubscribe:
        with self._lock:
            self._subscribers.setdefault(user_id, []).append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(user_id, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe
