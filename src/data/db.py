"""
ContextFlow — Snapshot Database.

The whole application state lives in one key-value slot of a local SQLite
file. Every save overwrites the slot wholesale; there are no partial writes.

An unusable database file never stops the application: construction logs
the problem, loads fall back to the seed snapshot and saves report False.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from src.core.clock import now_ms as _now_ms
from src.core.errors import PersistenceError
from src.data.migration import snapshot_from_payload, snapshot_to_payload
from src.data.models import Snapshot
from src.data.seed import build_seed_snapshot

logger = logging.getLogger(__name__)

CORRUPT_SUFFIX = ".corrupt"


class SnapshotDB:
    """SQLite-backed storage for the single snapshot slot."""

    def __init__(self, db_path: str | None = None, storage_key: str | None = None) -> None:
        if db_path is None or storage_key is None:
            from src.config import settings
            db_path = db_path or settings.DATABASE_PATH
            storage_key = storage_key or settings.STORAGE_KEY

        self._db_path = db_path
        self._key = storage_key
        self._initialized = False
        try:
            self._init_db()
        except PersistenceError as exc:
            logger.error("Snapshot DB unavailable, changes will not be saved: %s", exc)

    @property
    def storage_key(self) -> str:
        return self._key

    @property
    def corrupt_key(self) -> str:
        """Slot that keeps the last payload rejected by ``load``."""
        return f"{self._key}{CORRUPT_SUFFIX}"

    @property
    def available(self) -> bool:
        """False while the database file cannot be opened."""
        return self._initialized

    def _connect(self) -> sqlite3.Connection:
        if not self._initialized:
            self._init_db()
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        """Create the parent directory and the slots table if missing."""
        try:
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            with sqlite3.connect(self._db_path) as conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS slots (
                        key        TEXT PRIMARY KEY,
                        value      TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                """)
        except (OSError, sqlite3.Error) as exc:
            raise PersistenceError(f"Cannot initialize {self._db_path}: {exc}") from exc
        self._initialized = True
        logger.debug("Slots table initialized at %s", self._db_path)

    def _read_slot(self, key: str) -> str | None:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT value FROM slots WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot read slot {key!r}: {exc}") from exc
        if row is None:
            return None
        return row["value"]

    def _write_slot(self, key: str, value: str) -> None:
        stamp = datetime.now(timezone.utc).isoformat()
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO slots (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (key, value, stamp),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot write slot {key!r}: {exc}") from exc

    def read_raw(self) -> str | None:
        """Return the serialized slot contents, or None if the slot is empty."""
        return self._read_slot(self._key)

    def write_raw(self, value: str) -> None:
        """Overwrite the slot with ``value``."""
        self._write_slot(self._key, value)

    def read_corrupt(self) -> str | None:
        """Return the last payload that failed to load, if one was kept."""
        return self._read_slot(self.corrupt_key)

    def _keep_rejected(self, raw: str) -> None:
        # The next save overwrites the main slot, so park the rejected blob first
        try:
            self._write_slot(self.corrupt_key, raw)
        except PersistenceError as exc:
            logger.error("Could not keep the rejected snapshot: %s", exc)
            return
        logger.warning("Rejected snapshot kept under %r", self.corrupt_key)

    def load(self, now_ms: int | None = None) -> Snapshot:
        """Load the stored snapshot.

        Falls back to the seed snapshot when the slot is empty, unreadable,
        not valid JSON, or fails validation. Never raises. A payload that is
        present but rejected is copied to ``corrupt_key`` first.
        """
        if now_ms is None:
            now_ms = _now_ms()

        try:
            raw = self.read_raw()
        except PersistenceError as exc:
            logger.error("Failed to load data, using seed snapshot: %s", exc)
            return build_seed_snapshot(now_ms)

        if not raw:
            logger.info("No stored snapshot under %r, using seed snapshot", self._key)
            return build_seed_snapshot(now_ms)

        try:
            snapshot = snapshot_from_payload(json.loads(raw))
        except json.JSONDecodeError as exc:
            logger.error("Stored snapshot is not valid JSON, using seed snapshot: %s", exc)
            self._keep_rejected(raw)
            return build_seed_snapshot(now_ms)
        except PersistenceError as exc:
            logger.error("Failed to load data, using seed snapshot: %s", exc)
            self._keep_rejected(raw)
            return build_seed_snapshot(now_ms)

        logger.debug(
            "Loaded snapshot: %d buckets, %d tasks, %d sessions",
            len(snapshot.buckets), len(snapshot.tasks), len(snapshot.sessions),
        )
        return snapshot

    def save(self, snapshot: Snapshot) -> bool:
        """Serialize and overwrite the slot. Returns False (and logs) on failure."""
        try:
            self.write_raw(json.dumps(snapshot_to_payload(snapshot), ensure_ascii=False))
        except PersistenceError as exc:
            logger.error("Failed to save data: %s", exc)
            return False
        logger.debug("Snapshot saved under %r", self._key)
        return True

    def clear(self) -> bool:
        """Delete the slot so the next load returns the seed snapshot."""
        try:
            with self._connect() as conn:
                cursor = conn.execute("DELETE FROM slots WHERE key = ?", (self._key,))
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot clear slot {self._key!r}: {exc}") from exc
        cleared = cursor.rowcount > 0
        if cleared:
            logger.info("Slot %r cleared", self._key)
        return cleared
