"""
Record stores for Learn-mode progress.

Provides persistence for:
- TermRecords per (user, term, mode)
- The resumable round counter per (user, set)

Stores:
- MemoryRecordStore: process-local, for tests and embedding
- SqliteRecordStore: local file at ~/.learnloop/records.db
"""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterable
from pathlib import Path

from loguru import logger

from learnloop.core.terms import LEARN_MODE, TermRecord


class SyncError(Exception):
    """A record store could not complete a read or write."""


# =============================================================================
# In-memory Store
# =============================================================================


class MemoryRecordStore:
    """Dictionary-backed RecordStore."""

    def __init__(self):
        self._records: dict[tuple[str, str, str], TermRecord] = {}
        self._rounds: dict[tuple[str, str], int] = {}
        self._lock = threading.Lock()

    def load(
        self, user_id: str, term_ids: Iterable[str], mode: str = LEARN_MODE
    ) -> list[TermRecord]:
        with self._lock:
            return [
                self._records[(user_id, term_id, mode)]
                for term_id in term_ids
                if (user_id, term_id, mode) in self._records
            ]

    def upsert(self, user_id: str, record: TermRecord) -> None:
        with self._lock:
            self._records[(user_id, record.term_id, record.mode)] = record

    def get(self, user_id: str, term_id: str, mode: str = LEARN_MODE) -> TermRecord | None:
        with self._lock:
            return self._records.get((user_id, term_id, mode))

    def load_round(self, user_id: str, set_id: str) -> int:
        with self._lock:
            return self._rounds.get((user_id, set_id), 1)

    def save_round(self, user_id: str, set_id: str, round_number: int) -> None:
        with self._lock:
            self._rounds[(user_id, set_id)] = round_number

    def reset(self, user_id: str, term_ids: Iterable[str], mode: str = LEARN_MODE) -> int:
        with self._lock:
            keys = [(user_id, t, mode) for t in term_ids if (user_id, t, mode) in self._records]
            for key in keys:
                del self._records[key]
            return len(keys)

    def reset_round(self, user_id: str, set_id: str) -> None:
        with self._lock:
            self._rounds.pop((user_id, set_id), None)


# =============================================================================
# SQLite Store
# =============================================================================


class SqliteRecordStore:
    """
    SQLite-backed RecordStore.

    The connection is shared between the session thread and the background
    sync thread, so every statement runs under a lock.
    """

    DEFAULT_DB_PATH = Path.home() / ".learnloop" / "records.db"

    def __init__(self, db_path: Path | None = None):
        """
        Initialize the record store.

        Args:
            db_path: Custom database path (defaults to ~/.learnloop/records.db)
        """
        self.db_path = Path(db_path) if db_path else self.DEFAULT_DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._init_schema()

        logger.debug(f"SqliteRecordStore initialized at {self.db_path}")

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self._lock:
            cursor = self.conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS studiable_terms (
                    user_id TEXT NOT NULL,
                    term_id TEXT NOT NULL,
                    mode TEXT NOT NULL DEFAULT 'learn',
                    correctness INTEGER NOT NULL DEFAULT 0,
                    incorrect_count INTEGER NOT NULL DEFAULT 0,
                    appeared_in_round INTEGER,
                    studiable_rank REAL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (user_id, term_id, mode)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS learn_rounds (
                    user_id TEXT NOT NULL,
                    set_id TEXT NOT NULL,
                    round INTEGER NOT NULL DEFAULT 1,
                    PRIMARY KEY (user_id, set_id)
                )
            """)

            self.conn.commit()

    # =========================================================================
    # Term Records
    # =========================================================================

    def load(
        self, user_id: str, term_ids: Iterable[str], mode: str = LEARN_MODE
    ) -> list[TermRecord]:
        """
        Load persisted records for the given terms.

        Terms without a row are simply absent from the result.
        """
        wanted = set(term_ids)
        try:
            with self._lock:
                cursor = self.conn.cursor()
                cursor.execute(
                    "SELECT * FROM studiable_terms WHERE user_id = ? AND mode = ?",
                    (user_id, mode),
                )
                rows = cursor.fetchall()
        except sqlite3.Error as exc:
            raise SyncError(f"Loading records for {user_id} failed: {exc}") from exc

        return [
            TermRecord(
                term_id=row["term_id"],
                correctness=row["correctness"],
                incorrect_count=row["incorrect_count"],
                appeared_in_round=row["appeared_in_round"],
                studiable_rank=row["studiable_rank"],
                mode=row["mode"],
            )
            for row in rows
            if row["term_id"] in wanted
        ]

    def upsert(self, user_id: str, record: TermRecord) -> None:
        """Save or update one record."""
        try:
            with self._lock:
                self.conn.execute(
                    """
                    INSERT INTO studiable_terms (
                        user_id, term_id, mode, correctness,
                        incorrect_count, appeared_in_round, studiable_rank
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(user_id, term_id, mode) DO UPDATE SET
                        correctness = excluded.correctness,
                        incorrect_count = excluded.incorrect_count,
                        appeared_in_round = excluded.appeared_in_round,
                        studiable_rank = excluded.studiable_rank,
                        updated_at = CURRENT_TIMESTAMP
                """,
                    (
                        user_id,
                        record.term_id,
                        record.mode,
                        record.correctness,
                        record.incorrect_count,
                        record.appeared_in_round,
                        record.studiable_rank,
                    ),
                )
                self.conn.commit()
        except sqlite3.Error as exc:
            raise SyncError(f"Storing record {record.term_id} failed: {exc}") from exc

    def reset(self, user_id: str, term_ids: Iterable[str], mode: str = LEARN_MODE) -> int:
        """
        Delete records for the given terms.

        Returns:
            Number of records deleted
        """
        ids = list(term_ids)
        if not ids:
            return 0
        placeholders = ",".join("?" for _ in ids)
        try:
            with self._lock:
                cursor = self.conn.execute(
                    f"DELETE FROM studiable_terms WHERE user_id = ? AND mode = ? "
                    f"AND term_id IN ({placeholders})",
                    (user_id, mode, *ids),
                )
                self.conn.commit()
                count = cursor.rowcount
        except sqlite3.Error as exc:
            raise SyncError(f"Resetting records for {user_id} failed: {exc}") from exc

        logger.info(f"Reset {count} {mode} records for {user_id}")
        return count

    # =========================================================================
    # Round Counter
    # =========================================================================

    def load_round(self, user_id: str, set_id: str) -> int:
        try:
            with self._lock:
                cursor = self.conn.execute(
                    "SELECT round FROM learn_rounds WHERE user_id = ? AND set_id = ?",
                    (user_id, set_id),
                )
                row = cursor.fetchone()
        except sqlite3.Error as exc:
            raise SyncError(f"Loading round for {set_id} failed: {exc}") from exc
        return row["round"] if row else 1

    def save_round(self, user_id: str, set_id: str, round_number: int) -> None:
        try:
            with self._lock:
                self.conn.execute(
                    """
                    INSERT INTO learn_rounds (user_id, set_id, round) VALUES (?, ?, ?)
                    ON CONFLICT(user_id, set_id) DO UPDATE SET round = excluded.round
                """,
                    (user_id, set_id, round_number),
                )
                self.conn.commit()
        except sqlite3.Error as exc:
            raise SyncError(f"Storing round for {set_id} failed: {exc}") from exc

    def reset_round(self, user_id: str, set_id: str) -> None:
        with self._lock:
            self.conn.execute(
                "DELETE FROM learn_rounds WHERE user_id = ? AND set_id = ?",
                (user_id, set_id),
            )
            self.conn.commit()
