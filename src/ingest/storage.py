# ========================
# src/ingest/storage.py
# ========================

"""
Record Storage Module

Storage collaborators that persist batches of records. Each
``insert_many`` call is all-or-nothing and may run concurrently with others.
"""

import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import closing
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .errors import StoreError

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """Interface the write scheduler talks to."""

    @abstractmethod
    def insert_many(self, records: Sequence[Mapping[str, Optional[str]]]) -> None:
        """Persist every record or none of them."""

    @abstractmethod
    def list_recent(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Return the most recently stored records, newest first."""

    @abstractmethod
    def count(self) -> int:
        """Return the number of stored records."""


class InMemoryRecordStore(RecordStore):
    """Thread-safe store backed by a list. Handy for demos and tests."""

    def __init__(self):
        self._records: List[Dict[str, Any]] = []
        self._lock = threading.Lock()
        self.insert_calls = 0

    def insert_many(self, records: Sequence[Mapping[str, Optional[str]]]) -> None:
        copied = [dict(record) for record in records]
        with self._lock:
            self.insert_calls += 1
            self._records.extend(copied)

    def list_recent(self, limit: int = 10) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(record) for record in reversed(self._records[-limit:])] if limit > 0 else []

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def all_records(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(record) for record in self._records]


class SQLiteRecordStore(RecordStore):
    """
    Saves records as JSON documents in a SQLite table.

    Every call opens its own connection so that writer threads never share
    one, and every ``insert_many`` runs in a single transaction.
    """

    def __init__(self, db_path: Union[str, Path] = "data/records.db", timeout: float = 30.0):
        """
        Initialize the store and create the table if needed.

        Args:
            db_path (str): Path to the SQLite database file
            timeout (float): Seconds to wait on a locked database
        """
        self.db_path = Path(db_path)
        self.timeout = timeout
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._create_table()
        logger.info(f"SQLiteRecordStore initialized at {self.db_path}")

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.db_path), timeout=self.timeout)

    def _create_table(self) -> None:
        with closing(self._connect()) as conn:
            with conn:
                conn.execute(
                    "CREATE TABLE IF NOT EXISTS records ("
                    "seq INTEGER PRIMARY KEY AUTOINCREMENT, "
                    "payload TEXT NOT NULL)"
                )

    def insert_many(self, records: Sequence[Mapping[str, Optional[str]]]) -> None:
        rows = [(json.dumps(dict(record), ensure_ascii=False),) for record in records]
        try:
            with closing(self._connect()) as conn:
                with conn:
                    conn.executemany("INSERT INTO records (payload) VALUES (?)", rows)
        except sqlite3.Error as e:
            raise StoreError(f"SQLite insert of {len(rows)} records failed: {e}") from e
        logger.debug(f"Inserted {len(rows)} records into {self.db_path}")

    def list_recent(self, limit: int = 10) -> List[Dict[str, Any]]:
        try:
            with closing(self._connect()) as conn:
                rows = conn.execute(
                    "SELECT seq, payload FROM records ORDER BY seq DESC LIMIT ?", (limit,)
                ).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Could not list records: {e}") from e
        return [{'seq': seq, **json.loads(payload)} for seq, payload in rows]

    def count(self) -> int:
        try:
            with closing(self._connect()) as conn:
                return conn.execute("SELECT COUNT(*) FROM records").fetchone()[0]
        except sqlite3.Error as e:
            raise StoreError(f"Could not count records: {e}") from e
