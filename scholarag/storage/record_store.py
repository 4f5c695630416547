"""Generic record store for preferences, credentials and usage logs.

Records are plain dicts grouped by table name. Filters are equality
matches on record fields. Every call is atomic on its own, also across
SQLiteRecordStore instances sharing one file.
"""
import copy
import json
import logging
import sqlite3
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..exceptions import ConfigurationError, StorageError

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


def _matches(record: Record, filters: Optional[Dict[str, Any]]) -> bool:
    if not filters:
        return True
    return all(record.get(key) == value for key, value in filters.items())


class BaseRecordStore(ABC):
    """Abstract CRUD store over named tables."""

    @abstractmethod
    def put(self, table: str, record: Record) -> Record:
        """Insert a record. An "id" is generated when missing.

        Returns:
            The stored record
        """
        pass

    @abstractmethod
    def get(self, table: str, filters: Optional[Dict[str, Any]] = None) -> List[Record]:
        """Return records matching every filter field, in insertion order."""
        pass

    @abstractmethod
    def update(self, table: str, filters: Dict[str, Any], patch: Dict[str, Any]) -> int:
        """Apply patch to matching records. Returns the number updated."""
        pass

    @abstractmethod
    def delete(self, table: str, filters: Dict[str, Any]) -> int:
        """Remove matching records. Returns the number removed."""
        pass

    @abstractmethod
    def set_exclusive(
        self,
        table: str,
        scope: Dict[str, Any],
        selected: Dict[str, Any],
        field: str,
    ) -> int:
        """Within scope, set field True on records matching selected and False on the rest.

        Runs as one atomic step. Nothing changes when no record in scope
        matches selected.

        Args:
            table: Table name
            scope: Filter choosing the group of records
            selected: Filter choosing which records of the group get True
            field: Boolean field to set

        Returns:
            Number of records set to True
        """
        pass

    def get_one(self, table: str, filters: Dict[str, Any]) -> Optional[Record]:
        records = self.get(table, filters)
        return records[0] if records else None


class InMemoryRecordStore(BaseRecordStore):
    """Process-local record store. Records are copied in and out."""

    def __init__(self):
        self._tables: Dict[str, List[Record]] = {}
        self._lock = threading.Lock()

    def put(self, table: str, record: Record) -> Record:
        stored = copy.deepcopy(record)
        stored.setdefault("id", str(uuid.uuid4()))
        with self._lock:
            rows = self._tables.setdefault(table, [])
            if any(row["id"] == stored["id"] for row in rows):
                raise StorageError(f"Duplicate id {stored['id']} in {table}")
            rows.append(stored)
        return copy.deepcopy(stored)

    def get(self, table: str, filters: Optional[Dict[str, Any]] = None) -> List[Record]:
        with self._lock:
            return [
                copy.deepcopy(row)
                for row in self._tables.get(table, [])
                if _matches(row, filters)
            ]

    def update(self, table: str, filters: Dict[str, Any], patch: Dict[str, Any]) -> int:
        updated = 0
        with self._lock:
            for row in self._tables.get(table, []):
                if _matches(row, filters):
                    row.update(copy.deepcopy(patch))
                    updated += 1
        return updated

    def delete(self, table: str, filters: Dict[str, Any]) -> int:
        with self._lock:
            rows = self._tables.get(table, [])
            kept = [row for row in rows if not _matches(row, filters)]
            self._tables[table] = kept
        return len(rows) - len(kept)

    def set_exclusive(
        self,
        table: str,
        scope: Dict[str, Any],
        selected: Dict[str, Any],
        field: str,
    ) -> int:
        with self._lock:
            rows = [row for row in self._tables.get(table, []) if _matches(row, scope)]
            chosen = [row for row in rows if _matches(row, selected)]
            if chosen:
                for row in rows:
                    row[field] = _matches(row, selected)
        return len(chosen)


class SQLiteRecordStore(BaseRecordStore):
    """Record store persisted in a single SQLite file.

    All tables share one ``records`` table; each row holds the record as
    JSON. Filtering happens in Python, which is fine for the small tables
    this store serves.
    """

    def __init__(self, path: str = "./scholarag.db"):
        self.path = path
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS records (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                table_name TEXT NOT NULL,
                id TEXT NOT NULL,
                data TEXT NOT NULL,
                UNIQUE (table_name, id)
            );

            CREATE INDEX IF NOT EXISTS idx_records_table ON records(table_name);
        """)
        self._conn.commit()

    @contextmanager
    def _write(self):
        """Transaction that takes the database write lock before reading."""
        with self._conn:
            self._conn.execute("BEGIN IMMEDIATE")
            yield

    def _rows(self, table: str, filters: Optional[Dict[str, Any]]) -> List[Record]:
        cursor = self._conn.execute(
            "SELECT data FROM records WHERE table_name = ? ORDER BY seq", (table,)
        )
        records = [json.loads(row[0]) for row in cursor.fetchall()]
        return [r for r in records if _matches(r, filters)]

    def put(self, table: str, record: Record) -> Record:
        stored = dict(record)
        stored.setdefault("id", str(uuid.uuid4()))
        with self._lock:
            try:
                with self._write():
                    self._conn.execute(
                        "INSERT INTO records (table_name, id, data) VALUES (?, ?, ?)",
                        (table, stored["id"], json.dumps(stored)),
                    )
            except sqlite3.Error as e:
                raise StorageError(f"Failed to insert into {table}: {e}") from e
        return stored

    def get(self, table: str, filters: Optional[Dict[str, Any]] = None) -> List[Record]:
        with self._lock:
            try:
                return self._rows(table, filters)
            except sqlite3.Error as e:
                raise StorageError(f"Failed to read {table}: {e}") from e

    def update(self, table: str, filters: Dict[str, Any], patch: Dict[str, Any]) -> int:
        with self._lock:
            try:
                with self._write():
                    rows = self._rows(table, filters)
                    for row in rows:
                        row.update(patch)
                        self._conn.execute(
                            "UPDATE records SET data = ? WHERE table_name = ? AND id = ?",
                            (json.dumps(row), table, row["id"]),
                        )
            except sqlite3.Error as e:
                raise StorageError(f"Failed to update {table}: {e}") from e
        return len(rows)

    def delete(self, table: str, filters: Dict[str, Any]) -> int:
        with self._lock:
            try:
                with self._write():
                    rows = self._rows(table, filters)
                    self._conn.executemany(
                        "DELETE FROM records WHERE table_name = ? AND id = ?",
                        [(table, row["id"]) for row in rows],
                    )
            except sqlite3.Error as e:
                raise StorageError(f"Failed to delete from {table}: {e}") from e
        return len(rows)

    def set_exclusive(
        self,
        table: str,
        scope: Dict[str, Any],
        selected: Dict[str, Any],
        field: str,
    ) -> int:
        with self._lock:
            try:
                with self._write():
                    rows = self._rows(table, scope)
                    chosen = [row for row in rows if _matches(row, selected)]
                    if chosen:
                        for row in rows:
                            value = _matches(row, selected)
                            if row.get(field) is value:
                                continue
                            row[field] = value
                            self._conn.execute(
                                "UPDATE records SET data = ? WHERE table_name = ? AND id = ?",
                                (json.dumps(row), table, row["id"]),
                            )
            except sqlite3.Error as e:
                raise StorageError(f"Failed to update {table}: {e}") from e
        return len(chosen)

    def close(self) -> None:
        with self._lock:
            self._conn.close()


def create_record_store(config) -> BaseRecordStore:
    """Build the record store selected by config.record_store_backend."""
    backend = (config.record_store_backend or "").lower()
    if backend == "memory":
        return InMemoryRecordStore()
    if backend == "sqlite":
        logger.info(f"Using SQLite record store at {config.sqlite_path}")
        return SQLiteRecordStore(config.sqlite_path)
    raise ConfigurationError(f"Unknown record store backend: {config.record_store_backend}")
