"""
Storage Backend Module

Record storage for the ledger: an in-memory backend for tests and a
SQLite backend for persistence. Records are plain JSON-compatible dicts
grouped into named tables; monetary values travel as Decimal strings.

Every table lists its records in insertion order, and rewriting a record
keeps its original position.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Union
from decimal import Decimal
from datetime import datetime
import sqlite3
import json
import threading
from dataclasses import dataclass, asdict
from pathlib import Path
from contextlib import contextmanager

from .config import get_config


@dataclass
class StorageRecord:
    """Base class for all stored records"""
    id: str
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        result = asdict(self)
        result['created_at'] = self.created_at.isoformat()
        result['updated_at'] = self.updated_at.isoformat()
        for key, value in result.items():
            if isinstance(value, Decimal):
                result[key] = str(value)
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StorageRecord':
        """Create instance from dictionary"""
        for key in ('created_at', 'updated_at'):
            if isinstance(data.get(key), str):
                data[key] = datetime.fromisoformat(data[key])
        return cls(**data)


def _copy(record: Dict[str, Any]) -> Dict[str, Any]:
    """Detached copy of a record, so callers never share state with storage"""
    return json.loads(json.dumps(record, default=str))


class StorageInterface(ABC):
    """
    Abstract interface for storage backends

    Each backend owns a re-entrant lock. ``atomic()`` holds it for the whole
    scope, so other threads never observe a multi-record change halfway.
    Scopes nest and only the outermost one commits or rolls back.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._atomic_depth = 0

    @abstractmethod
    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Insert or overwrite a record"""

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Every record of a table in insertion order"""

    @abstractmethod
    def delete(self, table: str, record_id: str) -> bool:
        """Remove a record; False if it was not there"""

    @abstractmethod
    def clear_table(self, table: str) -> None:
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    def exists(self, table: str, record_id: str) -> bool:
        return self.load(table, record_id) is not None

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Records whose fields equal every filter value, in insertion order"""
        with self._lock:
            return [record for record in self.load_all(table) if self._matches(record, filters)]

    def count(self, table: str) -> int:
        return len(self.load_all(table))

    def begin_transaction(self) -> None:
        pass

    def commit(self) -> None:
        pass

    def rollback(self) -> None:
        pass

    @property
    def in_atomic(self) -> bool:
        return self._atomic_depth > 0

    @contextmanager
    def atomic(self):
        """All-or-nothing scope; an exception undoes every write made inside it"""
        with self._lock:
            outermost = not self.in_atomic
            if outermost:
                self.begin_transaction()
            self._atomic_depth += 1
            try:
                yield
            except Exception:
                self._atomic_depth -= 1
                if outermost:
                    self.rollback()
                raise
            self._atomic_depth -= 1
            if outermost:
                self.commit()

    @staticmethod
    def _matches(record: Dict[str, Any], filters: Dict[str, Any]) -> bool:
        return all(key in record and record[key] == value for key, value in filters.items())


class InMemoryStorage(StorageInterface):
    """In-memory storage implementation for testing"""

    def __init__(self):
        super().__init__()
        self._tables: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._saved_state: Optional[str] = None

    def _table(self, table: str) -> Dict[str, Dict[str, Any]]:
        return self._tables.setdefault(table, {})

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            # dicts keep the first insertion position when a key is overwritten
            self._table(table)[record_id] = _copy(data)

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._table(table).get(record_id)
            return _copy(record) if record is not None else None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [_copy(record) for record in self._table(table).values()]

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            return self._table(table).pop(record_id, None) is not None

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            return record_id in self._table(table)

    def count(self, table: str) -> int:
        with self._lock:
            return len(self._table(table))

    def clear_table(self, table: str) -> None:
        with self._lock:
            self._tables[table] = {}

    def begin_transaction(self) -> None:
        with self._lock:
            self._saved_state = json.dumps(self._tables)

    def commit(self) -> None:
        with self._lock:
            self._saved_state = None

    def rollback(self) -> None:
        with self._lock:
            if self._saved_state is not None:
                self._tables = json.loads(self._saved_state)
                self._saved_state = None

    def close(self) -> None:
        pass


class SQLiteStorage(StorageInterface):
    """
    SQLite storage implementation for persistence

    All tables share one ``records`` relation keyed by (table, id). The
    autoincrement ``seq`` column fixes insertion order; upserts keep it.
    """

    SCHEMA = """
        CREATE TABLE IF NOT EXISTS records (
            seq INTEGER PRIMARY KEY AUTOINCREMENT,
            tbl TEXT NOT NULL,
            id TEXT NOT NULL,
            data TEXT NOT NULL,
            UNIQUE (tbl, id)
        )
    """

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        super().__init__()
        self.db_path = str(db_path)
        # Transactions are opened implicitly on the first write and ended by commit()
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False,
                                           isolation_level='DEFERRED')
        self._connection.row_factory = sqlite3.Row
        self._in_transaction = False

        with self._lock:
            if self.db_path != ":memory:":
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
            self._connection.execute(self.SCHEMA)
            self._connection.commit()

    def _write(self, sql: str, params: tuple) -> sqlite3.Cursor:
        cursor = self._connection.execute(sql, params)
        if not self._in_transaction:
            self._connection.commit()
        return cursor

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._write("""
                INSERT INTO records (tbl, id, data) VALUES (?, ?, ?)
                ON CONFLICT (tbl, id) DO UPDATE SET data = excluded.data
            """, (table, record_id, json.dumps(data, default=str)))

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self._connection.execute(
                "SELECT data FROM records WHERE tbl = ? AND id = ?", (table, record_id)
            ).fetchone()
            return json.loads(row['data']) if row else None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        with self._lock:
            rows = self._connection.execute(
                "SELECT data FROM records WHERE tbl = ? ORDER BY seq", (table,)
            ).fetchall()
            return [json.loads(row['data']) for row in rows]

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            cursor = self._write("DELETE FROM records WHERE tbl = ? AND id = ?",
                                 (table, record_id))
            return cursor.rowcount > 0

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            return self._connection.execute(
                "SELECT 1 FROM records WHERE tbl = ? AND id = ? LIMIT 1", (table, record_id)
            ).fetchone() is not None

    def count(self, table: str) -> int:
        with self._lock:
            return self._connection.execute(
                "SELECT COUNT(*) AS n FROM records WHERE tbl = ?", (table,)
            ).fetchone()['n']

    def clear_table(self, table: str) -> None:
        with self._lock:
            self._write("DELETE FROM records WHERE tbl = ?", (table,))

    def begin_transaction(self) -> None:
        with self._lock:
            self._in_transaction = True

    def commit(self) -> None:
        with self._lock:
            if self._in_transaction:
                self._connection.commit()
                self._in_transaction = False

    def rollback(self) -> None:
        with self._lock:
            if self._in_transaction:
                self._connection.rollback()
                self._in_transaction = False

    def close(self) -> None:
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_storage(backend: Optional[str] = None,
                   database_path: Optional[str] = None) -> StorageInterface:
    """Build the storage backend named in configuration"""
    config = get_config()
    backend = (backend or config.storage_backend).lower()
    if backend == "memory":
        return InMemoryStorage()
    if backend == "sqlite":
        return SQLiteStorage(database_path or config.database_path)
    raise ValueError(f"Unknown storage backend: {backend}")
