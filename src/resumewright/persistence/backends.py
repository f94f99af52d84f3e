"""Key-value blob backends for persisted progress state.

A backend stores opaque byte blobs under string keys. The progress store
only ever reads and replaces whole blobs; backends never interpret them.
"""

import logging
import os
import re
import sqlite3
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Generator, List, Optional, Protocol, Union

from ..exceptions import PersistenceError

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueBackend(Protocol):
    """Gateway for reading and writing named blobs."""

    def get(self, key: str) -> Optional[bytes]:
        ...

    def set(self, key: str, value: bytes) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class MemoryBackend:
    """In-process backend, useful for tests and ephemeral sessions."""

    def __init__(self, initial: Optional[Dict[str, bytes]] = None) -> None:
        self._data: Dict[str, bytes] = dict(initial or {})
        self._lock = threading.Lock()
        self.write_count = 0

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)
            self.write_count += 1

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data.keys())


class FileBackend:
    """One file per key inside a directory.

    Writes go to a temporary file in the same directory and are moved into
    place with ``os.replace``, so readers never see a half-written blob.
    """

    def __init__(self, directory: Union[str, Path], suffix: str = ".json") -> None:
        self.directory = Path(directory)
        self.suffix = suffix
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise PersistenceError(f"Unsafe storage key: {key!r}", key=key, backend="file")
        return self.directory / f"{key}{self.suffix}"

    def get(self, key: str) -> Optional[bytes]:
        path = self._path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceError(f"Failed to read {path}", key=key, backend="file", cause=e) from e

    def set(self, key: str, value: bytes) -> None:
        path = self._path_for(key)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=self.directory)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(value)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except OSError as e:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise PersistenceError(f"Failed to write {path}", key=key, backend="file", cause=e) from e

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise PersistenceError(f"Failed to delete {path}", key=key, backend="file", cause=e) from e


class SQLiteBackend:
    """Blobs stored in a single-table SQLite database."""

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Union[str, Path]) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._local = threading.local()
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if not hasattr(self._local, "connection") or self._local.connection is None:
            self._local.connection = sqlite3.connect(str(self.db_path), check_same_thread=False)
        return self._local.connection

    @contextmanager
    def _transaction(self) -> Generator[sqlite3.Cursor, None, None]:
        """Context manager for database transactions."""
        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._transaction() as cursor:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS blobs (
                    key TEXT PRIMARY KEY,
                    value BLOB NOT NULL,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                )
            """)
            cursor.execute(
                "INSERT OR IGNORE INTO schema_version (version) VALUES (?)",
                (self.SCHEMA_VERSION,),
            )

    def get(self, key: str) -> Optional[bytes]:
        try:
            with self._transaction() as cursor:
                cursor.execute("SELECT value FROM blobs WHERE key = ?", (key,))
                row = cursor.fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read key {key}", key=key, backend="sqlite", cause=e) from e
        return bytes(row[0]) if row else None

    def set(self, key: str, value: bytes) -> None:
        try:
            with self._transaction() as cursor:
                cursor.execute(
                    """
                    INSERT INTO blobs (key, value, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (key, sqlite3.Binary(value)),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to write key {key}", key=key, backend="sqlite", cause=e) from e

    def delete(self, key: str) -> None:
        try:
            with self._transaction() as cursor:
                cursor.execute("DELETE FROM blobs WHERE key = ?", (key,))
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to delete key {key}", key=key, backend="sqlite", cause=e) from e

    def close(self) -> None:
        """Close the calling thread's connection."""
        if hasattr(self._local, "connection") and self._local.connection:
            self._local.connection.close()
            self._local.connection = None


def create_backend(kind: str, data_dir: Union[str, Path]) -> KeyValueBackend:
    """Build a backend by name ("memory", "file" or "sqlite")."""
    if kind == "memory":
        return MemoryBackend()
    if kind == "file":
        return FileBackend(Path(data_dir))
    if kind == "sqlite":
        return SQLiteBackend(Path(data_dir) / "progress.db")
    raise ValueError(f"Unknown backend type: {kind}")
