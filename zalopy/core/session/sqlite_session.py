"""
SQLite storage implementation.

Persistent session and credential storage in a local SQLite database.
Both stores may share one database file.
"""
import json
import sqlite3
import threading
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from ..account import AccountCredential


class SQLiteStore:
    """
    Base class owning a thread-safe SQLite connection and the schema.

    Example:
        >>> sessions = SQLiteSessionStore("zalopy.db")
        >>> accounts = SQLiteCredentialStore("zalopy.db")
    """

    SCHEMA_VERSION = 1

    def __init__(self, path: Union[str, Path]):
        """
        Initialize SQLite storage.

        Args:
            path: Database file path (``:memory:`` for a private in-memory db)
        """
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None
        self._path = path if str(path) == ':memory:' else Path(path)

        if isinstance(self._path, Path):
            self._path.parent.mkdir(parents=True, exist_ok=True)

        self._init_db()

    @property
    def path(self) -> Union[str, Path]:
        return self._path

    @contextmanager
    def _get_connection(self):
        """Get thread-safe database connection."""
        with self._lock:
            if self._conn is None:
                self._conn = sqlite3.connect(str(self._path), check_same_thread=False)
                self._conn.row_factory = sqlite3.Row
            yield self._conn

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS version (
                    version INTEGER PRIMARY KEY
                )
            ''')
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    expires_at REAL
                )
            ''')
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS credentials (
                    remote_user_id TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    status TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            ''')

            cursor.execute('SELECT version FROM version LIMIT 1')
            if cursor.fetchone() is None:
                cursor.execute(
                    'INSERT INTO version (version) VALUES (?)',
                    (self.SCHEMA_VERSION,)
                )
            conn.commit()

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class SQLiteSessionStore(SQLiteStore):
    """SQLite-backed TTL key/value store. Uses wall-clock expiry."""

    def __init__(self, path: Union[str, Path], clock: Callable[[], float] = time.time):
        self._clock = clock
        super().__init__(path)

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT value, expires_at FROM kv WHERE key = ?', (key,))
            row = cursor.fetchone()
            if row is None:
                return None

            if row['expires_at'] is not None and row['expires_at'] <= self._clock():
                cursor.execute('DELETE FROM kv WHERE key = ?', (key,))
                conn.commit()
                return None

            try:
                return json.loads(row['value'])
            except (json.JSONDecodeError, TypeError):
                return None

    async def set(self, key: str, value: Dict[str, Any], ttl: Optional[float] = None) -> None:
        expires_at = self._clock() + ttl if ttl is not None else None
        with self._get_connection() as conn:
            conn.execute(
                'INSERT OR REPLACE INTO kv (key, value, expires_at) VALUES (?, ?, ?)',
                (key, json.dumps(value), expires_at)
            )
            conn.commit()

    async def delete(self, key: str) -> None:
        with self._get_connection() as conn:
            conn.execute('DELETE FROM kv WHERE key = ?', (key,))
            conn.commit()

    async def purge_expired(self) -> int:
        """Delete all expired entries and return how many were removed."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                'DELETE FROM kv WHERE expires_at IS NOT NULL AND expires_at <= ?',
                (self._clock(),)
            )
            conn.commit()
            return cursor.rowcount


class SQLiteCredentialStore(SQLiteStore):
    """SQLite-backed credential store."""

    async def get(self, remote_user_id: str) -> Optional[AccountCredential]:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                'SELECT data FROM credentials WHERE remote_user_id = ?',
                (remote_user_id,)
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return AccountCredential.from_dict(json.loads(row['data']))

    async def save(self, credential: AccountCredential) -> None:
        credential.validate()
        with self._get_connection() as conn:
            conn.execute('''
                INSERT OR REPLACE INTO credentials (remote_user_id, data, status, updated_at)
                VALUES (?, ?, ?, ?)
            ''', (
                credential.remote_user_id,
                json.dumps(credential.to_dict()),
                credential.status.value,
                datetime.now().isoformat(),
            ))
            conn.commit()

    async def delete(self, remote_user_id: str) -> None:
        with self._get_connection() as conn:
            conn.execute('DELETE FROM credentials WHERE remote_user_id = ?', (remote_user_id,))
            conn.commit()

    async def list(self) -> List[AccountCredential]:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT data FROM credentials ORDER BY updated_at')
            return [AccountCredential.from_dict(json.loads(row['data'])) for row in cursor.fetchall()]
