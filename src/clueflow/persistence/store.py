"""Key-value stores with TTL: in-memory and SQLite."""

from __future__ import annotations

from pathlib import Path
import json
import sqlite3
import threading
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

from clueflow.domain.errors import StorageError


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """Thread-safe in-memory store. Values are JSON round-tripped on write."""

    def __init__(self, default_ttl: int = 300, clock: Callable[[], float] = time.time) -> None:
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            raw, expiry = entry
            if self._clock() >= expiry:
                del self._entries[key]
                return None
            return json.loads(raw)

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        try:
            raw = json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise StorageError("Value is not serializable", key=key) from exc
        expiry = self._clock() + (ttl or self.default_ttl)
        with self._lock:
            self._entries[key] = (raw, expiry)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def cleanup_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, (_, expiry) in self._entries.items() if now >= expiry]
            for key in expired:
                del self._entries[key]
        return len(expired)


class SqliteStore:
    """SQLite-backed store; backend failures surface as StorageError."""

    def __init__(
        self,
        path: Path | str = ":memory:",
        default_ttl: int = 300,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.path = str(path)
        self.default_ttl = default_ttl
        self._clock = clock
        self._lock = threading.Lock()
        try:
            self.conn = sqlite3.connect(self.path, check_same_thread=False)
        except sqlite3.Error as exc:
            raise StorageError("Could not open store", path=self.path) from exc
        self.conn.row_factory = sqlite3.Row
        self._ensure_schema()

    def close(self) -> None:
        self.conn.close()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            try:
                cur = self.conn.cursor()
                cur.execute("SELECT value, expires_at FROM kv_entries WHERE key = ?", (key,))
                row = cur.fetchone()
                if row is None:
                    return None
                if self._clock() >= float(row["expires_at"]):
                    cur.execute("DELETE FROM kv_entries WHERE key = ?", (key,))
                    self.conn.commit()
                    return None
            except sqlite3.Error as exc:
                raise StorageError("Read failed", key=key) from exc
        return json.loads(row["value"])

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        try:
            raw = json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise StorageError("Value is not serializable", key=key) from exc
        expires_at = self._clock() + (ttl or self.default_ttl)
        with self._lock:
            try:
                self.conn.execute(
                    """
                    INSERT INTO kv_entries (key, value, expires_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        expires_at = excluded.expires_at
                    """,
                    (key, raw, expires_at),
                )
                self.conn.commit()
            except sqlite3.Error as exc:
                raise StorageError("Write failed", key=key) from exc

    def delete(self, key: str) -> None:
        with self._lock:
            try:
                self.conn.execute("DELETE FROM kv_entries WHERE key = ?", (key,))
                self.conn.commit()
            except sqlite3.Error as exc:
                raise StorageError("Delete failed", key=key) from exc

    def _ensure_schema(self) -> None:
        try:
            self.conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS kv_entries (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    expires_at REAL NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_kv_entries_expiry ON kv_entries (expires_at);
                """
            )
            self.conn.commit()
        except sqlite3.Error as exc:
            raise StorageError("Could not create schema", path=self.path) from exc
