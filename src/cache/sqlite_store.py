# src/cache/sqlite_store.py - v3
"""SQLite-based durable cache tier.

Uses stdlib sqlite3 in WAL mode; single database file that survives
restarts. Every disk operation runs in a worker thread with its own
connection and is bounded by a timeout. Writes are serialized per key;
operations on different keys proceed independently.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TypeVar

from promptlift.cache.base_cache_store import BaseCacheStore, StoredValue
from promptlift.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS cache_entries (
    key TEXT PRIMARY KEY,
    namespace TEXT NOT NULL,
    project_signature TEXT NOT NULL DEFAULT '',
    value TEXT NOT NULL,
    created_at REAL NOT NULL,
    expires_at REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_expires_at ON cache_entries(expires_at);
CREATE INDEX IF NOT EXISTS idx_namespace_signature
    ON cache_entries(namespace, project_signature);
CREATE TABLE IF NOT EXISTS cache_stats (
    namespace TEXT PRIMARY KEY,
    hits INTEGER NOT NULL DEFAULT 0,
    misses INTEGER NOT NULL DEFAULT 0,
    updated_at REAL
);
"""


def prefix_upper_bound(prefix: str) -> str:
    """Smallest string greater than every string starting with prefix."""
    return prefix[:-1] + chr(ord(prefix[-1]) + 1)


class _KeyedLocks:
    """One asyncio.Lock per key, dropped when no coroutine holds or awaits it."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._refs: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._refs[key] = self._refs.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._refs[key] -= 1
            if self._refs[key] == 0:
                del self._refs[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class SqliteCacheStore(BaseCacheStore):
    """SQLite-backed durable tier with a write-ahead log."""

    def __init__(
        self,
        db_path: Path | str,
        timeout_s: float = 2.0,
        busy_timeout_ms: int = 5000,
    ) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._timeout_s = timeout_s
        self._busy_timeout_ms = busy_timeout_ms
        self._local = threading.local()
        self._connections: list[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()
        self._key_locks = _KeyedLocks()
        self._closed = False

        conn = self._connection()
        conn.execute("PRAGMA journal_mode=WAL")
        conn.executescript(_SCHEMA)
        conn.commit()

    @property
    def db_path(self) -> Path:
        return self._db_path

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get(self, key: str) -> StoredValue | None:
        """Retrieve a row by key; expiry is left to the caller."""
        row = await self._run("get", self._select, key)
        if row is None:
            return None
        value, expires_at = row
        return StoredValue(
            key=key,
            value=value,
            expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc),
        )

    async def put(
        self,
        key: str,
        value: str,
        expires_at: datetime,
        namespace: str = "",
        project_signature: str = "",
    ) -> None:
        """Upsert a row; concurrent writers to the same key are serialized."""
        async with self._key_locks.hold(key):
            await self._run(
                "put",
                self._upsert,
                key,
                value,
                expires_at.timestamp(),
                namespace,
                project_signature,
                settle=True,
            )

    async def delete(self, key: str) -> bool:
        async with self._key_locks.hold(key):
            removed = await self._run(
                "delete", self._execute_write,
                "DELETE FROM cache_entries WHERE key = ?", (key,),
                settle=True,
            )
        return removed > 0

    async def delete_prefix(self, prefix: str) -> int:
        """Range delete over the primary-key index."""
        if not prefix:
            return await self._run(
                "delete_prefix", self._execute_write, "DELETE FROM cache_entries", (),
            )
        return await self._run(
            "delete_prefix",
            self._execute_write,
            "DELETE FROM cache_entries WHERE key >= ? AND key < ?",
            (prefix, prefix_upper_bound(prefix)),
        )

    async def delete_by_signature(self, namespace: str, project_signature: str) -> int:
        return await self._run(
            "delete_by_signature",
            self._execute_write,
            "DELETE FROM cache_entries WHERE namespace = ? AND project_signature = ?",
            (namespace, project_signature),
        )

    async def keys(self, prefix: str = "") -> list[str]:
        if prefix:
            sql = "SELECT key FROM cache_entries WHERE key >= ? AND key < ? ORDER BY key"
            params: tuple[Any, ...] = (prefix, prefix_upper_bound(prefix))
        else:
            sql, params = "SELECT key FROM cache_entries ORDER BY key", ()
        rows = await self._run("keys", self._fetch_all, sql, params)
        return [r[0] for r in rows]

    async def sweep_expired(self, now: datetime) -> int:
        removed = await self._run(
            "sweep_expired",
            self._execute_write,
            "DELETE FROM cache_entries WHERE expires_at <= ?",
            (now.timestamp(),),
        )
        if removed:
            logger.info("Swept %d expired cache rows", removed)
        return removed

    async def record_stats(self, namespace: str, hits: int = 0, misses: int = 0) -> None:
        await self._run(
            "record_stats",
            self._execute_write,
            """INSERT INTO cache_stats (namespace, hits, misses, updated_at)
               VALUES (?, ?, ?, ?)
               ON CONFLICT(namespace) DO UPDATE SET
                   hits = hits + excluded.hits,
                   misses = misses + excluded.misses,
                   updated_at = excluded.updated_at""",
            (namespace, hits, misses, time.time()),
        )

    async def load_stats(self) -> dict[str, tuple[int, int]]:
        rows = await self._run(
            "load_stats", self._fetch_all,
            "SELECT namespace, hits, misses FROM cache_stats", (),
        )
        return {r[0]: (int(r[1]), int(r[2])) for r in rows}

    async def count(self) -> int:
        rows = await self._run(
            "count", self._fetch_all, "SELECT COUNT(*) FROM cache_entries", (),
        )
        return int(rows[0][0])

    def close(self) -> None:
        """Close every per-thread connection."""
        self._closed = True
        with self._connections_lock:
            for conn in self._connections:
                conn.close()
            self._connections.clear()

    # ------------------------------------------------------------------
    # Thread-side helpers
    # ------------------------------------------------------------------

    async def _run(
        self, operation: str, fn: Callable[..., T], *args: Any, settle: bool = False
    ) -> T:
        """Run fn on a worker thread, bounded by the store timeout.

        With settle=True a timed-out call is still awaited before the error is
        raised, so a caller holding a key lock keeps it until the thread-side
        write has landed.
        """
        if self._closed:
            raise StoreUnavailableError(operation, "store is closed")
        fut = asyncio.ensure_future(asyncio.to_thread(fn, *args))
        try:
            return await asyncio.wait_for(
                asyncio.shield(fut) if settle else fut, timeout=self._timeout_s
            )
        except asyncio.TimeoutError as e:
            if settle:
                logger.warning(
                    "Cache %s exceeded %ss, waiting for the write to finish",
                    operation, self._timeout_s,
                )
                try:
                    await fut
                except sqlite3.Error as write_error:
                    logger.warning("Cache %s failed after timeout: %s", operation, write_error)
            raise StoreUnavailableError(
                operation, f"timed out after {self._timeout_s}s"
            ) from e
        except sqlite3.Error as e:
            raise StoreUnavailableError(operation, str(e)) from e

    def _connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = sqlite3.connect(
                str(self._db_path),
                timeout=self._busy_timeout_ms / 1000,
                check_same_thread=False,
            )
            conn.execute(f"PRAGMA busy_timeout={int(self._busy_timeout_ms)}")
            conn.execute("PRAGMA synchronous=NORMAL")
            self._local.conn = conn
            with self._connections_lock:
                self._connections.append(conn)
        return conn

    def _select(self, key: str) -> tuple[str, float] | None:
        cursor = self._connection().execute(
            "SELECT value, expires_at FROM cache_entries WHERE key = ?", (key,)
        )
        return cursor.fetchone()

    def _upsert(
        self,
        key: str,
        value: str,
        expires_at: float,
        namespace: str,
        project_signature: str,
    ) -> None:
        conn = self._connection()
        conn.execute(
            """INSERT OR REPLACE INTO cache_entries
               (key, namespace, project_signature, value, created_at, expires_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (key, namespace, project_signature, value, time.time(), expires_at),
        )
        conn.commit()

    def _execute_write(self, sql: str, params: tuple[Any, ...]) -> int:
        conn = self._connection()
        cursor = conn.execute(sql, params)
        conn.commit()
        return cursor.rowcount

    def _fetch_all(self, sql: str, params: tuple[Any, ...]) -> list[tuple[Any, ...]]:
        return self._connection().execute(sql, params).fetchall()
