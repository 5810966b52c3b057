"""
Key-value store adapters.

A namespace stores string values with a small JSON metadata blob attached to
each key. The notes service uses two namespaces: ``NOTES`` (path -> content)
and ``SHARE`` (share token -> path).

Two adapters are provided:
- ``SqliteKV``: persistent, one table per namespace in a shared SQLite file
- ``MemoryKV``: process-local dictionaries, for development and tests
"""

import contextlib
import copy
import json
import logging
import re
import sqlite3
import threading
from typing import Any, Dict, List, Optional, Tuple

from starlette.concurrency import run_in_threadpool

from .domain import StoreError

logger = logging.getLogger(__name__)

NOTES = "NOTES"
SHARE = "SHARE"

Entry = Tuple[Optional[str], Dict[str, Any]]

class KVNamespace:
    """Async interface shared by all store adapters."""

    name: str = ""

    async def get_with_metadata(self, key: str) -> Entry:
        """Return ``(value, metadata)``; ``(None, {})`` when the key is missing."""
        raise NotImplementedError

    async def get(self, key: str) -> Optional[str]:
        value, _ = await self.get_with_metadata(key)
        return value

    async def put(self, key: str, value: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        raise NotImplementedError

    async def list(self, prefix: str = "") -> List[str]:
        """Return all keys starting with ``prefix``, in key order."""
        raise NotImplementedError

class MemoryKV(KVNamespace):
    """Stores entries in a dictionary owned by the instance."""

    def __init__(self, name: str):
        self.name = name
        self._data: Dict[str, Entry] = {}

    async def get_with_metadata(self, key: str) -> Entry:
        if key not in self._data:
            return None, {}
        value, metadata = self._data[key]
        return value, copy.deepcopy(metadata)

    async def put(self, key: str, value: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self._data[key] = (value, copy.deepcopy(metadata or {}))

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def list(self, prefix: str = "") -> List[str]:
        return sorted(k for k in self._data if k.startswith(prefix))

class SqliteKV(KVNamespace):
    """
    Stores a namespace in its own SQLite table.

    Blocking sqlite3 calls run in Starlette's threadpool; writes are
    serialized with a lock shared by every namespace on the same file.
    """

    _locks: Dict[str, threading.Lock] = {}

    def __init__(self, db_path: str, name: str):
        if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
            raise ValueError(f"Invalid namespace name: {name!r}")
        self.db_path = db_path
        self.name = name
        self.table = f"kv_{name.lower()}"
        self.lock = self._locks.setdefault(db_path, threading.Lock())
        self._create_table()

    @contextlib.contextmanager
    def _get_db_connection(self):
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=FULL;")
        try:
            yield conn
        finally:
            conn.close()

    def _create_table(self):
        with self.lock, self._get_db_connection() as conn:
            conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {self.table} (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                metadata TEXT NOT NULL DEFAULT '{{}}'
            )
            """)
            conn.commit()

    def _get_sync(self, key: str) -> Entry:
        with self._get_db_connection() as conn:
            row = conn.execute(
                f"SELECT value, metadata FROM {self.table} WHERE key = ?", (key,)
            ).fetchone()
        if row is None:
            return None, {}
        value, metadata = row
        return value, json.loads(metadata or "{}")

    def _put_sync(self, key: str, value: str, metadata: Dict[str, Any]) -> None:
        with self.lock, self._get_db_connection() as conn:
            try:
                conn.execute(
                    f"INSERT INTO {self.table} (key, value, metadata) VALUES (?, ?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value, metadata = excluded.metadata",
                    (key, value, json.dumps(metadata)),
                )
                conn.commit()
            except sqlite3.Error:
                conn.rollback()
                raise

    def _delete_sync(self, key: str) -> None:
        with self.lock, self._get_db_connection() as conn:
            conn.execute(f"DELETE FROM {self.table} WHERE key = ?", (key,))
            conn.commit()

    def _list_sync(self, prefix: str) -> List[str]:
        with self._get_db_connection() as conn:
            rows = conn.execute(
                f"SELECT key FROM {self.table} WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix),
            ).fetchall()
        return [row[0] for row in rows]

    async def _call(self, op: str, func, *args):
        try:
            return await run_in_threadpool(func, *args)
        except (sqlite3.Error, ValueError) as exc:
            logger.error(f"[store] {self.name}.{op} failed: {exc}")
            raise StoreError(f"{self.name}.{op} failed: {exc}") from exc

    async def get_with_metadata(self, key: str) -> Entry:
        return await self._call("get", self._get_sync, key)

    async def put(self, key: str, value: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        await self._call("put", self._put_sync, key, value, metadata or {})

    async def delete(self, key: str) -> None:
        await self._call("delete", self._delete_sync, key)

    async def list(self, prefix: str = "") -> List[str]:
        return await self._call("list", self._list_sync, prefix)

def open_namespaces(settings) -> Tuple[KVNamespace, KVNamespace]:
    """Build the ``NOTES`` and ``SHARE`` namespaces for the configured backend."""
    if settings.store == "memory":
        return MemoryKV(NOTES), MemoryKV(SHARE)
    return SqliteKV(settings.db_path, NOTES), SqliteKV(settings.db_path, SHARE)
