"""
Durable key/value store — a single SQLite table of JSON blobs.

Every piece of engine state (timers, daily totals, last-seen date, user
settings) lives here, so the process can be torn down between any two events
and pick up where it left off. The async methods hand the blocking sqlite
work to the default executor.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Set, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
ChangeListener = Callable[[Set[str]], Awaitable[None]]


class Transaction:
    """Read/write view over one open sqlite transaction."""

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn
        self.changed: Set[str] = set()

    def get(self, key: str, default: Any = None) -> Any:
        row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        if row is None:
            return default
        return json.loads(row[0])

    def set(self, key: str, value: Any) -> None:
        self._conn.execute(
            "INSERT INTO kv (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, json.dumps(value)),
        )
        self.changed.add(key)

    def delete(self, key: str) -> None:
        self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        self.changed.add(key)


class KeyValueStore:
    """Crash-safe local persistence keyed by string."""

    def __init__(self, db_path: Path, timeout_s: float = 5.0):
        self.db_path = Path(db_path)
        self._timeout_s = timeout_s
        self._listeners: List[ChangeListener] = []
        self._init_db()

    # ------------------------------------------------------------------
    # Async API
    # ------------------------------------------------------------------

    async def get(self, *keys: str) -> Dict[str, Any]:
        """Return {key: value} for the keys that exist."""
        return await self._run(self._get_sync, keys)

    async def set(self, items: Dict[str, Any]) -> None:
        def _write(txn: Transaction) -> None:
            for k, v in items.items():
                txn.set(k, v)

        await self.transact(_write)

    async def delete(self, *keys: str) -> None:
        def _remove(txn: Transaction) -> None:
            for k in keys:
                txn.delete(k)

        await self.transact(_remove)

    async def keys(self, prefix: str = "") -> List[str]:
        return await self._run(self._keys_sync, prefix)

    async def transact(self, fn: Callable[[Transaction], T]) -> T:
        """
        Run *fn(txn)* inside one IMMEDIATE transaction and return its result.

        *fn* runs on an executor thread and must not await anything. Either
        all of its writes commit or none do.
        """
        result, changed = await self._run(self._transact_sync, fn)
        if changed:
            await self._notify(changed)
        return result

    def add_listener(self, fn: ChangeListener) -> None:
        """Register an async callback(changed_keys) run after every committed write."""
        self._listeners.append(fn)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, *args)

    async def _notify(self, changed: Set[str]) -> None:
        for listener in self._listeners:
            try:
                await listener(set(changed))
            except Exception:
                logger.exception("Store change listener failed for keys %s", sorted(changed))

    def _get_sync(self, keys: Tuple[str, ...]) -> Dict[str, Any]:
        if not keys:
            return {}
        placeholders = ", ".join("?" for _ in keys)
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT key, value FROM kv WHERE key IN ({placeholders})", keys
            ).fetchall()
        return {k: json.loads(v) for k, v in rows}

    def _keys_sync(self, prefix: str) -> List[str]:
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT key FROM kv WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix),
            ).fetchall()
        return [r[0] for r in rows]

    def _transact_sync(self, fn: Callable[[Transaction], T]) -> Tuple[T, Set[str]]:
        with self._conn() as conn:
            conn.execute("BEGIN IMMEDIATE")
            txn = Transaction(conn)
            try:
                result = fn(txn)
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        return result, txn.changed

    def _init_db(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._conn() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key   TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        # autocommit mode: transact() issues its own BEGIN/COMMIT
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self._timeout_s,
            isolation_level=None,
            check_same_thread=False,
        )
        try:
            yield conn
        finally:
            conn.close()
