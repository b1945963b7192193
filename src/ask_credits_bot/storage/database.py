"""SQLite database shared by the credit store and the chat log."""

from __future__ import annotations

import asyncio
import sqlite3
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


class Database:
    """Single SQLite connection with blocking calls pushed off the event loop.

    Statements are serialized under a lock and executed on a worker thread
    via ``asyncio.to_thread``. A call that cannot take the lock within
    ``timeout`` seconds raises ``TimeoutError`` without running anything,
    and a call that has taken it always runs to completion.
    """

    def __init__(self, db_path: str, timeout: float = 5.0):
        self._db_path = db_path
        self._timeout = timeout
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, timeout=timeout, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._initialize_schema()
        logger.info("database_opened", path=db_path)

    def _initialize_schema(self) -> None:
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS credits (
                user_id TEXT PRIMARY KEY,
                credits INTEGER NOT NULL CHECK (credits >= 0),
                last_updated TEXT NULL
            );

            CREATE TABLE IF NOT EXISTS chat_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                original_query TEXT NOT NULL,
                response TEXT NOT NULL,
                timestamp TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_chat_logs_user_timestamp
                ON chat_logs(user_id, timestamp);
            """
        )
        self._conn.commit()

    def _run_locked(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        if not self._lock.acquire(timeout=self._timeout):
            raise TimeoutError(f"Database busy for more than {self._timeout}s: {self._db_path}")
        try:
            result = fn(self._conn)
            self._conn.commit()
            return result
        except sqlite3.Error:
            self._conn.rollback()
            raise
        finally:
            self._lock.release()

    async def run(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        """Run ``fn(connection)`` in a worker thread inside a transaction."""
        return await asyncio.to_thread(self._run_locked, fn)

    async def fetchone(self, query: str, params: tuple[Any, ...] = ()) -> sqlite3.Row | None:
        return await self.run(lambda conn: conn.execute(query, params).fetchone())

    async def fetchall(self, query: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        return await self.run(lambda conn: conn.execute(query, params).fetchall())

    async def execute(self, query: str, params: tuple[Any, ...] = ()) -> int:
        """Execute a write statement and return the affected row count."""
        return await self.run(lambda conn: conn.execute(query, params).rowcount)

    def close(self) -> None:
        with self._lock:
            self._conn.close()
        logger.info("database_closed", path=self._db_path)
