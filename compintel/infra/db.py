"""
Database infrastructure with SQLite and async support.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Tuple

import aiosqlite


logger = logging.getLogger(__name__)


class Database:
    """Async SQLite database wrapper shared by the queue and the processed store.

    A single connection is used; statements and transactions are serialized
    with an asyncio lock so concurrent workers never interleave inside a
    transaction.
    """

    def __init__(self, db_path: str = "compintel.db"):
        # Handle SQLite URL format if provided
        if db_path.startswith("sqlite"):
            # Handle sqlite+aiosqlite:///path format
            if "///" in db_path:
                actual_path = db_path.split("///")[-1]
            else:
                actual_path = db_path.split("//")[-1]
            self.db_path = actual_path
        else:
            self.db_path = db_path
        self._connection: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._connection is not None

    async def connect(self) -> None:
        """Open the connection (WAL journal, 30 s busy timeout)."""
        if self._connection:
            return

        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        # Open connection with a longer busy timeout
        self._connection = await aiosqlite.connect(self.db_path, timeout=30)
        self._connection.row_factory = aiosqlite.Row
        # Improve concurrency: use WAL journal mode and set busy timeout (ms)
        await self._connection.execute("PRAGMA journal_mode=WAL;")
        await self._connection.execute("PRAGMA busy_timeout=30000;")
        logger.debug(f"Connected to database: {self.db_path}")

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def _ensure_connected(self) -> aiosqlite.Connection:
        if not self._connection:
            await self.connect()
        return self._connection

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Context manager for an exclusive write transaction."""
        conn = await self._ensure_connected()
        async with self._lock:
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
                await conn.commit()
            except BaseException:
                await conn.rollback()
                raise

    async def execute(self, sql: str, params: Tuple[Any, ...] = ()) -> int:
        """Execute a single write statement and commit. Returns the rowcount."""
        async with self.transaction() as conn:
            cursor = await conn.execute(sql, params)
            return cursor.rowcount

    async def fetch_one(self, sql: str, params: Tuple[Any, ...] = ()) -> Optional[aiosqlite.Row]:
        """Fetch one row."""
        conn = await self._ensure_connected()
        async with self._lock:
            cursor = await conn.execute(sql, params)
            try:
                return await cursor.fetchone()
            finally:
                await cursor.close()

    async def fetch_all(self, sql: str, params: Tuple[Any, ...] = ()) -> List[aiosqlite.Row]:
        """Fetch all rows."""
        conn = await self._ensure_connected()
        async with self._lock:
            cursor = await conn.execute(sql, params)
            try:
                return list(await cursor.fetchall())
            finally:
                await cursor.close()

    async def insert_ignore(self, table: str, data: Dict[str, Any]) -> bool:
        """Insert a row unless it violates a uniqueness constraint.

        Returns True when the row was written, False on conflict.
        """
        columns = list(data.keys())
        placeholders = ", ".join("?" * len(columns))

        sql = f"""
            INSERT INTO {table} ({', '.join(columns)})
            VALUES ({placeholders})
            ON CONFLICT DO NOTHING
        """

        return await self.execute(sql, tuple(data.values())) == 1

    async def ensure_schema(self, statements: Iterable[str]) -> None:
        """Run idempotent DDL. Each component owns its tables."""
        async with self.transaction() as conn:
            for statement in statements:
                await conn.execute(statement)
