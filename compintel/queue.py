"""
Durable, priority-ordered ingestion queue backed by SQLite.

Entries are claimed by one worker at a time. A failed entry is retried with
exponential backoff until ``max_attempts`` is reached, after which it is
dead-lettered and kept for operator inspection.
"""

import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from .config import DEFAULT_SOURCE_PRIORITIES
from .infra.db import Database
from .models import RawItem, Source


logger = logging.getLogger(__name__)


QUEUE_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS ingestion_queue (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        item_id TEXT NOT NULL,
        tenant_id TEXT NOT NULL,
        priority INTEGER NOT NULL,
        payload TEXT NOT NULL,
        state TEXT NOT NULL DEFAULT 'pending',
        attempts INTEGER NOT NULL DEFAULT 0,
        available_at REAL NOT NULL,
        enqueued_at REAL NOT NULL,
        last_error TEXT
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_ingestion_queue_ready
    ON ingestion_queue (state, priority DESC, id)
    """,
)


class EntryState(str, Enum):
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    DEAD = "dead"


class FailureOutcome(str, Enum):
    RETRY_SCHEDULED = "retry_scheduled"
    DEAD_LETTERED = "dead_lettered"


@dataclass
class QueueEntry:
    """A claimed queue entry. ``attempt`` is 1 on first delivery."""
    entry_id: int
    item: RawItem
    attempt: int


@dataclass
class DeadLetter:
    entry_id: int
    item_id: str
    tenant_id: str
    attempts: int
    last_error: Optional[str]
    payload: Dict[str, Any]


class IngestionQueue:
    """Work queue ordered by source priority, then FIFO within a priority."""

    def __init__(
        self,
        db: Database,
        *,
        max_attempts: int = 3,
        base_delay: float = 2.0,
        source_priorities: Optional[Mapping[Source, int]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.db = db
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.source_priorities = dict(source_priorities or DEFAULT_SOURCE_PRIORITIES)
        self._clock = clock

    async def open(self) -> None:
        """Create tables and return entries orphaned by a crashed worker."""
        await self.db.ensure_schema(QUEUE_SCHEMA)
        released = await self.release_in_flight()
        if released:
            logger.warning(f"Released {released} in-flight queue entries left by a previous run")

    async def close(self) -> None:
        await self.db.close()

    def priority_for(self, item: RawItem) -> int:
        """Scheduling priority; higher is served first. Does not affect scoring."""
        return self.source_priorities.get(item.source, 1)

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retrying after failed attempt number ``attempt``: 2s, 4s, 8s, ..."""
        return self.base_delay * 2 ** (attempt - 1)

    async def put(self, item: RawItem) -> int:
        """Append a validated item. Returns the queue entry id."""
        now = self._clock()
        payload = json.dumps(item.model_dump(mode="json"))
        async with self.db.transaction() as conn:
            cursor = await conn.execute(
                """
                INSERT INTO ingestion_queue
                    (item_id, tenant_id, priority, payload, state, attempts, available_at, enqueued_at)
                VALUES (?, ?, ?, ?, ?, 0, ?, ?)
                """,
                (
                    item.id,
                    item.tenant_id,
                    self.priority_for(item),
                    payload,
                    EntryState.PENDING.value,
                    now,
                    now,
                ),
            )
            entry_id = cursor.lastrowid
        logger.debug(f"Enqueued item {item.id} for tenant {item.tenant_id} as entry {entry_id}")
        return entry_id

    async def claim(self) -> Optional[QueueEntry]:
        """Take the next ready entry, or None if nothing is ready yet."""
        now = self._clock()
        async with self.db.transaction() as conn:
            cursor = await conn.execute(
                """
                SELECT id, payload, attempts FROM ingestion_queue
                WHERE state = ? AND available_at <= ?
                ORDER BY priority DESC, id ASC
                LIMIT 1
                """,
                (EntryState.PENDING.value, now),
            )
            row = await cursor.fetchone()
            await cursor.close()
            if row is None:
                return None

            attempt = row["attempts"] + 1
            await conn.execute(
                "UPDATE ingestion_queue SET state = ?, attempts = ? WHERE id = ?",
                (EntryState.IN_FLIGHT.value, attempt, row["id"]),
            )

        item = RawItem.model_validate(json.loads(row["payload"]))
        return QueueEntry(entry_id=row["id"], item=item, attempt=attempt)

    async def ack(self, entry: QueueEntry) -> None:
        """Remove a finished entry (done or duplicate)."""
        await self.db.execute("DELETE FROM ingestion_queue WHERE id = ?", (entry.entry_id,))

    async def fail(self, entry: QueueEntry, error: str) -> FailureOutcome:
        """Schedule a retry, or dead-letter the entry when attempts are exhausted.

        The failure of attempt ``max_attempts`` dead-letters without a delay,
        so with the defaults (3 attempts, 2 s base) the retries wait 2 s and
        4 s; the 8 s step of the series is never reached.
        """
        if entry.attempt >= self.max_attempts:
            await self.db.execute(
                "UPDATE ingestion_queue SET state = ?, last_error = ? WHERE id = ?",
                (EntryState.DEAD.value, error, entry.entry_id),
            )
            logger.error(
                f"Item {entry.item.id} (tenant {entry.item.tenant_id}) dead-lettered "
                f"after {entry.attempt} attempts: {error}"
            )
            return FailureOutcome.DEAD_LETTERED

        delay = self.backoff_delay(entry.attempt)
        await self.db.execute(
            "UPDATE ingestion_queue SET state = ?, available_at = ?, last_error = ? WHERE id = ?",
            (EntryState.PENDING.value, self._clock() + delay, error, entry.entry_id),
        )
        logger.warning(
            f"Item {entry.item.id} failed (attempt {entry.attempt}/{self.max_attempts} "
            f"- will retry in {delay:.1f}s): {error}"
        )
        return FailureOutcome.RETRY_SCHEDULED

    async def release_in_flight(self) -> int:
        """Return in-flight entries to pending. Only safe when no worker is running."""
        return await self.db.execute(
            "UPDATE ingestion_queue SET state = ? WHERE state = ?",
            (EntryState.PENDING.value, EntryState.IN_FLIGHT.value),
        )

    async def pending_count(self) -> int:
        """Entries waiting to be processed, including those backing off."""
        row = await self.db.fetch_one(
            "SELECT COUNT(*) AS n FROM ingestion_queue WHERE state IN (?, ?)",
            (EntryState.PENDING.value, EntryState.IN_FLIGHT.value),
        )
        return row["n"]

    async def dead_letters(self, limit: int = 100) -> List[DeadLetter]:
        rows = await self.db.fetch_all(
            """
            SELECT id, item_id, tenant_id, attempts, last_error, payload
            FROM ingestion_queue WHERE state = ?
            ORDER BY id ASC LIMIT ?
            """,
            (EntryState.DEAD.value, limit),
        )
        return [
            DeadLetter(
                entry_id=row["id"],
                item_id=row["item_id"],
                tenant_id=row["tenant_id"],
                attempts=row["attempts"],
                last_error=row["last_error"],
                payload=json.loads(row["payload"]),
            )
            for row in rows
        ]

    async def requeue_dead_letter(self, entry_id: int) -> bool:
        """Give a dead-lettered entry a fresh set of attempts."""
        updated = await self.db.execute(
            """
            UPDATE ingestion_queue
            SET state = ?, attempts = 0, available_at = ?, last_error = NULL
            WHERE id = ? AND state = ?
            """,
            (EntryState.PENDING.value, self._clock(), entry_id, EntryState.DEAD.value),
        )
        if updated:
            logger.info(f"Requeued dead-lettered entry {entry_id}")
        return updated == 1

    async def stats(self) -> Dict[str, int]:
        rows = await self.db.fetch_all(
            "SELECT state, COUNT(*) AS n FROM ingestion_queue GROUP BY state"
        )
        counts = {state.value: 0 for state in EntryState}
        for row in rows:
            counts[row["state"]] = row["n"]
        return counts
