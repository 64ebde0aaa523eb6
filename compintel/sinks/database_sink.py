"""
Tenant-isolated store for processed items.
"""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from ..errors import PersistenceError, StoreUnavailableError, TenantScopeError
from ..infra.db import Database
from ..models import PriorityTier, ProcessedItem


logger = logging.getLogger(__name__)


STORE_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS processed_items (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        tenant_id TEXT NOT NULL,
        fingerprint TEXT NOT NULL,
        item_id TEXT NOT NULL,
        source TEXT NOT NULL,
        kind TEXT NOT NULL,
        content TEXT NOT NULL,
        metadata TEXT NOT NULL,
        raw_data TEXT,
        sentiment TEXT NOT NULL,
        entities TEXT NOT NULL,
        normalized_timestamp TEXT NOT NULL,
        insights TEXT NOT NULL,
        insight_tags TEXT NOT NULL,
        priority TEXT NOT NULL,
        priority_rank INTEGER NOT NULL,
        priority_score INTEGER NOT NULL,
        quality_flags TEXT NOT NULL,
        processed_at TEXT NOT NULL,
        UNIQUE (tenant_id, fingerprint)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_processed_items_recent
    ON processed_items (tenant_id, processed_at)
    """,
)

_JSON_COLUMNS = (
    "metadata", "raw_data", "sentiment", "entities", "insights", "insight_tags", "quality_flags",
)


class InsertResult(str, Enum):
    SUCCESS = "success"
    CONFLICT = "conflict"


def _utc_text(value: datetime) -> str:
    """Fixed-width UTC timestamp, so text order matches time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _require_tenant(tenant_id: Optional[str]) -> str:
    if not tenant_id or not tenant_id.strip():
        raise TenantScopeError("Processed store operations require a tenant_id")
    return tenant_id.strip()


class ProcessedStore:
    """Persists processed items keyed by (tenant_id, fingerprint).

    Every read and write is scoped to a single tenant. The unique key makes
    ``insert`` a conditional write, so two workers racing on the same event
    store it exactly once.
    """

    name = "ProcessedStore"

    def __init__(self, db: Database):
        self.db = db

    async def open(self) -> None:
        await self.db.ensure_schema(STORE_SCHEMA)

    async def close(self) -> None:
        await self.db.close()

    async def exists(self, tenant_id: str, fingerprint: str) -> bool:
        tenant_id = _require_tenant(tenant_id)
        try:
            row = await self.db.fetch_one(
                "SELECT 1 FROM processed_items WHERE tenant_id = ? AND fingerprint = ?",
                (tenant_id, fingerprint),
            )
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Duplicate lookup failed: {e}") from e
        return row is not None

    async def insert(self, item: ProcessedItem) -> InsertResult:
        """Write ``item`` unless the tenant already holds its fingerprint."""
        tenant_id = _require_tenant(item.tenant_id)
        try:
            written = await self.db.insert_ignore("processed_items", self._to_row(item, tenant_id))
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to store item {item.id}: {e}") from e

        if not written:
            logger.info(f"Fingerprint {item.fingerprint[:12]} already stored for tenant {tenant_id}")
            return InsertResult.CONFLICT
        return InsertResult.SUCCESS

    async def get(self, tenant_id: str, fingerprint: str) -> Optional[ProcessedItem]:
        tenant_id = _require_tenant(tenant_id)
        row = await self.db.fetch_one(
            "SELECT * FROM processed_items WHERE tenant_id = ? AND fingerprint = ?",
            (tenant_id, fingerprint),
        )
        return self._from_row(row) if row else None

    async def list_recent(
        self,
        tenant_id: str,
        limit: int = 50,
        min_priority: PriorityTier = PriorityTier.LOW,
    ) -> List[ProcessedItem]:
        tenant_id = _require_tenant(tenant_id)
        rows = await self.db.fetch_all(
            """
            SELECT * FROM processed_items
            WHERE tenant_id = ? AND priority_rank >= ?
            ORDER BY processed_at DESC, id DESC
            LIMIT ?
            """,
            (tenant_id, min_priority.rank, limit),
        )
        return [self._from_row(row) for row in rows]

    async def count(self, tenant_id: str) -> int:
        tenant_id = _require_tenant(tenant_id)
        row = await self.db.fetch_one(
            "SELECT COUNT(*) AS n FROM processed_items WHERE tenant_id = ?", (tenant_id,)
        )
        return row["n"]

    @staticmethod
    def _to_row(item: ProcessedItem, tenant_id: str) -> Dict[str, Any]:
        data = item.model_dump(mode="json")
        return {
            "tenant_id": tenant_id,
            "fingerprint": item.fingerprint,
            "item_id": item.id,
            "source": data["source"],
            "kind": data["kind"],
            "content": item.content,
            "metadata": json.dumps(data["metadata"]),
            "raw_data": json.dumps(data["raw_data"]),
            "sentiment": json.dumps(data["sentiment"]),
            "entities": json.dumps(data["entities"]),
            "normalized_timestamp": _utc_text(item.normalized_timestamp),
            "insights": json.dumps(data["insights"]),
            "insight_tags": json.dumps(data["insight_tags"]),
            "priority": data["priority"],
            "priority_rank": item.priority.rank,
            "priority_score": item.priority_score,
            "quality_flags": json.dumps(data["quality_flags"]),
            "processed_at": _utc_text(item.processed_at),
        }

    @staticmethod
    def _from_row(row) -> ProcessedItem:
        data = {key: row[key] for key in row.keys()}
        for column in _JSON_COLUMNS:
            data[column] = json.loads(data[column]) if data[column] is not None else None
        return ProcessedItem.model_validate(
            {
                "id": data["item_id"],
                "source": data["source"],
                "kind": data["kind"],
                "content": data["content"],
                "metadata": data["metadata"],
                "tenant_id": data["tenant_id"],
                "raw_data": data["raw_data"],
                "sentiment": data["sentiment"],
                "entities": data["entities"],
                "normalized_timestamp": data["normalized_timestamp"],
                "fingerprint": data["fingerprint"],
                "insights": data["insights"],
                "insight_tags": data["insight_tags"],
                "priority": data["priority"],
                "priority_score": data["priority_score"],
                "quality_flags": data["quality_flags"],
                "processed_at": data["processed_at"],
            }
        )
