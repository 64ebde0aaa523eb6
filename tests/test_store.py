"""
Tests for the tenant-isolated processed store.
"""

import sqlite3
from datetime import datetime, timezone

import pytest

from compintel.errors import PersistenceError, StoreUnavailableError, TenantScopeError
from compintel.fingerprint import fingerprint
from compintel.models import PriorityTier, ProcessedItem, SentimentResult
from compintel.sinks.database_sink import InsertResult


@pytest.fixture
def make_processed(make_raw):
    def _make(priority=PriorityTier.MEDIUM, processed_at=None, **overrides):
        raw = make_raw(**overrides)
        return ProcessedItem(
            **raw.model_dump(),
            sentiment=SentimentResult.from_scores(-0.4, 0.6),
            normalized_timestamp=datetime(2026, 3, 1, 10, 15, tzinfo=timezone.utc),
            fingerprint=fingerprint(raw),
            insights=["pricing change detected"],
            insight_tags=["analysis_recommended"],
            priority=priority,
            priority_score=2,
            processed_at=processed_at or datetime.now(timezone.utc),
        )
    return _make


class TestTenantIsolation:
    async def test_insert_then_exists(self, store, make_processed):
        item = make_processed()
        assert await store.insert(item) == InsertResult.SUCCESS
        assert await store.exists("tenant-a", item.fingerprint)
        assert not await store.exists("tenant-b", item.fingerprint)

    async def test_same_fingerprint_other_tenant_is_stored(self, store, make_processed):
        a = make_processed(tenant_id="tenant-a")
        b = make_processed(tenant_id="tenant-b")
        assert a.fingerprint == b.fingerprint

        assert await store.insert(a) == InsertResult.SUCCESS
        assert await store.insert(b) == InsertResult.SUCCESS
        assert await store.count("tenant-a") == 1
        assert await store.count("tenant-b") == 1

    async def test_conflict_on_same_tenant(self, store, make_processed):
        assert await store.insert(make_processed(id="first")) == InsertResult.SUCCESS
        assert await store.insert(make_processed(id="second")) == InsertResult.CONFLICT
        assert await store.count("tenant-a") == 1

    @pytest.mark.parametrize("tenant", ["", "   ", None])
    async def test_tenant_required(self, store, tenant):
        with pytest.raises(TenantScopeError):
            await store.exists(tenant, "abc")
        with pytest.raises(TenantScopeError):
            await store.count(tenant)


class TestReads:
    async def test_get_round_trip(self, store, make_processed):
        item = make_processed()
        await store.insert(item)

        loaded = await store.get("tenant-a", item.fingerprint)
        assert loaded.id == item.id
        assert loaded.sentiment == item.sentiment
        assert loaded.insights == item.insights
        assert loaded.raw_data == {"origin": "crawler"}
        assert loaded.normalized_timestamp == item.normalized_timestamp
        assert await store.get("tenant-b", item.fingerprint) is None

    async def test_list_recent_filters_priority(self, store, make_processed):
        await store.insert(make_processed(id="low", content="a", priority=PriorityTier.LOW))
        await store.insert(make_processed(id="crit", content="b", priority=PriorityTier.CRITICAL))
        await store.insert(make_processed(id="other", content="c", tenant_id="tenant-b"))

        urgent = await store.list_recent("tenant-a", min_priority=PriorityTier.HIGH)
        assert [item.id for item in urgent] == ["crit"]
        assert len(await store.list_recent("tenant-a")) == 2

    async def test_list_recent_orders_by_time_across_whole_seconds(self, store, make_processed):
        whole = datetime(2026, 3, 1, 10, 0, 0, tzinfo=timezone.utc)
        later = datetime(2026, 3, 1, 10, 0, 0, 123000, tzinfo=timezone.utc)
        # Inserted newest-first so id order disagrees with time order
        await store.insert(make_processed(id="later", content="b", processed_at=later))
        await store.insert(make_processed(id="whole", content="a", processed_at=whole))

        recent = await store.list_recent("tenant-a")
        assert [item.id for item in recent] == ["later", "whole"]
        assert recent[1].processed_at == whole


class TestFailures:
    async def test_read_failure_maps_to_unavailable(self, store, monkeypatch):
        async def broken(*args, **kwargs):
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(store.db, "fetch_one", broken)
        with pytest.raises(StoreUnavailableError):
            await store.exists("tenant-a", "abc")

    async def test_write_failure_maps_to_persistence_error(self, store, make_processed, monkeypatch):
        async def broken(*args, **kwargs):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(store.db, "insert_ignore", broken)
        with pytest.raises(PersistenceError):
            await store.insert(make_processed())
