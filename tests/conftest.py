"""
Pytest configuration and fixtures.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional

import pytest
import pytest_asyncio

from compintel.errors import AdapterError
from compintel.infra.db import Database
from compintel.interfaces import EntityExtractor, Notifier, SentimentAnalyzer
from compintel.models import Entity, ProcessedItem, RawItem, SentimentResult
from compintel.pipeline_orchestrator import PipelineOrchestrator
from compintel.queue import IngestionQueue
from compintel.sinks.database_sink import ProcessedStore


class StubSentiment(SentimentAnalyzer):
    """Returns a fixed result, or raises when ``fail`` is set."""

    name = "StubSentiment"

    def __init__(
        self, score: float = 0.0, magnitude: float = 0.0, fail: bool = False, delay: float = 0.0
    ):
        self.result = SentimentResult.from_scores(score, magnitude)
        self.delay = delay
        self.fail = fail
        self.calls: List[str] = []
        self.closed = False

    async def analyze(self, text: str) -> SentimentResult:
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise AdapterError("sentiment service timed out")
        return self.result

    async def close(self) -> None:
        self.closed = True


class StubEntities(EntityExtractor):
    name = "StubEntities"

    def __init__(self, entities: Optional[List[Entity]] = None, fail: bool = False):
        self.entities = entities or []
        self.fail = fail
        self.closed = False

    async def extract(self, text: str) -> List[Entity]:
        if self.fail:
            raise AdapterError("entity service returned 503")
        return list(self.entities)

    async def close(self) -> None:
        self.closed = True


class RecordingNotifier(Notifier):
    name = "RecordingNotifier"

    def __init__(self, fail: bool = False):
        self.items: List[ProcessedItem] = []
        self.fail = fail
        self.closed = False

    async def notify(self, item: ProcessedItem) -> None:
        if self.fail:
            raise RuntimeError("webhook unreachable")
        self.items.append(item)

    async def close(self) -> None:
        self.closed = True


class FakeClock:
    """Manually advanced clock for queue backoff tests."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def make_raw() -> Callable[..., RawItem]:
    """Factory for raw items with sensible defaults."""

    def _make(**overrides: Any) -> RawItem:
        data: Dict[str, Any] = {
            "id": "item-1",
            "source": "review-site",
            "kind": "review",
            "content": "Service was slow and the staff were rude",
            "metadata": {
                "author": "jane",
                "rating": 2,
                "timestamp": "2026-03-01T10:15:00Z",
                "business_id": "biz-42",
            },
            "tenant_id": "tenant-a",
            "raw_data": {"origin": "crawler"},
        }
        data.update(overrides)
        return RawItem.model_validate(data)

    return _make


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "compintel.db")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def db(db_path):
    database = Database(db_path)
    await database.connect()
    yield database
    await database.close()


@pytest_asyncio.fixture
async def store(db):
    processed_store = ProcessedStore(db)
    await processed_store.open()
    return processed_store


@pytest_asyncio.fixture
async def queue(db, clock):
    ingestion_queue = IngestionQueue(db, base_delay=2.0, clock=clock)
    await ingestion_queue.open()
    return ingestion_queue


@pytest.fixture
def sentiment() -> StubSentiment:
    return StubSentiment(score=-0.6, magnitude=0.9)


@pytest.fixture
def entities() -> StubEntities:
    return StubEntities([Entity(type="organization", value="Acme Dental", confidence=0.85)])


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture
async def orchestrator(db_path, sentiment, entities, notifier):
    db = Database(db_path)
    pipeline = PipelineOrchestrator(
        IngestionQueue(db, base_delay=0.0),
        ProcessedStore(db),
        sentiment,
        entities,
        [notifier],
        workers=2,
        poll_interval=0.01,
        adapter_timeout=1.0,
    )
    await pipeline.open()
    yield pipeline
    await pipeline.drain_and_stop()
