"""
Pipeline orchestrator: dedup -> enrich -> score -> persist -> notify.

Each queue entry is processed end-to-end by exactly one worker. Delivery is
at-least-once; the fingerprint check plus the store's conditional insert make
reprocessing idempotent.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Tuple, Union

from pydantic import ValidationError

from . import plugin_loader
from .config import PipelineConfig, ScoringConfig
from .errors import ItemValidationError, PersistenceError, StoreUnavailableError
from .fingerprint import fingerprint
from .infra.db import Database
from .interfaces import EntityExtractor, Notifier, SentimentAnalyzer
from .models import Entity, ProcessedItem, QualityFlag, RawItem, SentimentResult
from .queue import FailureOutcome, IngestionQueue, QueueEntry
from .rules import derive_insights, score_priority
from .sinks.database_sink import InsertResult, ProcessedStore

logger = logging.getLogger(__name__)


class ItemState(str, Enum):
    DEQUEUED = "dequeued"
    DEDUPLICATING = "deduplicating"
    ENRICHING = "enriching"
    SCORING = "scoring"
    PERSISTING = "persisting"
    DONE = "done"
    DUPLICATE_DISCARDED = "duplicate_discarded"
    RETRY_SCHEDULED = "retry_scheduled"
    DEAD_LETTERED = "dead_lettered"


@dataclass
class ProcessingResult:
    item_id: str
    tenant_id: str
    state: ItemState
    fingerprint: str
    item: Optional[ProcessedItem] = None
    error: Optional[str] = None


@dataclass
class PipelineStats:
    """Operational counters since start-up."""
    processed: int = 0
    duplicates: int = 0
    degraded: int = 0
    timestamp_fallbacks: int = 0
    retries: int = 0
    dead_lettered: int = 0
    notifications_sent: int = 0
    notifications_failed: int = 0

    def snapshot(self) -> Dict[str, int]:
        return asdict(self)


def normalize_timestamp(value: Optional[str]) -> Tuple[datetime, bool]:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Returns ``(timestamp, ok)``; on a missing or unparseable value the
    current time is returned with ``ok`` False.
    """
    if value:
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            pass
        else:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc), True
    return datetime.now(timezone.utc), False


class PipelineOrchestrator:
    """Consumes the ingestion queue with a pool of asyncio workers."""

    def __init__(
        self,
        queue: IngestionQueue,
        store: ProcessedStore,
        sentiment: SentimentAnalyzer,
        entities: EntityExtractor,
        notifiers: Sequence[Notifier] = (),
        *,
        scoring: Optional[ScoringConfig] = None,
        workers: int = 4,
        poll_interval: float = 0.5,
        adapter_timeout: float = 15.0,
    ):
        self.queue = queue
        self.store = store
        self.sentiment = sentiment
        self.entities = entities
        self.notifiers = list(notifiers)
        self.scoring = scoring or ScoringConfig()
        self.workers = workers
        self.poll_interval = poll_interval
        self.adapter_timeout = adapter_timeout
        self.stats = PipelineStats()

        self._stopping = asyncio.Event()
        self._worker_tasks: List[asyncio.Task] = []
        self._notify_tasks: Set[asyncio.Task] = set()
        self._opened = False
        self._closed = False

    # ---------------------------------------------- #
    # Lifecycle
    async def open(self) -> None:
        if self._opened:
            return
        await self.store.open()
        await self.queue.open()
        self._opened = True

    async def start(self) -> None:
        """Open storage and launch the worker pool."""
        await self.open()
        if self._worker_tasks:
            return
        self._stopping.clear()
        for n in range(self.workers):
            task = asyncio.create_task(self._worker(n), name=f"compintel-worker-{n}")
            self._worker_tasks.append(task)
        logger.info(f"Pipeline started with {self.workers} workers")

    async def drain_and_stop(self) -> None:
        """Stop claiming work, finish in-flight items, then release resources."""
        if self._closed:
            return
        logger.info("Draining pipeline...")
        self._stopping.set()

        if self._worker_tasks:
            await asyncio.gather(*self._worker_tasks, return_exceptions=True)
            self._worker_tasks.clear()

        await self.wait_for_notifications()

        for component in (*self.notifiers, self.sentiment, self.entities):
            try:
                await component.close()
            except Exception as e:
                logger.error(f"Failed to close {component.name}: {e}")

        await self.queue.close()
        await self.store.close()
        self._closed = True
        logger.info(f"Pipeline stopped: {self.stats.snapshot()}")

    async def wait_for_notifications(self) -> None:
        """Wait for fire-and-forget notifier calls still running."""
        while self._notify_tasks:
            await asyncio.gather(*list(self._notify_tasks), return_exceptions=True)

    # ---------------------------------------------- #
    # Ingress
    async def enqueue(self, item: Union[RawItem, Mapping[str, Any]]) -> int:
        """Validate and enqueue one raw item. Returns the queue entry id.

        Raises:
            ItemValidationError: missing tenant identity or malformed item.
        """
        if not isinstance(item, RawItem):
            try:
                item = RawItem.model_validate(item)
            except ValidationError as e:
                raise ItemValidationError(str(e)) from e
        await self.open()
        return await self.queue.put(item)

    # ---------------------------------------------- #
    # Workers
    async def _worker(self, worker_id: int) -> None:
        while not self._stopping.is_set():
            try:
                entry = await self.queue.claim()
            except Exception as e:
                logger.error(f"Worker {worker_id} failed to claim from queue: {e}")
                entry = None

            if entry is None:
                try:
                    await asyncio.wait_for(self._stopping.wait(), timeout=self.poll_interval)
                except asyncio.TimeoutError:
                    pass
                continue

            try:
                await self.handle_entry(entry)
            except Exception as e:
                # Entry stays in flight until the next open() releases it
                logger.error(
                    f"Worker {worker_id} failed to settle entry {entry.entry_id} "
                    f"(item {entry.item.id}): {e}",
                    exc_info=True,
                )

    async def run_until_empty(self) -> None:
        """Process entries in this task until nothing is pending, retries included."""
        await self.open()
        while True:
            entry = await self.queue.claim()
            if entry is not None:
                await self.handle_entry(entry)
                continue
            if await self.queue.pending_count() == 0:
                break
            await asyncio.sleep(self.poll_interval)
        await self.wait_for_notifications()

    async def handle_entry(self, entry: QueueEntry) -> ProcessingResult:
        """Process one claimed entry and settle it on the queue."""
        try:
            result = await self.process_item(entry.item)
        except Exception as e:
            if not isinstance(e, PersistenceError):
                logger.error(f"Unexpected error processing item {entry.item.id}", exc_info=True)
            outcome = await self.queue.fail(entry, f"{type(e).__name__}: {e}")
            if outcome == FailureOutcome.DEAD_LETTERED:
                self.stats.dead_lettered += 1
                state = ItemState.DEAD_LETTERED
            else:
                self.stats.retries += 1
                state = ItemState.RETRY_SCHEDULED
            return ProcessingResult(
                item_id=entry.item.id,
                tenant_id=entry.item.tenant_id,
                state=state,
                fingerprint=fingerprint(entry.item),
                error=str(e),
            )

        await self.queue.ack(entry)
        return result

    # ---------------------------------------------- #
    # Per-item state machine
    async def process_item(self, raw: RawItem) -> ProcessingResult:
        """Run one item through the pipeline.

        Returns a DONE or DUPLICATE_DISCARDED result.

        Raises:
            PersistenceError: the store write failed; the caller decides on retry.
        """
        logger.debug(f"Item {raw.id}: {ItemState.DEQUEUED.value} -> {ItemState.DEDUPLICATING.value}")
        digest = fingerprint(raw)
        flags: List[QualityFlag] = []

        try:
            duplicate = await self.store.exists(raw.tenant_id, digest)
        except StoreUnavailableError as e:
            # Fail closed: keep the item, let the conditional insert re-check.
            logger.warning(f"Duplicate check unavailable for item {raw.id}, continuing: {e}")
            duplicate = False
            flags.append(QualityFlag.DEDUP_RECHECK)

        if duplicate:
            return self._duplicate(raw, digest)

        logger.debug(f"Item {raw.id}: {ItemState.ENRICHING.value}")
        normalized_ts, ts_ok = normalize_timestamp(raw.metadata.timestamp)
        if not ts_ok:
            logger.warning(
                f"Data quality: item {raw.id} has invalid timestamp "
                f"{raw.metadata.timestamp!r}, using current time"
            )
            flags.append(QualityFlag.TIMESTAMP_FALLBACK)
            self.stats.timestamp_fallbacks += 1

        (sentiment, sentiment_ok), (entities, entities_ok) = await asyncio.gather(
            self._analyze_sentiment(raw), self._extract_entities(raw)
        )
        if not sentiment_ok:
            flags.append(QualityFlag.SENTIMENT_UNAVAILABLE)
        if not entities_ok:
            flags.append(QualityFlag.ENTITIES_UNAVAILABLE)

        logger.debug(f"Item {raw.id}: {ItemState.SCORING.value}")
        insights = derive_insights(raw, sentiment, entities)
        priority = score_priority(raw, sentiment, insights, self.scoring)

        processed = ProcessedItem(
            **raw.model_dump(),
            sentiment=sentiment,
            entities=entities,
            normalized_timestamp=normalized_ts,
            fingerprint=digest,
            insights=[insight.text for insight in insights],
            insight_tags=[insight.category for insight in insights],
            priority=priority.tier,
            priority_score=priority.score,
            quality_flags=flags,
        )

        logger.debug(f"Item {raw.id}: {ItemState.PERSISTING.value}")
        if await self.store.insert(processed) == InsertResult.CONFLICT:
            return self._duplicate(raw, digest)

        self.stats.processed += 1
        if processed.degraded:
            self.stats.degraded += 1
        logger.info(
            f"Processed item {raw.id} for tenant {raw.tenant_id}: "
            f"priority={processed.priority.value} score={processed.priority_score}"
        )

        if processed.priority in self.scoring.notify_tiers:
            self._schedule_notifications(processed)

        return ProcessingResult(
            item_id=raw.id,
            tenant_id=raw.tenant_id,
            state=ItemState.DONE,
            fingerprint=digest,
            item=processed,
        )

    def _duplicate(self, raw: RawItem, digest: str) -> ProcessingResult:
        self.stats.duplicates += 1
        logger.info(f"Duplicate item {raw.id} for tenant {raw.tenant_id}, discarding")
        return ProcessingResult(
            item_id=raw.id,
            tenant_id=raw.tenant_id,
            state=ItemState.DUPLICATE_DISCARDED,
            fingerprint=digest,
        )

    # ---------------------------------------------- #
    # Enrichment (fail-soft)
    async def _analyze_sentiment(self, raw: RawItem) -> Tuple[SentimentResult, bool]:
        if not raw.content.strip():
            return SentimentResult.neutral(), True
        try:
            result = await asyncio.wait_for(
                self.sentiment.analyze(raw.content), timeout=self.adapter_timeout
            )
            return SentimentResult.model_validate(result), True
        except Exception as e:
            logger.warning(
                f"Sentiment adapter {self.sentiment.name} failed for item {raw.id}, "
                f"using neutral: {e!r}"
            )
            return SentimentResult.neutral(), False

    async def _extract_entities(self, raw: RawItem) -> Tuple[List[Entity], bool]:
        if not raw.content.strip():
            return [], True
        try:
            result = await asyncio.wait_for(
                self.entities.extract(raw.content), timeout=self.adapter_timeout
            )
            return [Entity.model_validate(entity) for entity in result], True
        except Exception as e:
            logger.warning(
                f"Entity adapter {self.entities.name} failed for item {raw.id}, "
                f"using no entities: {e!r}"
            )
            return [], False

    # ---------------------------------------------- #
    # Notifications (fire-and-forget)
    def _schedule_notifications(self, item: ProcessedItem) -> None:
        for notifier in self.notifiers:
            task = asyncio.create_task(self._notify(notifier, item))
            self._notify_tasks.add(task)
            task.add_done_callback(self._notify_tasks.discard)

    async def _notify(self, notifier: Notifier, item: ProcessedItem) -> None:
        try:
            await notifier.notify(item)
            self.stats.notifications_sent += 1
        except Exception as e:
            self.stats.notifications_failed += 1
            logger.error(f"Notifier {notifier.name} failed for item {item.id}: {e}")


def create_orchestrator(config: PipelineConfig) -> PipelineOrchestrator:
    """Wire the pipeline from configuration; nothing is opened yet."""
    db = Database(config.database)
    queue = IngestionQueue(
        db,
        max_attempts=config.queue.max_attempts,
        base_delay=config.queue.base_delay_s,
        source_priorities=config.queue.source_priorities,
    )
    store = ProcessedStore(db)

    sentiment = plugin_loader.build(config.adapters.sentiment, SentimentAnalyzer)
    entities = plugin_loader.build(config.adapters.entities, EntityExtractor)
    notifiers = [plugin_loader.build(spec, Notifier) for spec in config.notifiers]
    logger.info(
        f"Adapters: sentiment={sentiment.name} entities={entities.name} "
        f"notifiers={[n.name for n in notifiers]}"
    )

    return PipelineOrchestrator(
        queue,
        store,
        sentiment,
        entities,
        notifiers,
        scoring=config.scoring,
        workers=config.workers,
        poll_interval=config.queue.poll_interval_s,
        adapter_timeout=config.adapters.timeout_s,
    )
