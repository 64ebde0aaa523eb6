"""
Core data models for the competitive-intelligence pipeline.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Source(str, Enum):
    """Where a raw signal was collected."""
    WEB_SEARCH_RESULT = "web-search-result"
    REVIEW_SITE = "review-site"
    SOCIAL_FEED = "social-feed"
    NEWS_FEED = "news-feed"
    COMPETITOR_SITE = "competitor-site"


class ItemKind(str, Enum):
    """What kind of competitor event a raw signal describes."""
    REVIEW = "review"
    MENTION = "mention"
    PRICE_CHANGE = "price-change"
    NEW_SERVICE = "new-service"
    AD_CAMPAIGN = "ad-campaign"


class SentimentLabel(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class PriorityTier(str, Enum):
    """Ordinal urgency classification: low < medium < high < critical."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]


_TIER_RANK = {
    PriorityTier.LOW: 0,
    PriorityTier.MEDIUM: 1,
    PriorityTier.HIGH: 2,
    PriorityTier.CRITICAL: 3,
}


class InsightCategory(str, Enum):
    """Structured tag attached to every insight string."""
    NEEDS_ATTENTION = "needs_attention"
    MARKETING_OPPORTUNITY = "marketing_opportunity"
    COMPETITOR_MENTION = "competitor_mention"
    ANALYSIS_RECOMMENDED = "analysis_recommended"
    NEW_SERVICE = "new_service"


class QualityFlag(str, Enum):
    """Data-quality markers recorded on a processed item."""
    SENTIMENT_UNAVAILABLE = "sentiment_unavailable"
    ENTITIES_UNAVAILABLE = "entities_unavailable"
    TIMESTAMP_FALLBACK = "timestamp_fallback"
    DEDUP_RECHECK = "dedup_recheck"


# Polarity beyond +/- this value is labelled positive / negative.
LABEL_THRESHOLD = 0.1


def label_for(score: float) -> SentimentLabel:
    if score > LABEL_THRESHOLD:
        return SentimentLabel.POSITIVE
    if score < -LABEL_THRESHOLD:
        return SentimentLabel.NEGATIVE
    return SentimentLabel.NEUTRAL


def _normalize_enum_value(value: Any) -> Any:
    # Collectors send both "price_change" and "price-change".
    if isinstance(value, str):
        return value.strip().lower().replace("_", "-")
    return value


class ItemMetadata(BaseModel):
    """Collector-supplied metadata about a raw signal."""
    model_config = ConfigDict(extra="allow")

    author: Optional[str] = None
    rating: Optional[float] = None
    timestamp: Optional[str] = None
    url: Optional[str] = None
    location: Optional[str] = None
    business_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("business_id", "businessId")
    )
    competitor_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("competitor_id", "competitorId")
    )


class RawItem(BaseModel):
    """One external signal about a competitor, as delivered by a collector."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    source: Source
    kind: ItemKind = Field(validation_alias=AliasChoices("kind", "type"))
    content: str = ""
    metadata: ItemMetadata = Field(default_factory=ItemMetadata)
    tenant_id: str = Field(validation_alias=AliasChoices("tenant_id", "tenantId"))
    raw_data: Any = Field(default=None, validation_alias=AliasChoices("raw_data", "rawData"))

    @field_validator("source", "kind", mode="before")
    @classmethod
    def _normalize_enums(cls, value: Any) -> Any:
        return _normalize_enum_value(value)

    @field_validator("tenant_id")
    @classmethod
    def _require_tenant(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("tenant_id must be a non-empty string")
        return value

    @field_validator("content", mode="before")
    @classmethod
    def _content_not_null(cls, value: Any) -> Any:
        return "" if value is None else value


class SentimentResult(BaseModel):
    """Polarity in [-1, 1], magnitude in [0, 1] and the derived label."""
    score: float = Field(default=0.0, ge=-1.0, le=1.0)
    magnitude: float = Field(default=0.0, ge=0.0, le=1.0)
    label: SentimentLabel = SentimentLabel.NEUTRAL

    @classmethod
    def from_scores(cls, score: float, magnitude: float) -> "SentimentResult":
        """Clamp provider scores into range and derive the label."""
        score = max(-1.0, min(1.0, float(score)))
        magnitude = max(0.0, min(1.0, float(magnitude)))
        return cls(score=score, magnitude=magnitude, label=label_for(score))

    @classmethod
    def neutral(cls) -> "SentimentResult":
        return cls(score=0.0, magnitude=0.0, label=SentimentLabel.NEUTRAL)


class Entity(BaseModel):
    type: str
    value: str
    confidence: float = Field(ge=0.0, le=1.0)


class Insight(BaseModel):
    text: str
    category: InsightCategory


class ProcessedItem(RawItem):
    """A raw item enriched with sentiment, entities, insights and priority."""
    sentiment: SentimentResult = Field(default_factory=SentimentResult.neutral)
    entities: List[Entity] = Field(default_factory=list)
    normalized_timestamp: datetime
    fingerprint: str
    insights: List[str] = Field(default_factory=list)
    insight_tags: List[InsightCategory] = Field(default_factory=list)
    priority: PriorityTier = PriorityTier.LOW
    priority_score: int = 0
    quality_flags: List[QualityFlag] = Field(default_factory=list)
    processed_at: datetime = Field(default_factory=utc_now)

    @property
    def degraded(self) -> bool:
        return bool(self.quality_flags)
