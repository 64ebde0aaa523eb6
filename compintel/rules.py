"""
Insight rules and priority scoring.

Both are pure functions of the item and its enrichment. The scorer reads the
structured insight categories, never the insight text.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from .config import ScoringConfig
from .models import (
    Entity,
    Insight,
    InsightCategory,
    ItemKind,
    PriorityTier,
    RawItem,
    SentimentLabel,
    SentimentResult,
)


STRONG_SENTIMENT = 0.5
VERY_STRONG_SENTIMENT = 0.8
ORGANIZATION_CONFIDENCE = 0.7

NEGATIVE_ATTENTION = "high negative sentiment, needs attention"
POSITIVE_OPPORTUNITY = "strong positive sentiment, marketing opportunity"
PRICING_CHANGE = "pricing change detected"
NEW_SERVICE = "new competitor service detected"


def derive_insights(
    item: RawItem, sentiment: SentimentResult, entities: Sequence[Entity]
) -> List[Insight]:
    """Evaluate the insight rules in fixed order; every rule appends independently."""
    insights: List[Insight] = []

    if sentiment.label == SentimentLabel.NEGATIVE and sentiment.magnitude > STRONG_SENTIMENT:
        insights.append(Insight(text=NEGATIVE_ATTENTION, category=InsightCategory.NEEDS_ATTENTION))

    if sentiment.label == SentimentLabel.POSITIVE and sentiment.magnitude > STRONG_SENTIMENT:
        insights.append(
            Insight(text=POSITIVE_OPPORTUNITY, category=InsightCategory.MARKETING_OPPORTUNITY)
        )

    organizations = [
        e.value for e in entities
        if e.type.lower() == "organization" and e.confidence > ORGANIZATION_CONFIDENCE
    ]
    if organizations:
        insights.append(
            Insight(
                text=f"competitor mention(s): {', '.join(organizations)}",
                category=InsightCategory.COMPETITOR_MENTION,
            )
        )

    if item.kind == ItemKind.PRICE_CHANGE:
        insights.append(Insight(text=PRICING_CHANGE, category=InsightCategory.ANALYSIS_RECOMMENDED))

    if item.kind == ItemKind.NEW_SERVICE:
        insights.append(Insight(text=NEW_SERVICE, category=InsightCategory.NEW_SERVICE))

    return insights


@dataclass(frozen=True)
class PriorityScore:
    score: int
    tier: PriorityTier


def tier_for(score: int, config: Optional[ScoringConfig] = None) -> PriorityTier:
    config = config or ScoringConfig()
    if score >= config.critical_at:
        return PriorityTier.CRITICAL
    if score >= config.high_at:
        return PriorityTier.HIGH
    if score >= config.medium_at:
        return PriorityTier.MEDIUM
    return PriorityTier.LOW


def score_priority(
    item: RawItem,
    sentiment: SentimentResult,
    insights: Sequence[Insight],
    config: Optional[ScoringConfig] = None,
) -> PriorityScore:
    """Additive score over magnitude, kind, insight categories and source trust."""
    config = config or ScoringConfig()
    score = 0

    if sentiment.magnitude > VERY_STRONG_SENTIMENT:
        score += 2
    elif sentiment.magnitude > STRONG_SENTIMENT:
        score += 1

    if item.kind == ItemKind.PRICE_CHANGE:
        score += 2
    elif item.kind == ItemKind.NEW_SERVICE:
        score += 1

    categories = {insight.category for insight in insights}
    if InsightCategory.NEEDS_ATTENTION in categories:
        score += 3
    elif InsightCategory.ANALYSIS_RECOMMENDED in categories:
        score += 1

    if item.source in config.trusted_sources:
        score += 1

    return PriorityScore(score=score, tier=tier_for(score, config))


def calculate_priority(
    item: RawItem,
    sentiment: SentimentResult,
    insights: Sequence[Insight],
    config: Optional[ScoringConfig] = None,
) -> PriorityTier:
    return score_priority(item, sentiment, insights, config).tier
