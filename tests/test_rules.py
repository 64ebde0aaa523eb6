"""
Tests for insight derivation and priority scoring.
"""

import pytest

from compintel.config import ScoringConfig
from compintel.models import Entity, InsightCategory, PriorityTier, SentimentResult, Source
from compintel.rules import (
    NEGATIVE_ATTENTION,
    NEW_SERVICE,
    POSITIVE_OPPORTUNITY,
    PRICING_CHANGE,
    calculate_priority,
    derive_insights,
    score_priority,
    tier_for,
)


def texts(insights):
    return [insight.text for insight in insights]


class TestDeriveInsights:
    def test_strong_negative(self, make_raw):
        insights = derive_insights(make_raw(), SentimentResult.from_scores(-0.7, 0.6), [])
        assert texts(insights) == [NEGATIVE_ATTENTION]
        assert insights[0].category == InsightCategory.NEEDS_ATTENTION

    def test_strong_positive(self, make_raw):
        insights = derive_insights(make_raw(), SentimentResult.from_scores(0.8, 0.9), [])
        assert texts(insights) == [POSITIVE_OPPORTUNITY]

    def test_weak_sentiment_yields_nothing(self, make_raw):
        assert derive_insights(make_raw(), SentimentResult.from_scores(-0.9, 0.5), []) == []

    def test_organization_mentions(self, make_raw):
        entities = [
            Entity(type="ORGANIZATION", value="Acme", confidence=0.9),
            Entity(type="organization", value="Globex", confidence=0.71),
            Entity(type="organization", value="Initech", confidence=0.7),
            Entity(type="person", value="Bob", confidence=0.99),
        ]
        insights = derive_insights(make_raw(), SentimentResult.neutral(), entities)
        assert texts(insights) == ["competitor mention(s): Acme, Globex"]
        assert insights[0].category == InsightCategory.COMPETITOR_MENTION

    def test_kind_rules(self, make_raw):
        price = derive_insights(make_raw(kind="price-change"), SentimentResult.neutral(), [])
        service = derive_insights(make_raw(kind="new-service"), SentimentResult.neutral(), [])
        assert texts(price) == [PRICING_CHANGE]
        assert price[0].category == InsightCategory.ANALYSIS_RECOMMENDED
        assert texts(service) == [NEW_SERVICE]

    def test_rule_order_preserved(self, make_raw):
        entities = [Entity(type="organization", value="Acme", confidence=0.95)]
        insights = derive_insights(
            make_raw(kind="price-change"), SentimentResult.from_scores(-0.8, 0.9), entities
        )
        assert texts(insights) == [
            NEGATIVE_ATTENTION,
            "competitor mention(s): Acme",
            PRICING_CHANGE,
        ]

    def test_duplicate_values_not_deduplicated(self, make_raw):
        entities = [
            Entity(type="organization", value="Acme", confidence=0.9),
            Entity(type="organization", value="Acme", confidence=0.8),
        ]
        insights = derive_insights(make_raw(), SentimentResult.neutral(), entities)
        assert texts(insights) == ["competitor mention(s): Acme, Acme"]


class TestPriority:
    def test_price_change_scenario_is_critical(self, make_raw):
        item = make_raw(kind="price-change", source="review-site", content="price raised")
        sentiment = SentimentResult.from_scores(-0.7, 0.9)
        insights = derive_insights(item, sentiment, [])

        assert NEGATIVE_ATTENTION in texts(insights)
        assert PRICING_CHANGE in texts(insights)

        result = score_priority(item, sentiment, insights)
        assert result.score == 8
        assert result.tier == PriorityTier.CRITICAL

    def test_recommended_bonus_only_without_attention(self, make_raw):
        item = make_raw(kind="price-change", source="news-feed")
        sentiment = SentimentResult.neutral()
        insights = derive_insights(item, sentiment, [])
        # kind +2, analysis recommended +1
        assert score_priority(item, sentiment, insights).score == 3

    def test_trusted_source_bonus(self, make_raw):
        item = make_raw(kind="mention", source="review-site")
        assert score_priority(item, SentimentResult.neutral(), []).score == 1
        other = make_raw(kind="mention", source="social-feed")
        assert score_priority(other, SentimentResult.neutral(), []).score == 0

    def test_trusted_sources_configurable(self, make_raw):
        config = ScoringConfig(trusted_sources=[Source.WEB_SEARCH_RESULT])
        item = make_raw(kind="mention", source="web-search-result")
        assert score_priority(item, SentimentResult.neutral(), [], config).tier == PriorityTier.MEDIUM

    def test_low_tier(self, make_raw):
        item = make_raw(kind="ad-campaign", source="competitor-site")
        assert calculate_priority(item, SentimentResult.neutral(), []) == PriorityTier.LOW

    @pytest.mark.parametrize("score,tier", [
        (0, PriorityTier.LOW),
        (1, PriorityTier.MEDIUM),
        (2, PriorityTier.MEDIUM),
        (3, PriorityTier.HIGH),
        (4, PriorityTier.HIGH),
        (5, PriorityTier.CRITICAL),
        (9, PriorityTier.CRITICAL),
    ])
    def test_tier_thresholds(self, score, tier):
        assert tier_for(score) == tier

    @pytest.mark.parametrize("kind", ["review", "price-change", "new-service"])
    @pytest.mark.parametrize("polarity", [-0.8, 0.0, 0.8])
    def test_monotonic_in_magnitude(self, make_raw, kind, polarity):
        item = make_raw(kind=kind)
        previous = None
        for step in range(0, 6):
            magnitude = 0.4 + step * 0.1
            sentiment = SentimentResult.from_scores(polarity, magnitude)
            tier = calculate_priority(item, sentiment, derive_insights(item, sentiment, []))
            if previous is not None:
                assert tier.rank >= previous.rank
            previous = tier
