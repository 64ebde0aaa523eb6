"""
Tests for the raw/processed item models.
"""

import pytest
from pydantic import ValidationError

from compintel.models import (
    ItemKind,
    PriorityTier,
    RawItem,
    SentimentLabel,
    SentimentResult,
    Source,
    label_for,
)


class TestRawItem:
    def test_missing_tenant_is_rejected(self):
        with pytest.raises(ValidationError):
            RawItem.model_validate({"source": "news-feed", "kind": "mention", "content": "x"})

    def test_blank_tenant_is_rejected(self):
        with pytest.raises(ValidationError, match="tenant_id"):
            RawItem(source="news-feed", kind="mention", content="x", tenant_id="   ")

    def test_underscore_enum_values_accepted(self):
        item = RawItem.model_validate({
            "source": "competitor_site",
            "type": "price_change",
            "tenantId": "t1",
            "metadata": {"businessId": "b1", "timestamp": "2026-01-01"},
        })
        assert item.source == Source.COMPETITOR_SITE
        assert item.kind == ItemKind.PRICE_CHANGE
        assert item.metadata.business_id == "b1"

    def test_unknown_source_rejected(self):
        with pytest.raises(ValidationError):
            RawItem(source="carrier-pigeon", kind="review", tenant_id="t1")

    def test_defaults(self):
        item = RawItem(source="social-feed", kind="mention", tenant_id="t1")
        assert item.content == ""
        assert item.id
        assert item.metadata.timestamp is None

    def test_extra_metadata_preserved(self):
        item = RawItem.model_validate({
            "source": "review-site", "kind": "review", "tenant_id": "t1",
            "metadata": {"platform": "yelp"},
        })
        assert item.model_dump()["metadata"]["platform"] == "yelp"


class TestSentiment:
    @pytest.mark.parametrize("score,label", [
        (0.5, SentimentLabel.POSITIVE),
        (0.11, SentimentLabel.POSITIVE),
        (0.1, SentimentLabel.NEUTRAL),
        (0.0, SentimentLabel.NEUTRAL),
        (-0.1, SentimentLabel.NEUTRAL),
        (-0.11, SentimentLabel.NEGATIVE),
    ])
    def test_label_thresholds(self, score, label):
        assert label_for(score) == label

    def test_from_scores_clamps(self):
        result = SentimentResult.from_scores(-3.0, 4.2)
        assert result.score == -1.0
        assert result.magnitude == 1.0
        assert result.label == SentimentLabel.NEGATIVE

    def test_neutral(self):
        assert SentimentResult.neutral().model_dump() == {
            "score": 0.0, "magnitude": 0.0, "label": SentimentLabel.NEUTRAL,
        }


def test_priority_tier_ordering():
    ranks = [tier.rank for tier in (
        PriorityTier.LOW, PriorityTier.MEDIUM, PriorityTier.HIGH, PriorityTier.CRITICAL,
    )]
    assert ranks == sorted(ranks)
    assert len(set(ranks)) == 4
