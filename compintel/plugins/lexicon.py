"""
Offline sentiment and entity adapters.

Deterministic and dependency-free, suitable as the default when no managed
language API is configured.
"""

import re
from typing import Iterable, List, Optional

from ..interfaces import EntityExtractor, SentimentAnalyzer
from ..models import Entity, SentimentResult


POSITIVE_WORDS = {
    "amazing", "best", "excellent", "fantastic", "friendly", "good", "great",
    "happy", "love", "loved", "perfect", "recommend", "wonderful",
}

NEGATIVE_WORDS = {
    "awful", "bad", "broken", "disappointed", "expensive", "hate", "horrible",
    "overpriced", "poor", "rude", "slow", "terrible", "worst",
}

_TOKEN = re.compile(r"[a-z']+")

# Capitalised word runs ending in a company suffix, e.g. "Acme Dental LLC".
_COMPANY = re.compile(
    r"\b((?:[A-Z][\w&'-]*\s+){0,3}[A-Z][\w&'-]*\s+(?:Inc|LLC|Ltd|Corp|Co|GmbH|S\.?L|S\.?A)\b\.?)"
)
_PRICE = re.compile(r"(?:[$€£]\s?\d+(?:[.,]\d{1,2})?|\d+(?:[.,]\d{1,2})?\s?(?:USD|EUR|€))")


class LexiconSentimentAnalyzer(SentimentAnalyzer):
    """Word-list polarity.

    score = (pos - neg) / (pos + neg); magnitude grows with the number of
    opinion words and saturates at ``saturation`` hits.
    """

    name = "LexiconSentimentAnalyzer"

    def __init__(
        self,
        positive_words: Optional[Iterable[str]] = None,
        negative_words: Optional[Iterable[str]] = None,
        saturation: int = 3,
    ):
        self.positive_words = set(w.lower() for w in (positive_words or POSITIVE_WORDS))
        self.negative_words = set(w.lower() for w in (negative_words or NEGATIVE_WORDS))
        self.saturation = max(1, saturation)

    async def analyze(self, text: str) -> SentimentResult:
        tokens = _TOKEN.findall(text.lower())
        pos = sum(1 for t in tokens if t in self.positive_words)
        neg = sum(1 for t in tokens if t in self.negative_words)
        hits = pos + neg
        if not hits:
            return SentimentResult.neutral()
        return SentimentResult.from_scores((pos - neg) / hits, hits / self.saturation)


class KeywordEntityExtractor(EntityExtractor):
    """Known competitor names, company-suffixed names and prices.

    Known names match case-insensitively with high confidence; suffix
    matches are a weaker heuristic.
    """

    name = "KeywordEntityExtractor"

    def __init__(
        self,
        organizations: Optional[Iterable[str]] = None,
        known_confidence: float = 0.9,
        heuristic_confidence: float = 0.6,
    ):
        self.organizations = list(organizations or [])
        self.known_confidence = known_confidence
        self.heuristic_confidence = heuristic_confidence

    async def extract(self, text: str) -> List[Entity]:
        found = []
        seen = set()

        for org in self.organizations:
            for match in re.finditer(rf"\b{re.escape(org)}\b", text, flags=re.IGNORECASE):
                found.append((match.start(), Entity(
                    type="organization", value=org, confidence=self.known_confidence,
                )))
                seen.add(org.lower())
                break

        for match in _COMPANY.finditer(text):
            value = match.group(1).strip()
            if value.lower() in seen:
                continue
            seen.add(value.lower())
            found.append((match.start(), Entity(
                type="organization", value=value, confidence=self.heuristic_confidence,
            )))

        for match in _PRICE.finditer(text):
            found.append((match.start(), Entity(type="price", value=match.group(0), confidence=0.95)))

        found.sort(key=lambda pair: pair[0])
        return [entity for _, entity in found]
