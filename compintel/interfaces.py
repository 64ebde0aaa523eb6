"""
Core interfaces for the pipeline's pluggable collaborators.

Concrete classes are discovered and built from configuration by plugin_loader.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from .models import Entity, ProcessedItem, SentimentResult


class SentimentAnalyzer(ABC):
    """Scores text polarity and magnitude.

    Implementations raise AdapterError on provider failure; the orchestrator
    substitutes a neutral result so a failing provider never fails an item.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name for this analyzer."""
        pass

    @abstractmethod
    async def analyze(self, text: str) -> SentimentResult:
        """Return the sentiment of ``text``."""
        pass

    async def close(self) -> None:
        """Release any network resources."""
        pass


class EntityExtractor(ABC):
    """Extracts named entities with a confidence in [0, 1]."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name for this extractor."""
        pass

    @abstractmethod
    async def extract(self, text: str) -> List[Entity]:
        """Return entities found in ``text``, in document order."""
        pass

    async def close(self) -> None:
        pass


class Notifier(ABC):
    """Receives high-priority processed items for downstream alerting.

    Calls are fire-and-forget: exceptions are logged by the orchestrator and
    never fail the item.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    async def notify(self, item: ProcessedItem) -> None:
        """Deliver an alert for ``item``."""
        pass

    async def close(self) -> None:
        pass
