"""
Google Cloud Natural Language adapters for sentiment and entity extraction.
"""

import asyncio
import logging
import os
from typing import Any, Dict, List, Optional

import aiohttp

from ..errors import AdapterError
from ..infra.http import HttpClient
from ..interfaces import EntityExtractor, SentimentAnalyzer
from ..models import Entity, SentimentResult


logger = logging.getLogger(__name__)


API_BASE = "https://language.googleapis.com/v1/documents"


class _GoogleLanguageClient:
    """Shared request plumbing for the two endpoints."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        max_retries: int = 2,
        http: Optional[HttpClient] = None,
    ):
        self.api_key = api_key or os.getenv("GOOGLE_CLOUD_API_KEY")
        if not self.api_key:
            raise ValueError("GOOGLE_CLOUD_API_KEY is required for Google Natural Language adapters")
        self.http = http or HttpClient(timeout=timeout, max_retries=max_retries)

    async def call(self, method: str, text: str) -> Dict[str, Any]:
        body = {
            "document": {"type": "PLAIN_TEXT", "content": text},
            "encodingType": "UTF8",
        }
        try:
            data = await self.http.post_json(
                f"{API_BASE}:{method}", body, params={"key": self.api_key}
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise AdapterError(f"{method} request failed: {e}") from e

        if not isinstance(data, dict):
            raise AdapterError(f"{method} returned a malformed response")
        return data

    async def close(self) -> None:
        await self.http.close()


class GoogleSentimentAnalyzer(SentimentAnalyzer):
    """Sentiment via ``documents:analyzeSentiment``.

    Google reports magnitude as an unbounded non-negative number; it is
    clamped to [0, 1].
    """

    name = "GoogleSentimentAnalyzer"

    def __init__(self, **kwargs):
        self.client = _GoogleLanguageClient(**kwargs)

    async def analyze(self, text: str) -> SentimentResult:
        data = await self.client.call("analyzeSentiment", text)
        try:
            sentiment = data["documentSentiment"]
            return SentimentResult.from_scores(
                sentiment.get("score", 0.0), sentiment.get("magnitude", 0.0)
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise AdapterError(f"Malformed sentiment response: {e}") from e

    async def close(self) -> None:
        await self.client.close()


class GoogleEntityExtractor(EntityExtractor):
    """Entities via ``documents:analyzeEntities``; salience is the confidence."""

    name = "GoogleEntityExtractor"

    def __init__(self, **kwargs):
        self.client = _GoogleLanguageClient(**kwargs)

    async def extract(self, text: str) -> List[Entity]:
        data = await self.client.call("analyzeEntities", text)
        try:
            return [
                Entity(
                    type=str(entity["type"]).lower(),
                    value=entity["name"],
                    confidence=max(0.0, min(1.0, float(entity.get("salience", 0.0)))),
                )
                for entity in data.get("entities", [])
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise AdapterError(f"Malformed entity response: {e}") from e

    async def close(self) -> None:
        await self.client.close()
