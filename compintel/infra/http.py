"""
http.py – JSON-over-HTTP client for enrichment providers, built on *aiohttp*.

Throttling (429), provider outages (5xx), dropped connections and timeouts
are retried with exponential back-off plus jitter; anything else surfaces
to the adapter immediately.
"""

from __future__ import annotations

import asyncio
import logging
import random
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Mapping, Optional

import aiohttp

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


def retry_after_seconds(value: Optional[str]) -> Optional[float]:
    """Seconds to wait from a Retry-After header (delta-seconds or HTTP-date)."""
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return float(value)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


class HttpClient:
    """
    Lazily-opened *aiohttp.ClientSession* with a bounded retry budget.

    ``max_retries`` counts retries, so a call makes at most
    ``max_retries + 1`` requests.
    """

    def __init__(
        self,
        *,
        timeout: float = 15.0,
        max_retries: int = 2,
        base_delay: float = 0.5,
        max_delay: float = 10.0,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.headers: Dict[str, str] = dict(headers or {})
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers=self.headers,
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def backoff(self, retry: int) -> float:
        """Delay before retry number ``retry`` (1-based)."""
        delay = min(self.base_delay * 2 ** (retry - 1), self.max_delay)
        return delay + random.uniform(0, self.base_delay)

    async def post_json(self, url: str, data: Any, **kwargs) -> Any:
        """POST ``data`` as JSON and return the decoded response body."""
        session = await self._get_session()
        total = self.max_retries + 1

        for attempt in range(1, total + 1):
            wait: Optional[float] = None
            try:
                async with session.post(url, json=data, **kwargs) as resp:
                    if resp.status in RETRYABLE_STATUS:
                        wait = retry_after_seconds(resp.headers.get("Retry-After"))
                        raise aiohttp.ClientResponseError(
                            resp.request_info,
                            resp.history,
                            status=resp.status,
                            message=f"retryable status {resp.status}",
                            headers=resp.headers,
                        )
                    resp.raise_for_status()
                    return await resp.json(content_type=None)
            except aiohttp.ClientResponseError as e:
                if e.status not in RETRYABLE_STATUS or attempt == total:
                    logger.error(f"POST {url} failed after {attempt} attempt(s): {e.status} {e.message}")
                    raise
                error: Exception = e
            except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as e:
                if attempt == total:
                    logger.error(f"POST {url} failed after {attempt} attempt(s): {e!r}")
                    raise
                error = e

            if wait is None:
                wait = self.backoff(attempt)
            logger.warning(f"POST {url} attempt {attempt}/{total} failed, retrying in {wait:.1f}s: {error!r}")
            await asyncio.sleep(wait)

        raise RuntimeError("retry loop exited without a result")
