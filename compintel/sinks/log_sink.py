"""
Log notifier - writes high-priority alerts to the application log.
"""

import logging
from typing import List

from ..interfaces import Notifier
from ..models import ProcessedItem


logger = logging.getLogger(__name__)


def alert_lines(item: ProcessedItem, max_content: int = 280) -> List[str]:
    """Plain-text summary shared by all notifiers."""
    content = item.content
    if len(content) > max_content:
        content = content[:max_content - 3] + "..."

    lines = [
        f"[{item.priority.value.upper()}] {item.kind.value} from {item.source.value}",
        f"Tenant: {item.tenant_id}",
    ]
    subject = item.metadata.business_id or item.metadata.competitor_id
    if subject:
        lines.append(f"Subject: {subject}")
    if content:
        lines.append(f"Content: {content}")
    for insight in item.insights:
        lines.append(f"- {insight}")
    if item.metadata.url:
        lines.append(f"Source: {item.metadata.url}")
    return lines


class LogNotifier(Notifier):
    """Notifier that logs alerts; the default when nothing else is configured."""

    name = "LogNotifier"

    def __init__(self, level: str = "WARNING"):
        self.level = logging.getLevelName(level.upper())
        if not isinstance(self.level, int):
            raise ValueError(f"Unknown log level: {level}")

    async def notify(self, item: ProcessedItem) -> None:
        logger.log(
            self.level,
            "High priority alert: tenant=%s priority=%s insights=%s",
            item.tenant_id,
            item.priority.value,
            item.insights,
        )
