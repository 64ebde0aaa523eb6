"""
Discord notifier for sending alerts through a channel webhook.
"""

import logging
import os
from typing import Optional

try:
    import discord
    from discord import Embed
except ImportError:
    discord = None
    Embed = None

import aiohttp

from ..interfaces import Notifier
from ..models import PriorityTier, ProcessedItem


logger = logging.getLogger(__name__)


_COLORS = {
    PriorityTier.CRITICAL: 0xff0000,
    PriorityTier.HIGH: 0xff8c00,
}


class DiscordNotifier(Notifier):
    """Posts high-priority alerts as embeds to a Discord webhook."""

    name = "DiscordNotifier"

    def __init__(self, webhook_url: Optional[str] = None, max_length: int = 1000):
        if discord is None:
            raise ImportError("discord.py package is required for Discord notifications")

        self.webhook_url = webhook_url or os.getenv("DISCORD_WEBHOOK_URL")
        self.max_length = max_length
        self._session: Optional[aiohttp.ClientSession] = None

    async def _webhook(self) -> "discord.Webhook":
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return discord.Webhook.from_url(self.webhook_url, session=self._session)

    def _build_embed(self, item: ProcessedItem) -> "Embed":
        content = item.content
        if len(content) > self.max_length:
            content = content[:self.max_length - 3] + "..."

        embed = Embed(
            title=f"Competitor alert: {item.kind.value}",
            description=content or "(no content)",
            color=_COLORS.get(item.priority, 0x0099ff),
        )
        embed.add_field(name="Priority", value=item.priority.value, inline=True)
        embed.add_field(name="Source", value=item.source.value, inline=True)
        embed.add_field(name="Tenant", value=item.tenant_id, inline=True)
        if item.insights:
            embed.add_field(name="Insights", value="\n".join(item.insights)[:1024], inline=False)
        if item.metadata.url:
            embed.url = item.metadata.url
        return embed

    async def notify(self, item: ProcessedItem) -> None:
        if not self.webhook_url:
            logger.warning("Discord webhook not configured, skipping notification")
            return

        webhook = await self._webhook()
        await webhook.send(embed=self._build_embed(item))
        logger.debug(f"Sent Discord alert for item {item.id}")

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
