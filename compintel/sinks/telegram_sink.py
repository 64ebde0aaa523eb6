"""
Telegram notifier for sending alerts to a Telegram chat.
"""

import logging
import os
from typing import Optional

try:
    import telegram
    from telegram import Bot
except ImportError:
    telegram = None
    Bot = None

from ..interfaces import Notifier
from ..models import PriorityTier, ProcessedItem
from .log_sink import alert_lines


logger = logging.getLogger(__name__)


class TelegramNotifier(Notifier):
    """Sends high-priority alerts to a Telegram chat."""

    name = "TelegramNotifier"

    def __init__(
        self,
        bot_token: Optional[str] = None,
        chat_id: Optional[str] = None,
    ):
        if telegram is None:
            raise ImportError("python-telegram-bot package is required for Telegram notifications")

        bot_token = bot_token or os.getenv("TELEGRAM_BOT_TOKEN")
        self.bot = Bot(token=bot_token) if bot_token else None
        self.chat_id = chat_id or os.getenv("TELEGRAM_CHAT_ID")

    async def notify(self, item: ProcessedItem) -> None:
        if not self.bot or not self.chat_id:
            logger.warning("Telegram bot or chat_id not configured, skipping notification")
            return

        icon = "🔴" if item.priority == PriorityTier.CRITICAL else "🟠"
        # Plain text: collector content may contain Markdown control characters
        message = f"{icon} Competitor alert\n\n" + "\n".join(alert_lines(item))

        await self.bot.send_message(chat_id=self.chat_id, text=message)
