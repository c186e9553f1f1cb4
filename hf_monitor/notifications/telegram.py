"""Telegram notification service."""
import asyncio
import html
import logging
import ssl
from datetime import datetime, timezone

import aiohttp
import certifi

from ..config import TelegramConfig
from ..models import AlertLevel

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER_SECONDS = 30


class TelegramNotifier:
    """Send notifications via Telegram bots.

    ``info`` messages go silently to the log bot when one is configured;
    everything else goes to the alert bot with sound on.
    """

    def __init__(self, config: TelegramConfig) -> None:
        self.alert_bot_token = config.alert_bot_token
        self.log_bot_token = config.log_bot_token
        self.chat_id = config.chat_id
        self.max_retries = config.max_retries

    async def _post_message(
        self, message: str, bot_token: str, silent: bool
    ) -> tuple[int, int]:
        """POST one sendMessage call; returns (status, retry_after_seconds)."""
        url = f"https://api.telegram.org/bot{bot_token}/sendMessage"
        payload = {
            "chat_id": self.chat_id,
            "text": message,
            "parse_mode": "HTML",
            "disable_notification": silent,
        }

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        async with aiohttp.ClientSession(connector=connector) as session:
            async with session.post(url, json=payload) as response:
                retry_after = DEFAULT_RETRY_AFTER_SECONDS
                if response.status == 429:
                    try:
                        retry_after = int(
                            response.headers.get("Retry-After", DEFAULT_RETRY_AFTER_SECONDS)
                        )
                    except ValueError:
                        pass
                return response.status, retry_after

    async def send(self, level: AlertLevel, message: str) -> bool:
        """Deliver ``message``, retrying rate limits and transient errors."""
        level = AlertLevel(level)
        if level is AlertLevel.INFO and self.log_bot_token:
            bot_token, silent = self.log_bot_token, True
        else:
            bot_token, silent = self.alert_bot_token, False

        if not bot_token or not self.chat_id:
            logger.warning("Telegram credentials not configured")
            return False

        # HTML parse mode: bare "<" or "&" in report or error text is rejected.
        stamped = (
            f"[{datetime.now(timezone.utc).isoformat()}] {html.escape(message, quote=False)}"
        )

        attempt = 0
        while True:
            try:
                status, retry_after = await self._post_message(stamped, bot_token, silent)
            except Exception as e:
                logger.error("Failed to send Telegram message: %s", e)
                status, retry_after = 0, 0

            if status == 200:
                logger.info("Telegram %s message sent", level.value)
                return True

            if attempt >= self.max_retries:
                logger.error(
                    "Giving up on Telegram %s message after %d attempts",
                    level.value,
                    attempt + 1,
                )
                return False

            if status == 429:
                delay = retry_after
                logger.warning(
                    "Rate limited by Telegram API, retrying after %d seconds", delay
                )
            else:
                delay = 2**attempt
                if status:
                    logger.error("Failed to send Telegram message: HTTP %s", status)

            await asyncio.sleep(delay)
            attempt += 1
