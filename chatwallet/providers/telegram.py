"""Outbound Telegram Bot API calls (notifications outside the webhook reply)."""

import logging
from typing import Any, Dict, Optional

import httpx

from .base import Provider
from ..config import settings

logger = logging.getLogger(__name__)


class TelegramNotifier(Provider):
    name = "telegram"

    def __init__(
        self,
        bot_token: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(transport)
        self.bot_token = bot_token if bot_token is not None else settings.telegram_bot_token
        self.base_url = (base_url or settings.telegram_api_base_url).rstrip("/")

    async def ready(self) -> bool:
        return bool(self.bot_token)

    async def health_check(self) -> Dict[str, Any]:
        if not self.bot_token:
            return {"status": "unavailable", "reason": "missing TELEGRAM_BOT_TOKEN"}
        return {"status": "healthy"}

    async def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        parse_mode: Optional[str] = "Markdown",
        reply_markup: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Best effort; returns False instead of raising."""
        if not self.bot_token:
            logger.info("Telegram notification skipped for %s: no bot token configured", chat_id)
            return False

        payload: Dict[str, Any] = {"chat_id": chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        if reply_markup:
            payload["reply_markup"] = reply_markup

        try:
            async with self._client() as client:
                resp = await client.post(f"{self.base_url}/bot{self.bot_token}/sendMessage", json=payload)
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Telegram sendMessage to %s failed: %s", chat_id, exc)
            return False
        return True

    async def answer_callback_query(self, callback_query_id: str) -> bool:
        """Stop the button's loading spinner. Best effort."""
        if not self.bot_token:
            return False
        try:
            async with self._client() as client:
                resp = await client.post(
                    f"{self.base_url}/bot{self.bot_token}/answerCallbackQuery",
                    json={"callback_query_id": callback_query_id},
                )
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Telegram answerCallbackQuery failed: %s", exc)
            return False
        return True
