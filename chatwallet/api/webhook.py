"""
Telegram webhook.

Telegram POSTs each Update here. The reply for the originating chat is
returned inline as a ``sendMessage`` method call, so the common path needs
no extra Bot API round trip.
"""

import logging
from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException

from ..bot.handlers import Assistant, get_assistant
from ..config import settings
from ..types import Update

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/webhook")
async def telegram_webhook(
    update: Update,
    assistant: Assistant = Depends(get_assistant),
    x_telegram_bot_api_secret_token: Optional[str] = Header(default=None),
) -> Dict[str, Any]:
    if settings.telegram_webhook_secret and x_telegram_bot_api_secret_token != settings.telegram_webhook_secret:
        raise HTTPException(status_code=401, detail="Invalid webhook secret")

    structlog.contextvars.bind_contextvars(update_id=update.update_id)
    handled = await assistant.handle_update(update)
    if handled.reply is None:
        return {"ok": True}
    return handled.reply.as_send_message()
