"""Outbound messages via the Telegram Bot API.

Every send is best-effort: failures are logged and reported as ``False``,
never raised.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from app.config import get_settings
from app.schemas.keyboards import Keyboard

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def send_to_user(self, user_id: int | str, text: str, keyboard: Keyboard | None = None) -> bool: ...

    async def send_to_channel(self, chat_id: int | str, text: str) -> bool: ...

    async def copy_message(self, to_chat: int | str, from_chat: int | str, message_id: int) -> bool: ...

    async def answer_callback(self, callback_id: str, text: str | None = None) -> bool: ...


class TelegramNotifier:
    def __init__(self, bot_token: str, api_base: str = "https://api.telegram.org",
                 client: httpx.AsyncClient | None = None):
        self._url = f"{api_base}/bot{bot_token}"
        self._client = client or httpx.AsyncClient(timeout=10.0)

    async def _call(self, method: str, payload: dict[str, Any]) -> bool:
        try:
            r = await self._client.post(f"{self._url}/{method}", json=payload)
            r.raise_for_status()
            return True
        except httpx.HTTPError:
            logger.exception("Telegram %s failed", method)
            return False

    async def send_to_user(self, user_id, text, keyboard=None) -> bool:
        payload: dict[str, Any] = {"chat_id": user_id, "text": text}
        if keyboard is not None:
            payload["reply_markup"] = keyboard.to_markup()
        return await self._call("sendMessage", payload)

    async def send_to_channel(self, chat_id, text) -> bool:
        return await self._call("sendMessage", {"chat_id": chat_id, "text": text})

    async def copy_message(self, to_chat, from_chat, message_id) -> bool:
        return await self._call(
            "copyMessage",
            {"chat_id": to_chat, "from_chat_id": from_chat, "message_id": message_id},
        )

    async def answer_callback(self, callback_id, text=None) -> bool:
        payload: dict[str, Any] = {"callback_query_id": callback_id}
        if text:
            payload["text"] = text
        return await self._call("answerCallbackQuery", payload)

    async def set_webhook(self, url: str, secret_token: str = "") -> bool:
        payload = {"url": url}
        if secret_token:
            payload["secret_token"] = secret_token
        return await self._call("setWebhook", payload)

    async def aclose(self) -> None:
        await self._client.aclose()


def build_notifier() -> TelegramNotifier:
    settings = get_settings()
    if not settings.bot_token:
        logger.warning("BOT_TOKEN not set, outbound messages will fail")
    return TelegramNotifier(settings.bot_token, settings.telegram_api_base)
