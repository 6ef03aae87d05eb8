"""Normalise raw Telegram webhook updates into ``InboundEvent``."""

from __future__ import annotations

from typing import Any

from app.schemas.events import InboundEvent

_MEDIA_FIELDS = ("photo", "video", "document")


def parse_update(update: dict[str, Any]) -> InboundEvent | None:
    """Return the event carried by *update*, or None if it has no sender."""
    if "message" in update:
        m = update["message"]
        user_id = (m.get("from") or {}).get("id")
        chat = m.get("chat") or {}
        if not user_id or "id" not in chat:
            return None
        return InboundEvent(
            user_id=user_id,
            chat_id=chat["id"],
            is_group=chat.get("type") in ("group", "supergroup"),
            text=m.get("text") or "",
            message_id=m.get("message_id"),
            has_media=any(m.get(f) for f in _MEDIA_FIELDS),
        )

    if "callback_query" in update:
        cq = update["callback_query"]
        user_id = (cq.get("from") or {}).get("id")
        chat_id = ((cq.get("message") or {}).get("chat") or {}).get("id")
        if not user_id or not chat_id:
            return None
        return InboundEvent(
            user_id=user_id,
            chat_id=chat_id,
            callback_data=cq.get("data") or "",
            callback_id=cq.get("id"),
        )

    return None
