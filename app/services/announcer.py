"""Posts lifecycle announcements and relayed media to the linked group."""

from __future__ import annotations

import logging

from app.services.kv_store import KVStore
from app.services.notifier import Notifier

logger = logging.getLogger(__name__)

GROUP_CHAT_KEY = ("group_chat_id",)


class Announcer:
    def __init__(self, kv: KVStore, notifier: Notifier, group_chat_id: str = ""):
        self.kv = kv
        self.notifier = notifier
        self._configured_group = group_chat_id

    async def group_id(self) -> str | None:
        """Configured group wins over the one linked with /setgroup."""
        if self._configured_group:
            return self._configured_group
        return await self.kv.get(GROUP_CHAT_KEY)

    async def link_group(self, chat_id: int) -> None:
        await self.kv.set(GROUP_CHAT_KEY, str(chat_id))
        logger.info("Linked group chat %s", chat_id)

    async def announce(self, text: str) -> bool:
        group = await self.group_id()
        if not group:
            logger.warning("No group linked, announcement dropped: %s", text.splitlines()[0])
            return False
        return await self.notifier.send_to_channel(group, text)

    async def copy_media(self, from_chat: int, message_ids: list[int]) -> int:
        """Copy messages into the group. Returns how many copies succeeded."""
        group = await self.group_id()
        if not group:
            return 0
        copied = 0
        for mid in message_ids:
            if await self.notifier.copy_message(group, from_chat, mid):
                copied += 1
        return copied
