"""Per-user dialog state with an idle expiry checked on every read."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from app.schemas.dialog import DialogState
from app.services.kv_store import KVStore

logger = logging.getLogger(__name__)


def _dialog_key(user_id: int) -> tuple:
    return ("dialog", user_id)


class DialogStore:
    def __init__(self, kv: KVStore, ttl: timedelta = timedelta(minutes=30)):
        self.kv = kv
        self.ttl = ttl

    async def get(self, user_id: int, now: datetime) -> DialogState | None:
        raw = await self.kv.get(_dialog_key(user_id))
        if raw is None:
            return None
        state = DialogState.model_validate(raw)
        if state.expires_at is not None and state.expires_at <= now:
            logger.debug("Dialog for user %s expired at step %s", user_id, state.step.value)
            await self.kv.delete(_dialog_key(user_id))
            return None
        return state

    async def set(self, user_id: int, state: DialogState, now: datetime) -> None:
        """Persist *state* and push its expiry out by the idle timeout."""
        state.expires_at = now + self.ttl
        await self.kv.set(_dialog_key(user_id), state.model_dump(mode="json"), ttl=self.ttl)

    async def clear(self, user_id: int) -> None:
        await self.kv.delete(_dialog_key(user_id))
