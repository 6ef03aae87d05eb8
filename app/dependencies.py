"""FastAPI dependency providers for settings, storage and the outbound transport."""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from app.config import Settings, get_settings
from app.db.engine import async_session_factory
from app.services.conversation import ConversationEngine
from app.services.kv_store import KVStore
from app.services.notifier import Notifier, build_notifier


@lru_cache
def get_settings_dep() -> Settings:
    return get_settings()


def get_kv() -> KVStore:
    return KVStore(async_session_factory)


@lru_cache
def get_notifier() -> Notifier:
    return build_notifier()


def get_conversation(
    kv: KVStore = Depends(get_kv),
    notifier: Notifier = Depends(get_notifier),
    settings: Settings = Depends(get_settings_dep),
) -> ConversationEngine:
    return ConversationEngine(kv, notifier, settings)
