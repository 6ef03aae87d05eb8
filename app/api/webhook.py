"""Telegram webhook and manual reminder trigger."""

from __future__ import annotations

import logging
import secrets

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request

from app.config import Settings
from app.dependencies import get_conversation, get_kv, get_notifier, get_settings_dep
from app.services.conversation import ConversationEngine
from app.services.kv_store import KVStore
from app.services.notifier import Notifier
from app.services.reminders import run_reminders
from app.services.report_store import ReportStore
from app.services.telegram_updates import parse_update

logger = logging.getLogger(__name__)

router = APIRouter(tags=["bot"])


@router.post("/webhook")
async def telegram_webhook(
    request: Request,
    engine: ConversationEngine = Depends(get_conversation),
    settings: Settings = Depends(get_settings_dep),
    x_telegram_bot_api_secret_token: str = Header(default=""),
):
    if settings.webhook_secret and not secrets.compare_digest(
        x_telegram_bot_api_secret_token, settings.webhook_secret
    ):
        raise HTTPException(403, "forbidden")

    update = await request.json()
    event = parse_update(update)
    if event is None:
        logger.debug("Ignoring update without sender: %s", list(update.keys()))
        return {"ok": True}

    await engine.handle_event(event)
    return {"ok": True}


@router.get("/cron")
async def trigger_reminders(
    key: str = Query(default=""),
    kv: KVStore = Depends(get_kv),
    notifier: Notifier = Depends(get_notifier),
    settings: Settings = Depends(get_settings_dep),
):
    """Run one reminder sweep on demand."""
    if not settings.cron_key or not secrets.compare_digest(key, settings.cron_key):
        raise HTTPException(403, "forbidden")
    summary = await run_reminders(ReportStore(kv), notifier, settings.reminders)
    return {"ok": True, "result": summary.model_dump()}
