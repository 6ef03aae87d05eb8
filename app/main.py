"""FastAPI application entry point."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from app.api.router import api_router
from app.config import get_settings
from app.db.engine import async_session_factory, create_tables, engine
from app.dependencies import get_notifier
from app.services.kv_store import KVStore
from app.services.reminders import run_reminders
from app.services.report_store import ReportStore

logger = logging.getLogger(__name__)


async def _reminder_loop():
    """Background task: reminder sweep plus expired-entry cleanup on a timer."""
    settings = get_settings()
    kv = KVStore(async_session_factory)
    store = ReportStore(kv)
    while True:
        await asyncio.sleep(settings.reminders.interval_seconds)
        try:
            await run_reminders(store, get_notifier(), settings.reminders)
            await kv.purge_expired()
        except Exception:
            logger.exception("Reminder sweep failed")  # next tick retries


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()

    reminder_task = asyncio.create_task(_reminder_loop())
    yield
    reminder_task.cancel()
    notifier = get_notifier()
    if hasattr(notifier, "aclose"):
        await notifier.aclose()
    await engine.dispose()


app = FastAPI(
    title="Fleet Reports Bot",
    description="Truck and trailer repair incident tracking over Telegram with scheduled reminders.",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(api_router)


@app.get("/health", response_class=PlainTextResponse)
async def health():
    return "ok"
