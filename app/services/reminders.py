"""Reminder sweep over the open index.

Each sweep nudges the reporter of every open, un-snoozed report that has
been quiet for ``min_age`` and was not reminded within ``cooldown``. The
``last_reminder_at`` stamp written after a successful send is the only
guard against double notification when two sweeps overlap.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from app.config import ReminderConfig
from app.schemas.events import ReminderSummary
from app.schemas.keyboards import InlineButton, InlineKeyboard
from app.schemas.report import Report, ReportStatus
from app.services.formatter import format_reminder
from app.services.notifier import Notifier
from app.services.report_store import ReportStore

logger = logging.getLogger(__name__)

CB_UPDATE = "rem:update"
CB_SNOOZE = "rem:snooze2h"
CB_CLOSE = "rem:close"
CB_SKIP = "rem:skip"

CALLBACK_DATA_LIMIT = 64  # bytes, enforced by Telegram


def reminder_keyboard(report_id: str, snooze_hours: int = 2) -> InlineKeyboard:
    return InlineKeyboard(rows=[
        [
            InlineButton(text="Update now", callback_data=f"{CB_UPDATE}:{report_id}"),
            InlineButton(text=f"Snooze {snooze_hours}h", callback_data=f"{CB_SNOOZE}:{report_id}"),
        ],
        [
            InlineButton(text="Close", callback_data=f"{CB_CLOSE}:{report_id}"),
            InlineButton(text="Skip", callback_data=f"{CB_SKIP}:{report_id}"),
        ],
    ])


def callback_fits(report_id: str) -> bool:
    longest = max(CB_UPDATE, CB_SNOOZE, CB_CLOSE, CB_SKIP, key=len)
    return len(f"{longest}:{report_id}".encode("utf-8")) <= CALLBACK_DATA_LIMIT


def is_due(report: Report, now: datetime, min_age: timedelta, cooldown: timedelta) -> bool:
    if report.status == ReportStatus.CLOSED:
        return False
    if report.is_snoozed(now):
        return False
    if now - report.last_update_at < min_age:
        return False
    if report.last_reminder_at is not None and now - report.last_reminder_at < cooldown:
        return False
    # no originating user means no DM target
    return report.reported_by_user_id is not None


async def run_reminders(
    store: ReportStore,
    notifier: Notifier,
    config: ReminderConfig | None = None,
    now: datetime | None = None,
) -> ReminderSummary:
    config = config or ReminderConfig()
    now = now or datetime.now(timezone.utc)
    min_age = timedelta(minutes=config.min_age_minutes)
    cooldown = timedelta(minutes=config.cooldown_minutes)

    open_ids = await store.open_ids()
    sent = 0
    for report_id in open_ids:
        report = await store.get(report_id)
        if report is None:
            logger.warning("Open index references missing report %s", report_id)
            continue
        if not is_due(report, now, min_age, cooldown):
            continue
        if not callback_fits(report.id):
            logger.warning("Report id %r too long for reminder buttons, not reminding", report.id)
            continue

        try:
            ok = await notifier.send_to_user(
                report.reported_by_user_id,
                format_reminder(report),
                reminder_keyboard(report.id, config.quick_snooze_hours),
            )
        except Exception:
            logger.exception("Reminder send for %s raised", report.id)
            ok = False
        if not ok:
            # leave last_reminder_at alone so the next sweep retries
            logger.warning("Reminder for %s not delivered", report.id)
            continue

        sent += 1
        # write back last_reminder_at alone, onto the latest copy
        current = await store.get(report.id)
        if current is None:
            logger.warning("Report %s vanished during reminder send", report.id)
            continue
        current.last_reminder_at = now
        await store.save(current)

    summary = ReminderSummary(checked=len(open_ids), sent=sent)
    logger.info("Reminder sweep: checked=%d sent=%d", summary.checked, summary.sent)
    return summary
