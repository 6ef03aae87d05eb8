"""Conversation engine: per-user step machine for the report flows.

Flows and their steps (see ``app.schemas.dialog.Step``):

    new:     asset -> truck_num | trailer_num -> paired_truck
             -> repair_side -> problem -> media* -> plan
             -> reported_by [-> reported_by_text] -> confirm
    update:  report_id -> await_text [-> custom_text]
    close:   report_id -> await_text
    snooze:  report_id -> await_dur

Malformed input never advances the step or touches ``tmp``; it re-issues
the current prompt. Dialog state is persisted after every accepted turn
and removed on completion, cancellation or idle expiry.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from app.config import Settings, get_settings
from app.schemas.dialog import DialogState, Step
from app.schemas.events import InboundEvent
from app.schemas.keyboards import InlineButton, InlineKeyboard, Keyboard, ReplyKeyboard
from app.schemas.report import AssetType, MediaRef, Report, ReportDraft, ReportStatus
from app.services import formatter
from app.services.announcer import Announcer
from app.services.dialog_store import DialogStore
from app.services.id_allocator import allocate_id
from app.services.input_parser import (
    MAX_UNIT_BYTES, Control, ControlKind, Parsed, Text, classify, parse_asset, parse_duration,
    parse_report_id, parse_unit_number,
)
from app.services.kv_store import KVStore
from app.services.notifier import Notifier
from app.services.reminders import CB_CLOSE, CB_SKIP, CB_SNOOZE, CB_UPDATE
from app.services.report_store import ReportNotFound, ReportStore

logger = logging.getLogger(__name__)

BTN_NEW = "New report"
BTN_UPDATE = "Update report"
BTN_CLOSE = "Close report"
BTN_SNOOZE = "Snooze report"

CB_POST = "new:post"
CB_CANCEL = "new:cancel"

KB_MAIN = ReplyKeyboard(rows=[[BTN_NEW], [BTN_UPDATE, BTN_CLOSE], [BTN_SNOOZE]])
KB_ASSET = ReplyKeyboard(rows=[["Truck", "Trailer"]])
KB_MEDIA = ReplyKeyboard(rows=[["Done", "Skip"]])
KB_SKIP = ReplyKeyboard(rows=[["Skip"]])
KB_BACK = ReplyKeyboard(rows=[["Back to menu"]])
KB_SNOOZE = ReplyKeyboard(rows=[["2h", "4h", "1d"], ["Back to menu"]])
KB_UPDATE_QUICK = ReplyKeyboard(rows=[["Rolling", "Waiting parts"], ["At shop", "Custom (type)"], ["Back to menu"]])
IK_CONFIRM = InlineKeyboard(rows=[[
    InlineButton(text="Post", callback_data=CB_POST),
    InlineButton(text="Cancel", callback_data=CB_CANCEL),
]])

_FLOW_START = {
    BTN_NEW: Step.NEW_ASSET,
    BTN_UPDATE: Step.UPDATE_REPORT_ID,
    BTN_CLOSE: Step.CLOSE_REPORT_ID,
    BTN_SNOOZE: Step.SNOOZE_REPORT_ID,
}

# Control words each step reacts to; elsewhere they are plain text.
_STEP_CONTROLS = {
    Step.NEW_PAIRED_TRUCK: {ControlKind.BACK, ControlKind.SKIP},
    Step.NEW_MEDIA: {ControlKind.BACK, ControlKind.DONE, ControlKind.SKIP},
    Step.NEW_REPORTED_BY: {ControlKind.BACK, ControlKind.TYPE},
    Step.NEW_CONFIRM: {ControlKind.CANCEL},
    Step.UPDATE_AWAIT_TEXT: {ControlKind.BACK, ControlKind.TYPE},
}
_DEFAULT_CONTROLS = {ControlKind.BACK}


def _text(parsed: Parsed) -> str | None:
    """Non-empty free text, or None for controls and blank input."""
    if isinstance(parsed, Text) and parsed.value:
        return parsed.value
    return None


def _is_control(parsed: Parsed, *kinds: ControlKind) -> bool:
    return isinstance(parsed, Control) and parsed.kind in kinds


class ConversationEngine:
    def __init__(
        self,
        kv: KVStore,
        notifier: Notifier,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.settings = settings or get_settings()
        self.notifier = notifier
        self.store = ReportStore(kv)
        self.dialogs = DialogStore(kv, timedelta(minutes=self.settings.dialog_ttl_minutes))
        self.announcer = Announcer(kv, notifier, self.settings.group_chat_id)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._steps = {
            Step.NEW_ASSET: self._on_asset,
            Step.NEW_TRUCK_NUM: self._on_truck_num,
            Step.NEW_TRAILER_NUM: self._on_trailer_num,
            Step.NEW_PAIRED_TRUCK: self._on_paired_truck,
            Step.NEW_REPAIR_SIDE: self._on_repair_side,
            Step.NEW_PROBLEM: self._on_problem,
            Step.NEW_MEDIA: self._on_media_text,
            Step.NEW_PLAN: self._on_plan,
            Step.NEW_REPORTED_BY: self._on_reported_by,
            Step.NEW_REPORTED_BY_TEXT: self._on_reported_by_text,
            Step.NEW_CONFIRM: self._on_confirm_text,
            Step.UPDATE_REPORT_ID: self._on_report_id,
            Step.UPDATE_AWAIT_TEXT: self._on_update_text,
            Step.UPDATE_CUSTOM_TEXT: self._on_update_custom_text,
            Step.CLOSE_REPORT_ID: self._on_report_id,
            Step.CLOSE_AWAIT_TEXT: self._on_close_text,
            Step.SNOOZE_REPORT_ID: self._on_report_id,
            Step.SNOOZE_AWAIT_DUR: self._on_duration,
        }

    # ── Entry point ───────────────────────────────────────

    async def handle_event(self, event: InboundEvent) -> None:
        """Route one inbound message or button tap. Side effects only."""
        if event.callback_data is not None:
            await self._handle_callback(event)
            return

        if event.is_group:
            if event.text.startswith("/setgroup"):
                await self.announcer.link_group(event.chat_id)
                await self.notifier.send_to_user(event.chat_id, "Group chat linked")
            return

        now = self._clock()
        state = await self.dialogs.get(event.user_id, now)

        if event.has_media:
            await self._handle_media(event, state, now)
            return

        action = event.text.strip()
        if action in _FLOW_START:
            await self._start_flow(event, _FLOW_START[action], now)
            return

        if state is None:
            await self._reply(event, "Choose an action:", KB_MAIN)
            return

        parsed = classify(event.text, _STEP_CONTROLS.get(state.step, _DEFAULT_CONTROLS))
        if _is_control(parsed, ControlKind.BACK):
            await self._to_menu(event)
            return

        logger.debug("user=%s step=%s event=%s", event.user_id, state.step.value, event.event_id)
        await self._steps[state.step](event, state, parsed, now)

    # ── Helpers ───────────────────────────────────────────

    async def _reply(self, event: InboundEvent, text: str, keyboard: Keyboard | None = None) -> None:
        await self.notifier.send_to_user(event.chat_id, text, keyboard)

    async def _to_menu(self, event: InboundEvent) -> None:
        await self.dialogs.clear(event.user_id)
        await self._reply(event, "Choose an action:", KB_MAIN)

    async def _not_found(self, event: InboundEvent, report_id: str) -> None:
        logger.info("user=%s referenced unknown report %s", event.user_id, report_id)
        await self.dialogs.clear(event.user_id)
        await self._reply(event, f"Report #{report_id} not found", KB_MAIN)

    async def _already_closed(self, event: InboundEvent, report_id: str) -> None:
        await self.dialogs.clear(event.user_id)
        await self._reply(event, f"#{report_id} is already closed", KB_MAIN)

    def _draft(self, state: DialogState) -> ReportDraft:
        return ReportDraft.model_validate(state.tmp)

    async def _advance(self, event: InboundEvent, state: DialogState, step: Step,
                       now: datetime, draft: ReportDraft | None = None) -> None:
        """Persist the new step (and draft) and send the step's prompt."""
        state.step = step
        if draft is not None:
            state.tmp = draft.model_dump(mode="json")
        await self.dialogs.set(event.user_id, state, now)
        await self._prompt(event, state)

    async def _prompt(self, event: InboundEvent, state: DialogState) -> None:
        """(Re-)issue the prompt belonging to the current step."""
        step = state.step
        rid = state.report_id
        if step == Step.NEW_ASSET:
            await self._reply(event, "Asset?", KB_ASSET)
        elif step == Step.NEW_TRUCK_NUM:
            await self._reply(event, "Truck number?")
        elif step == Step.NEW_TRAILER_NUM:
            await self._reply(event, "Trailer number?")
        elif step == Step.NEW_PAIRED_TRUCK:
            await self._reply(event, "Paired truck number? (or Skip)", KB_SKIP)
        elif step == Step.NEW_REPAIR_SIDE:
            await self._reply(event, "Where was repair?", KB_ASSET)
        elif step == Step.NEW_PROBLEM:
            await self._reply(event, "Problem?")
        elif step == Step.NEW_MEDIA:
            await self._reply(event, "Send photos/videos/documents of the damage. Tap Done when finished or Skip.", KB_MEDIA)
        elif step == Step.NEW_PLAN:
            await self._reply(event, "Plan?")
        elif step == Step.NEW_REPORTED_BY:
            default = self.settings.default_reported_by
            await self._reply(event, "Reported by?", ReplyKeyboard(rows=[[default], ["Other (type)"]]))
        elif step == Step.NEW_REPORTED_BY_TEXT:
            await self._reply(event, "Type name")
        elif step == Step.NEW_CONFIRM:
            preview = formatter.format_draft(self._draft(state), self.settings.default_reported_by)
            await self._reply(event, f"Preview:\n{preview}\n\nPost to group?", IK_CONFIRM)
        elif step == Step.UPDATE_REPORT_ID:
            await self._reply(event, "Enter report id (truck or trailer number)", KB_BACK)
        elif step == Step.UPDATE_AWAIT_TEXT:
            await self._reply(event, f"Update for #{rid}: choose or type", KB_UPDATE_QUICK)
        elif step == Step.UPDATE_CUSTOM_TEXT:
            await self._reply(event, "Type update text", KB_BACK)
        elif step == Step.CLOSE_REPORT_ID:
            await self._reply(event, "Enter report id to close", KB_BACK)
        elif step == Step.CLOSE_AWAIT_TEXT:
            await self._reply(event, f"Close #{rid}: resolution", KB_BACK)
        elif step == Step.SNOOZE_REPORT_ID:
            await self._reply(event, "Enter report id to snooze", KB_BACK)
        elif step == Step.SNOOZE_AWAIT_DUR:
            await self._reply(event, "Duration? Tap one or type like 4h/2d", KB_SNOOZE)

    async def _start_flow(self, event: InboundEvent, step: Step, now: datetime) -> None:
        tmp = {}
        if step == Step.NEW_ASSET:
            tmp = ReportDraft(reported_by=self.settings.default_reported_by).model_dump(mode="json")
        logger.debug("user=%s starting flow %s", event.user_id, step.flow)
        await self._advance(event, DialogState(step=step, tmp=tmp), step, now)

    # ── New report ────────────────────────────────────────

    async def _on_asset(self, event, state, parsed, now):
        asset = parse_asset(_text(parsed) or "")
        if asset is None:
            await self._reply(event, "Choose Truck or Trailer", KB_ASSET)
            return
        draft = self._draft(state)
        draft.asset = asset
        nxt = Step.NEW_TRAILER_NUM if asset == AssetType.TRAILER else Step.NEW_TRUCK_NUM
        await self._advance(event, state, nxt, now, draft)

    async def _unit_number(self, event, state, parsed) -> str | None:
        """Normalised unit number, or None after re-prompting."""
        value = _text(parsed)
        unit = parse_unit_number(value or "")
        if unit is None:
            if value and parse_report_id(value):
                await self._reply(event, f"Number is too long (max {MAX_UNIT_BYTES} bytes)")
            await self._prompt(event, state)
        return unit

    async def _on_truck_num(self, event, state, parsed, now):
        value = await self._unit_number(event, state, parsed)
        if value is None:
            return
        draft = self._draft(state)
        draft.truck_number = value
        await self._advance(event, state, Step.NEW_REPAIR_SIDE, now, draft)

    async def _on_trailer_num(self, event, state, parsed, now):
        value = await self._unit_number(event, state, parsed)
        if value is None:
            return
        draft = self._draft(state)
        draft.trailer_number = value
        await self._advance(event, state, Step.NEW_PAIRED_TRUCK, now, draft)

    async def _on_paired_truck(self, event, state, parsed, now):
        draft = self._draft(state)
        if _is_control(parsed, ControlKind.SKIP):
            draft.paired_truck = None
        else:
            value = await self._unit_number(event, state, parsed)
            if value is None:
                return
            draft.paired_truck = value
        await self._advance(event, state, Step.NEW_REPAIR_SIDE, now, draft)

    async def _on_repair_side(self, event, state, parsed, now):
        side = parse_asset(_text(parsed) or "")
        if side is None:
            await self._reply(event, "Choose Truck or Trailer", KB_ASSET)
            return
        draft = self._draft(state)
        draft.repair_side = side
        await self._advance(event, state, Step.NEW_PROBLEM, now, draft)

    async def _on_problem(self, event, state, parsed, now):
        value = _text(parsed)
        if value is None:
            await self._prompt(event, state)
            return
        draft = self._draft(state)
        draft.problem = value
        await self._advance(event, state, Step.NEW_MEDIA, now, draft)

    async def _on_media_text(self, event, state, parsed, now):
        if _is_control(parsed, ControlKind.DONE, ControlKind.SKIP):
            await self._advance(event, state, Step.NEW_PLAN, now)
            return
        await self._reply(event, "Send media or tap Done / Skip.", KB_MEDIA)

    async def _on_plan(self, event, state, parsed, now):
        value = _text(parsed)
        if value is None:
            await self._prompt(event, state)
            return
        draft = self._draft(state)
        draft.plan = value
        await self._advance(event, state, Step.NEW_REPORTED_BY, now, draft)

    async def _on_reported_by(self, event, state, parsed, now):
        if _is_control(parsed, ControlKind.TYPE):
            await self._advance(event, state, Step.NEW_REPORTED_BY_TEXT, now)
            return
        await self._set_reporter(event, state, parsed, now)

    async def _on_reported_by_text(self, event, state, parsed, now):
        await self._set_reporter(event, state, parsed, now)

    async def _set_reporter(self, event, state, parsed, now):
        draft = self._draft(state)
        draft.reported_by = _text(parsed) or self.settings.default_reported_by
        await self._advance(event, state, Step.NEW_CONFIRM, now, draft)

    async def _on_confirm_text(self, event, state, parsed, now):
        if _is_control(parsed, ControlKind.CANCEL):
            await self._cancel_draft(event)
            return
        await self._reply(event, "Tap Post or Cancel.", IK_CONFIRM)

    async def _cancel_draft(self, event: InboundEvent) -> None:
        await self.dialogs.clear(event.user_id)
        await self._reply(event, "Canceled.", KB_MAIN)

    async def _post_draft(self, event: InboundEvent, state: DialogState) -> Report:
        now = self._clock()
        draft = self._draft(state)
        report_id = await allocate_id(self.store, draft)
        report = Report(
            id=report_id,
            status=ReportStatus.OPEN,
            asset=draft.asset,
            truck_number=draft.truck_number,
            trailer_number=draft.trailer_number,
            paired_truck=draft.paired_truck,
            repair_side=draft.repair_side,
            problem=draft.problem,
            plan=draft.plan,
            reported_by=draft.reported_by or self.settings.default_reported_by,
            reported_by_user_id=event.user_id,
            created_at=now,
            last_update_at=now,
            media=draft.media,
        )
        await self.store.create(report)
        await self.dialogs.clear(event.user_id)
        await self._reply(event, f"Created #{report.id}", KB_MAIN)
        await self.announcer.announce(formatter.format_report(report, "OPEN"))
        if report.media:
            await self.announcer.copy_media(event.chat_id, [m.message_id for m in report.media])
        return report

    # ── Media ─────────────────────────────────────────────

    async def _handle_media(self, event: InboundEvent, state: DialogState | None, now: datetime) -> None:
        if state is not None and state.step == Step.NEW_MEDIA:
            draft = self._draft(state)
            draft.media.append(MediaRef(chat_id=event.chat_id, message_id=event.message_id))
            state.tmp = draft.model_dump(mode="json")
            await self.dialogs.set(event.user_id, state, now)
            await self._reply(event, f"Added media ({len(draft.media)}). Tap Done when finished or Skip.", KB_MEDIA)
            return
        if state is not None and state.step.flow == "new":
            # draft media must not reach the group before the draft is posted
            await self._prompt(event, state)
            return
        group = await self.announcer.group_id()
        if not group:
            await self._reply(event, "Group not linked. Send /setgroup in the group.")
            return
        if await self.notifier.copy_message(group, event.chat_id, event.message_id):
            await self._reply(event, "Sent to group ✓")

    # ── Update / close / snooze ───────────────────────────

    async def _on_report_id(self, event, state, parsed, now):
        value = _text(parsed)
        rid = parse_report_id(value) if value else ""
        if not rid:
            await self._prompt(event, state)
            return
        report = await self.store.get(rid)
        if report is None:
            await self._not_found(event, rid)
            return
        if state.step == Step.CLOSE_REPORT_ID and report.status == ReportStatus.CLOSED:
            await self._already_closed(event, rid)
            return
        state.report_id = rid
        nxt = {
            Step.UPDATE_REPORT_ID: Step.UPDATE_AWAIT_TEXT,
            Step.CLOSE_REPORT_ID: Step.CLOSE_AWAIT_TEXT,
            Step.SNOOZE_REPORT_ID: Step.SNOOZE_AWAIT_DUR,
        }[state.step]
        await self._advance(event, state, nxt, now)

    async def _on_update_text(self, event, state, parsed, now):
        if _is_control(parsed, ControlKind.TYPE):
            await self._advance(event, state, Step.UPDATE_CUSTOM_TEXT, now)
            return
        await self._on_update_custom_text(event, state, parsed, now)

    async def _on_update_custom_text(self, event, state, parsed, now):
        text = _text(parsed)
        if text is None:
            await self._prompt(event, state)
            return
        try:
            report = await self.store.require(state.report_id)
        except ReportNotFound:
            await self._not_found(event, state.report_id)
            return
        report.apply_update(text, event.user_id, now)
        await self.store.save(report)
        await self.store.add_to_open_index(report.id)
        await self.dialogs.clear(event.user_id)
        logger.info("Report %s updated by %s", report.id, event.user_id)
        await self._reply(event, f"Updated #{report.id}", KB_MAIN)
        await self.announcer.announce(formatter.format_update(report.id, text))

    async def _on_close_text(self, event, state, parsed, now):
        text = _text(parsed)
        if text is None:
            await self._prompt(event, state)
            return
        try:
            report = await self.store.require(state.report_id)
        except ReportNotFound:
            await self._not_found(event, state.report_id)
            return
        if report.status == ReportStatus.CLOSED:
            await self._already_closed(event, report.id)
            return
        report.apply_close(text, event.user_id, now)
        await self.store.save(report)
        await self.store.remove_from_open_index(report.id)
        await self.dialogs.clear(event.user_id)
        logger.info("Report %s closed by %s", report.id, event.user_id)
        await self._reply(event, f"Closed #{report.id}", KB_MAIN)
        await self.announcer.announce(formatter.format_close(report.id, text))

    async def _on_duration(self, event, state, parsed, now):
        duration = parse_duration(_text(parsed) or "")
        if duration is None:
            await self._reply(event, "Use 2h/4h/1d or type like 4h/2d", KB_SNOOZE)
            return
        report = await self._snooze(event, state.report_id, duration, now)
        if report is None:
            return
        await self.dialogs.clear(event.user_id)
        await self._reply(event, f"Snoozed #{report.id}", KB_MAIN)

    async def _snooze(self, event: InboundEvent, report_id: str, duration: timedelta,
                      now: datetime) -> Report | None:
        try:
            report = await self.store.require(report_id)
        except ReportNotFound:
            await self._not_found(event, report_id)
            return None
        until = now + duration
        hours = round(duration.total_seconds() / 3600)
        report.apply_snooze(until, f"snoozed {hours}h", event.user_id, now)
        await self.store.save(report)
        await self.store.add_to_open_index(report.id)
        logger.info("Report %s snoozed until %s", report.id, until.isoformat())
        await self.announcer.announce(formatter.format_snooze(report.id, until))
        return report

    # ── Buttons ───────────────────────────────────────────

    async def _handle_callback(self, event: InboundEvent) -> None:
        data = event.callback_data or ""
        now = self._clock()

        if data in (CB_POST, CB_CANCEL):
            state = await self.dialogs.get(event.user_id, now)
            if state is None or state.step != Step.NEW_CONFIRM:
                await self._answer(event, "No draft")
                return
            if data == CB_CANCEL:
                await self._answer(event, "Canceled")
                await self._cancel_draft(event)
                return
            await self._answer(event, "Posted")
            await self._post_draft(event, state)
            return

        action, report_id = "", ""
        for prefix in (CB_UPDATE, CB_SNOOZE, CB_CLOSE, CB_SKIP):
            if data.startswith(prefix + ":"):
                action, report_id = prefix, data[len(prefix) + 1:]
                break
        if not action or not report_id:
            logger.warning("Unknown callback data %r from user %s", data, event.user_id)
            await self._answer(event)
            return

        report = await self.store.get(report_id)
        if report is None:
            await self._answer(event, "Report not found")
            await self._not_found(event, report_id)
            return

        if action == CB_UPDATE:
            await self._answer(event)
            await self._advance(event, DialogState(step=Step.UPDATE_AWAIT_TEXT, report_id=report_id),
                                Step.UPDATE_AWAIT_TEXT, now)
        elif action == CB_CLOSE:
            if report.status == ReportStatus.CLOSED:
                await self._answer(event, "Already closed")
                await self._already_closed(event, report_id)
                return
            await self._answer(event)
            await self._advance(event, DialogState(step=Step.CLOSE_AWAIT_TEXT, report_id=report_id),
                                Step.CLOSE_AWAIT_TEXT, now)
        elif action == CB_SNOOZE:
            hours = self.settings.reminders.quick_snooze_hours
            await self._answer(event, f"Snoozed {hours}h")
            if await self._snooze(event, report_id, timedelta(hours=hours), now):
                await self._reply(event, f"Snoozed #{report_id} for {hours}h", KB_MAIN)
        else:
            report.last_reminder_at = now
            await self.store.save(report)
            await self._answer(event, "Skipped")

    async def _answer(self, event: InboundEvent, text: str | None = None) -> None:
        if event.callback_id:
            await self.notifier.answer_callback(event.callback_id, text)
