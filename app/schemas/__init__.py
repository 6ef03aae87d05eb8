"""Pydantic schemas for reports, dialogs, inbound events and keyboards."""

from app.schemas.report import (
    ReportStatus, AssetType, HistoryKind, HistoryEntry, MediaRef, ReportDraft, Report,
)
from app.schemas.dialog import Step, DialogState
from app.schemas.events import InboundEvent, ReminderSummary
from app.schemas.keyboards import ReplyKeyboard, InlineButton, InlineKeyboard, Keyboard

__all__ = [
    "ReportStatus", "AssetType", "HistoryKind", "HistoryEntry", "MediaRef",
    "ReportDraft", "Report",
    "Step", "DialogState",
    "InboundEvent", "ReminderSummary",
    "ReplyKeyboard", "InlineButton", "InlineKeyboard", "Keyboard",
]
