from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class ReportStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    SNOOZED = "snoozed"


class AssetType(str, Enum):
    TRUCK = "Truck"
    TRAILER = "Trailer"


class HistoryKind(str, Enum):
    UPDATE = "update"
    CLOSE = "close"
    SNOOZE = "snooze"


class HistoryEntry(BaseModel):
    at: datetime
    by: int | None = None
    text: str
    kind: HistoryKind


class MediaRef(BaseModel):
    chat_id: int
    message_id: int


class ReportDraft(BaseModel):
    """Fields collected by the new-report flow before the report exists."""

    asset: AssetType | None = None
    truck_number: str | None = None
    trailer_number: str | None = None
    paired_truck: str | None = None
    repair_side: AssetType | None = None
    problem: str | None = None
    plan: str | None = None
    reported_by: str | None = None
    media: list[MediaRef] = Field(default_factory=list)


class Report(BaseModel):
    id: str
    status: ReportStatus = ReportStatus.OPEN
    asset: AssetType
    truck_number: str | None = None
    trailer_number: str | None = None
    paired_truck: str | None = None  # only when asset is Trailer
    repair_side: AssetType
    problem: str
    plan: str
    reported_by: str
    reported_by_user_id: int | None = None
    created_at: datetime
    last_update_at: datetime
    last_reminder_at: datetime | None = None
    snoozed_until: datetime | None = None
    history: list[HistoryEntry] = Field(default_factory=list)
    media: list[MediaRef] = Field(default_factory=list)

    @property
    def unit_number(self) -> str | None:
        """Number of the reported unit itself."""
        return self.truck_number if self.asset == AssetType.TRUCK else self.trailer_number

    @property
    def paired_number(self) -> str | None:
        return self.paired_truck if self.asset == AssetType.TRAILER else None

    def is_snoozed(self, now: datetime) -> bool:
        return self.snoozed_until is not None and self.snoozed_until > now

    def _touch(self, now: datetime) -> None:
        if now > self.last_update_at:
            self.last_update_at = now

    def apply_update(self, text: str, by: int | None, now: datetime) -> None:
        """Record a progress update; re-opens a snoozed report."""
        self.status = ReportStatus.OPEN
        self.snoozed_until = None
        self._touch(now)
        self.history.append(HistoryEntry(at=now, by=by, text=text, kind=HistoryKind.UPDATE))

    def apply_close(self, resolution: str, by: int | None, now: datetime) -> None:
        self.status = ReportStatus.CLOSED
        self.snoozed_until = None
        self._touch(now)
        self.history.append(HistoryEntry(at=now, by=by, text=resolution, kind=HistoryKind.CLOSE))

    def apply_snooze(self, until: datetime, text: str, by: int | None, now: datetime) -> None:
        self.status = ReportStatus.SNOOZED
        self.snoozed_until = until
        self.history.append(HistoryEntry(at=now, by=by, text=text, kind=HistoryKind.SNOOZE))
