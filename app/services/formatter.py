"""Plain-text rendering of reports, drafts and lifecycle announcements."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from app.schemas.report import AssetType, Report, ReportDraft

Tag = Literal["OPEN", "UPDATE", "CLOSED", "SNOOZED"]


def format_time(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def _asset_line(asset: AssetType | None, truck: str | None, trailer: str | None,
                paired: str | None, with_paired: bool = True) -> str:
    if asset == AssetType.TRUCK:
        return f"Truck {truck or '?'}"
    line = f"Trailer {trailer or '?'}"
    if with_paired and paired:
        line += f" (paired truck {paired})"
    return line


def format_report(report: Report, tag: Tag) -> str:
    return "\n".join([
        f"#{report.id} [{tag}]",
        "Asset: " + _asset_line(report.asset, report.truck_number, report.trailer_number, report.paired_truck),
        f"Repair side: {report.repair_side.value}",
        f"Problem: {report.problem}",
        f"Plan: {report.plan}",
        f"Reported by: {report.reported_by}",
    ])


def format_draft(draft: ReportDraft, default_reported_by: str) -> str:
    """Preview shown before the user confirms posting."""
    media = f"Media: {len(draft.media)} file(s)" if draft.media else "Media: none"
    side = draft.repair_side.value if draft.repair_side else "?"
    return "\n".join([
        "Asset: " + _asset_line(draft.asset, draft.truck_number, draft.trailer_number, draft.paired_truck),
        f"Repair side: {side}",
        f"Problem: {draft.problem or ''}",
        f"Plan: {draft.plan or ''}",
        f"Reported by: {draft.reported_by or default_reported_by}",
        media,
    ])


def format_update(report_id: str, text: str) -> str:
    return f"#{report_id} [UPDATE]\n{text}"


def format_close(report_id: str, resolution: str) -> str:
    return f"#{report_id} [CLOSED]\nResolution: {resolution}"


def format_snooze(report_id: str, until: datetime) -> str:
    return f"#{report_id} [SNOOZED] until {format_time(until)}"


def format_reminder(report: Report) -> str:
    asset = _asset_line(report.asset, report.truck_number, report.trailer_number, None, with_paired=False)
    return "\n".join([
        f"Reminder for #{report.id}",
        f"Asset: {asset}",
        f"Problem: {report.problem}",
        f"Last update: {format_time(report.last_update_at)}",
        "",
        "Need an update?",
    ])


def format_history(report: Report) -> str:
    if not report.history:
        return "History: none"
    lines = ["History:"]
    for h in report.history:
        lines.append(f"- {format_time(h.at)} [{h.kind.value}] {h.text}")
    return "\n".join(lines)
