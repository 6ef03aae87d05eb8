from datetime import datetime, timedelta, timezone

from app.schemas.report import AssetType, MediaRef, Report, ReportDraft
from app.services.formatter import (
    format_close, format_draft, format_history, format_reminder, format_report,
    format_snooze, format_update,
)

T0 = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


def _truck_report(**overrides) -> Report:
    data = dict(
        id="4542", asset=AssetType.TRUCK, truck_number="4542", repair_side=AssetType.TRUCK,
        problem="brake fade", plan="tow to shop", reported_by="Dan Miller",
        reported_by_user_id=1001, created_at=T0, last_update_at=T0,
    )
    data.update(overrides)
    return Report(**data)


def test_format_report_fixed_layout():
    assert format_report(_truck_report(), "OPEN") == (
        "#4542 [OPEN]\n"
        "Asset: Truck 4542\n"
        "Repair side: Truck\n"
        "Problem: brake fade\n"
        "Plan: tow to shop\n"
        "Reported by: Dan Miller"
    )


def test_format_report_is_stable():
    report = _truck_report()
    assert format_report(report, "CLOSED") == format_report(report, "CLOSED")


def test_format_report_survives_serialisation():
    report = _truck_report()
    again = Report.model_validate(report.model_dump(mode="json"))
    assert format_report(again, "OPEN") == format_report(report, "OPEN")


def test_format_trailer_with_paired_truck():
    report = _truck_report(
        id="T77", asset=AssetType.TRAILER, truck_number=None, trailer_number="T77",
        paired_truck="4542", repair_side=AssetType.TRAILER,
    )
    text = format_report(report, "SNOOZED")
    assert text.splitlines()[0] == "#T77 [SNOOZED]"
    assert "Asset: Trailer T77 (paired truck 4542)" in text
    assert "Repair side: Trailer" in text


def test_format_draft_counts_media_and_defaults_reporter():
    draft = ReportDraft(
        asset=AssetType.TRUCK, truck_number="4542", repair_side=AssetType.TRUCK,
        problem="leak", plan="replace hose",
        media=[MediaRef(chat_id=1, message_id=5), MediaRef(chat_id=1, message_id=6)],
    )
    text = format_draft(draft, "Dan Miller")
    assert "Reported by: Dan Miller" in text
    assert text.endswith("Media: 2 file(s)")


def test_format_draft_without_media():
    draft = ReportDraft(asset=AssetType.TRAILER, trailer_number="88", repair_side=AssetType.TRAILER,
                        problem="tire", plan="swap", reported_by="Ana")
    text = format_draft(draft, "Dan Miller")
    assert "Asset: Trailer 88" in text
    assert "Reported by: Ana" in text
    assert text.endswith("Media: none")


def test_lifecycle_announcements():
    assert format_update("4542", "Rolling") == "#4542 [UPDATE]\nRolling"
    assert format_close("4542", "fixed") == "#4542 [CLOSED]\nResolution: fixed"
    assert format_snooze("4542", T0 + timedelta(hours=4)) == "#4542 [SNOOZED] until 2026-03-02 12:00 UTC"


def test_format_reminder_omits_paired_truck():
    report = _truck_report(
        id="T77", asset=AssetType.TRAILER, truck_number=None, trailer_number="T77",
        paired_truck="4542", repair_side=AssetType.TRAILER,
    )
    assert format_reminder(report) == (
        "Reminder for #T77\n"
        "Asset: Trailer T77\n"
        "Problem: brake fade\n"
        "Last update: 2026-03-02 08:00 UTC\n"
        "\n"
        "Need an update?"
    )


def test_format_history_empty():
    assert format_history(_truck_report()) == "History: none"


def test_format_history_lists_entries():
    report = _truck_report()
    report.apply_update("Rolling", 1001, T0 + timedelta(hours=1))
    report.apply_close("done", 1001, T0 + timedelta(hours=2))
    assert format_history(report) == (
        "History:\n"
        "- 2026-03-02 09:00 UTC [update] Rolling\n"
        "- 2026-03-02 10:00 UTC [close] done"
    )
