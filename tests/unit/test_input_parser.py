from datetime import timedelta

import pytest

from app.schemas.report import AssetType
from app.services.input_parser import (
    MAX_UNIT_BYTES, Control, ControlKind, Text, classify, parse_asset, parse_duration, parse_report_id,
    parse_unit_number,
)


@pytest.mark.parametrize("raw,kind", [
    ("Back to menu", ControlKind.BACK),
    ("  back TO menu ", ControlKind.BACK),
    ("Cancel", ControlKind.CANCEL),
    ("Done", ControlKind.DONE),
    ("skip", ControlKind.SKIP),
    ("Custom (type)", ControlKind.TYPE),
    ("Other (type)", ControlKind.TYPE),
])
def test_classify_control_tokens(raw, kind):
    assert classify(raw) == Control(kind)


def test_classify_free_text_is_trimmed():
    assert classify("  waiting on a turbo  ") == Text("waiting on a turbo")


def test_classify_none_is_empty_text():
    assert classify(None) == Text("")


def test_classify_only_accepted_controls():
    assert classify("Done", {ControlKind.BACK}) == Text("Done")
    assert classify("cancel", {ControlKind.BACK}) == Text("cancel")
    assert classify("Back to menu", {ControlKind.BACK}) == Control(ControlKind.BACK)
    assert classify("Skip", set()) == Text("Skip")


def test_parse_asset_prefix_match():
    assert parse_asset("Truck") == AssetType.TRUCK
    assert parse_asset("TRAILER 88") == AssetType.TRAILER
    assert parse_asset(" truck") == AssetType.TRUCK


def test_parse_asset_rejects_other_input():
    assert parse_asset("van") is None
    assert parse_asset("") is None
    assert parse_asset("tr") is None


def test_parse_duration_hours_and_days():
    assert parse_duration("4h") == timedelta(hours=4)
    assert parse_duration("2d") == timedelta(hours=48)
    assert parse_duration("1D") == timedelta(days=1)
    assert parse_duration("12 h") == timedelta(hours=12)


@pytest.mark.parametrize("raw", ["", "h", "4", "4m", "1.5h", "-2h", "4 hours", "2w", "0h"])
def test_parse_duration_format_errors(raw):
    assert parse_duration(raw) is None


def test_parse_report_id_strips_hash():
    assert parse_report_id(" #4542-2 ") == "4542-2"
    assert parse_report_id("5678") == "5678"


def test_parse_unit_number_normalises_like_report_ids():
    assert parse_unit_number(" #4542 ") == "4542"
    assert parse_unit_number("4542") == parse_report_id("#4542")


def test_parse_unit_number_rejects_blank_and_long():
    assert parse_unit_number("  ") is None
    assert parse_unit_number("#") is None
    assert parse_unit_number("9" * MAX_UNIT_BYTES) == "9" * MAX_UNIT_BYTES
    assert parse_unit_number("9" * (MAX_UNIT_BYTES + 1)) is None
