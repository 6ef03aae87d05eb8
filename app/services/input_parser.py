"""Classify free-text input into control tokens and parse field values.

Every conversational turn goes through ``classify`` once; the state machine
only ever sees a ``Control`` or a ``Text``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Iterable

from app.schemas.report import AssetType


class ControlKind(str, Enum):
    CANCEL = "cancel"
    BACK = "back"
    DONE = "done"
    SKIP = "skip"
    TYPE = "type"  # "Custom (type)" / "Other (type)" escape to free text


@dataclass(frozen=True)
class Control:
    kind: ControlKind


@dataclass(frozen=True)
class Text:
    value: str


Parsed = Control | Text

_CONTROL_TOKENS = {
    "cancel": ControlKind.CANCEL,
    "back to menu": ControlKind.BACK,
    "done": ControlKind.DONE,
    "skip": ControlKind.SKIP,
    "custom (type)": ControlKind.TYPE,
    "other (type)": ControlKind.TYPE,
}

_DURATION_RE = re.compile(r"^(\d+)\s*(h|d)$")

# Report ids ride in reminder callback data, which Telegram caps at 64 bytes.
MAX_UNIT_BYTES = 40


def classify(raw: str | None, accepts: Iterable[ControlKind] | None = None) -> Parsed:
    """Classify *raw* as a control token or free text.

    Only kinds listed in *accepts* are recognised (all of them when None),
    so "Done" typed as a problem description stays text.
    """
    text = (raw or "").strip()
    kind = _CONTROL_TOKENS.get(text.lower())
    if kind is not None and (accepts is None or kind in accepts):
        return Control(kind)
    return Text(text)


def parse_asset(s: str) -> AssetType | None:
    """Case-insensitive prefix match: "truck 12" -> Truck, "TRAILER" -> Trailer."""
    t = s.strip().lower()
    if t.startswith("truck"):
        return AssetType.TRUCK
    if t.startswith("trailer"):
        return AssetType.TRAILER
    return None


def parse_duration(s: str) -> timedelta | None:
    """Parse ``<int>h`` / ``<int>d``; anything else (including zero) is None."""
    m = _DURATION_RE.match(s.strip().lower())
    if not m:
        return None
    n = int(m.group(1))
    if n == 0:
        return None
    return timedelta(hours=n) if m.group(2) == "h" else timedelta(days=n)


def parse_report_id(s: str) -> str:
    return s.strip().lstrip("#").strip()


def parse_unit_number(s: str) -> str | None:
    """Normalise a truck/trailer number the same way ids are looked up.

    Blank or over-long numbers are None.
    """
    value = parse_report_id(s)
    if not value or len(value.encode("utf-8")) > MAX_UNIT_BYTES:
        return None
    return value
