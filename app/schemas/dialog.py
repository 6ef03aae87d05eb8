from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Step(str, Enum):
    # new report
    NEW_ASSET = "new:asset"
    NEW_TRUCK_NUM = "new:truck_num"
    NEW_TRAILER_NUM = "new:trailer_num"
    NEW_PAIRED_TRUCK = "new:paired_truck"
    NEW_REPAIR_SIDE = "new:repair_side"
    NEW_PROBLEM = "new:problem"
    NEW_MEDIA = "new:media"
    NEW_PLAN = "new:plan"
    NEW_REPORTED_BY = "new:reported_by"
    NEW_REPORTED_BY_TEXT = "new:reported_by_text"
    NEW_CONFIRM = "new:confirm"
    # update
    UPDATE_REPORT_ID = "update:report_id"
    UPDATE_AWAIT_TEXT = "update:await_text"
    UPDATE_CUSTOM_TEXT = "update:custom_text"
    # close
    CLOSE_REPORT_ID = "close:report_id"
    CLOSE_AWAIT_TEXT = "close:await_text"
    # snooze
    SNOOZE_REPORT_ID = "snooze:report_id"
    SNOOZE_AWAIT_DUR = "snooze:await_dur"

    @property
    def flow(self) -> str:
        return self.value.split(":", 1)[0]


class DialogState(BaseModel):
    step: Step
    tmp: dict[str, Any] = Field(default_factory=dict)
    report_id: str | None = None
    expires_at: datetime | None = None
