"""Report id allocation.

A report is identified by the number of the unit the repair targets, so
field staff can look it up by the tag on the truck or trailer. A second
report for the same unit gets ``-2``, then ``-3`` and so on.
"""

from __future__ import annotations

from app.schemas.report import AssetType, ReportDraft
from app.services.report_store import ReportStore

UNKNOWN_ID = "unknown"


def base_id(draft: ReportDraft) -> str:
    if draft.repair_side == AssetType.TRUCK:
        return draft.truck_number or draft.paired_truck or draft.trailer_number or UNKNOWN_ID
    return draft.trailer_number or UNKNOWN_ID


async def allocate_id(store: ReportStore, draft: ReportDraft) -> str:
    """Return the first id derived from *draft* that no stored report uses."""
    base = base_id(draft)
    candidate = base
    n = 2
    while await store.exists(candidate):
        candidate = f"{base}-{n}"
        n += 1
    return candidate
