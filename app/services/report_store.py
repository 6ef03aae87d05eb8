"""Report records and the open index, persisted through the KV store.

The open index is one stored list used as a set. Mutations are
read-modify-write, so two overlapping writers can lose an insert; an
existence check before append keeps duplicate ids out.
"""

from __future__ import annotations

import logging

from app.schemas.report import Report
from app.services.kv_store import KVStore

logger = logging.getLogger(__name__)

OPEN_INDEX_KEY = ("index", "open")


class ReportNotFound(Exception):
    def __init__(self, report_id: str):
        super().__init__(f"Report not found: {report_id}")
        self.report_id = report_id


def _report_key(report_id: str) -> tuple:
    return ("report", report_id)


class ReportStore:
    def __init__(self, kv: KVStore):
        self.kv = kv

    async def exists(self, report_id: str) -> bool:
        return await self.kv.get(_report_key(report_id)) is not None

    async def get(self, report_id: str) -> Report | None:
        raw = await self.kv.get(_report_key(report_id))
        if raw is None:
            return None
        return Report.model_validate(raw)

    async def require(self, report_id: str) -> Report:
        report = await self.get(report_id)
        if report is None:
            raise ReportNotFound(report_id)
        return report

    async def save(self, report: Report) -> None:
        await self.kv.set(_report_key(report.id), report.model_dump(mode="json"))

    async def create(self, report: Report) -> Report:
        """Persist a freshly allocated report and put it in the open index."""
        await self.save(report)
        await self.add_to_open_index(report.id)
        logger.info("Created report %s (%s %s)", report.id, report.asset.value, report.unit_number)
        return report

    async def open_ids(self) -> list[str]:
        return list(await self.kv.get(OPEN_INDEX_KEY, []))

    async def add_to_open_index(self, report_id: str) -> None:
        ids = await self.open_ids()
        if report_id not in ids:
            ids.append(report_id)
            await self.kv.set(OPEN_INDEX_KEY, ids)

    async def remove_from_open_index(self, report_id: str) -> None:
        ids = await self.open_ids()
        if report_id in ids:
            await self.kv.set(OPEN_INDEX_KEY, [i for i in ids if i != report_id])

    async def list_reports(self) -> list[Report]:
        """All stored reports, ordered by id."""
        return [Report.model_validate(v) for _, v in await self.kv.list(("report",))]
