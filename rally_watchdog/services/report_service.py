"""Operator-side report review: lookup, listing, driver assignment, warning history."""

import logging
import re
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from rally_watchdog.core.errors import NotFoundError
from rally_watchdog.models.report_model import Report, ReportStatus
from rally_watchdog.models.warning_model import WarningRecord
from rally_watchdog.services.store import DESCENDING, DRIVERS, REPORTS, WARNINGS, Store
from rally_watchdog.utils.helpers import clean_text, utcnow

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ("vehicle_number", "report_number", "description", "incident_type")
DEFAULT_LIST_LIMIT = 100


class ReportReviewService:
    def __init__(self, store: Store, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    async def get_report(self, report_id: str) -> Report:
        row = await self.store.get(REPORTS, report_id)
        if row is None:
            raise NotFoundError("report", report_id)
        return Report(**row)

    async def list_reports(
        self,
        status: Optional[ReportStatus] = None,
        search: Optional[str] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> List[Report]:
        """Newest first, optionally filtered by status and a free-text term."""
        filters: Dict[str, Any] = {}
        if status is not None:
            filters["status"] = ReportStatus(status).value

        term = clean_text(search)
        if term:
            pattern = re.escape(term)
            filters["$or"] = [
                {field: {"$regex": pattern, "$options": "i"}} for field in SEARCH_FIELDS
            ]

        rows = await self.store.query(
            REPORTS, filters, order=[("created_at", DESCENDING)], limit=limit
        )
        return [Report(**row) for row in rows]

    async def assign_driver(self, report_id: str, driver_id: str) -> Report:
        if await self.store.get(DRIVERS, driver_id) is None:
            raise NotFoundError("driver", driver_id)

        matched = await self.store.update(
            REPORTS, report_id, {"driver_id": driver_id, "updated_at": self.clock()}
        )
        if not matched:
            raise NotFoundError("report", report_id)

        logger.info(f"🔗 Report {report_id} linked to driver {driver_id}")
        return await self.get_report(report_id)

    async def list_warnings(self, report_id: str) -> List[WarningRecord]:
        if await self.store.get(REPORTS, report_id) is None:
            raise NotFoundError("report", report_id)
        rows = await self.store.query(
            WARNINGS, {"report_id": report_id}, order=[("sent_at", DESCENDING)]
        )
        return [WarningRecord(**row) for row in rows]
