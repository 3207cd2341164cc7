"""
Report status state machine.

    pending ──> investigating ──> resolved | ignored
       └──────────────────────────> resolved | ignored

resolved and ignored are terminal. Setting a report to the status it
already has is a no-op.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, FrozenSet, Tuple, Union

from rally_watchdog.core.errors import InvalidStatusTransitionError, NotFoundError
from rally_watchdog.models.report_model import Report, ReportStatus
from rally_watchdog.services.store import REPORTS, Store
from rally_watchdog.utils.helpers import utcnow

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[ReportStatus, FrozenSet[ReportStatus]] = {
    ReportStatus.PENDING: frozenset({
        ReportStatus.INVESTIGATING,
        ReportStatus.RESOLVED,
        ReportStatus.IGNORED,
    }),
    ReportStatus.INVESTIGATING: frozenset({ReportStatus.RESOLVED, ReportStatus.IGNORED}),
    ReportStatus.RESOLVED: frozenset(),
    ReportStatus.IGNORED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if not targets)

# Compare-and-set retries when another writer changes the row in between
MAX_STATUS_WRITE_ATTEMPTS = 3


def can_transition(current: Union[ReportStatus, str], target: Union[ReportStatus, str]) -> bool:
    current, target = ReportStatus(current), ReportStatus(target)
    return current == target or target in ALLOWED_TRANSITIONS[current]


async def set_report_status(
    store: Store,
    report_id: str,
    target: Union[ReportStatus, str],
    clock: Callable[[], datetime] = utcnow,
) -> Tuple[Report, bool]:
    """
    Move a report to ``target``.

    The write is conditioned on the status that was read, so a concurrent
    change is noticed and re-checked against the transition table.

    Returns:
        (report, changed): the report after the call and whether a write happened

    Raises:
        NotFoundError: No report with this id
        InvalidStatusTransitionError: Transition not allowed from the current state
    """
    target = ReportStatus(target)

    for _ in range(MAX_STATUS_WRITE_ATTEMPTS):
        row = await store.get(REPORTS, report_id)
        if row is None:
            raise NotFoundError("report", report_id)

        current = ReportStatus(row["status"])
        if current == target:
            return Report(**row), False
        if not can_transition(current, target):
            raise InvalidStatusTransitionError(current.value, target.value)

        now = clock()
        matched = await store.update(
            REPORTS,
            report_id,
            {"status": target.value, "updated_at": now},
            conditions={"status": current.value},
        )
        if matched:
            row.update({"status": target.value, "updated_at": now})
            logger.info(f"🔄 Report {row.get('report_number', report_id)} status {current.value} -> {target.value}")
            return Report(**row), True

        logger.info(f"Report {report_id} changed during status update; re-checking")

    # Still contended after retries: report what the row looks like now
    row = await store.get(REPORTS, report_id)
    if row is None:
        raise NotFoundError("report", report_id)
    raise InvalidStatusTransitionError(row["status"], target.value)
