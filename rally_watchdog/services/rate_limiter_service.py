#!/usr/bin/env python3
"""
Sliding-window rate limiting for incident report intake

Limits are computed per request by counting the submitter's reports inside
each trailing window. One count query per window.

- 3 reports per 3 hours
- 6 reports per 24 hours

The check and the later insert are not isolated from each other; concurrent
submissions from the same identity can both pass. The limiter deters abuse,
it is not a hard quota.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Sequence

from rally_watchdog.core.errors import RateLimitError
from rally_watchdog.services.identity_service import SubmitterIdentity
from rally_watchdog.services.store import ASCENDING, REPORTS, Store
from rally_watchdog.utils.helpers import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitWindow:
    name: str
    limit: int
    span: timedelta
    message: str


# Checked in order; the first exhausted window is the one reported
REPORT_RATE_LIMITS = (
    RateLimitWindow(
        name="3 reports / 3 hours",
        limit=3,
        span=timedelta(hours=3),
        message="You can only submit 3 incident reports every 3 hours. Please wait before submitting another report.",
    ),
    RateLimitWindow(
        name="6 reports / 24 hours",
        limit=6,
        span=timedelta(hours=24),
        message="You can only submit 6 incident reports within 24 hours. Please wait before submitting again tomorrow.",
    ),
)


class ReportRateLimiter:
    """Counts prior reports per submitter over each configured window."""

    def __init__(
        self,
        store: Store,
        windows: Sequence[RateLimitWindow] = REPORT_RATE_LIMITS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.windows = tuple(windows)
        self.clock = clock

    def _window_filter(self, identity: SubmitterIdentity, since: datetime) -> Dict[str, Any]:
        return {"submitter_key": identity.key, "created_at": {"$gte": since}}

    async def _retry_after(
        self, identity: SubmitterIdentity, window: RateLimitWindow, now: datetime, used: int
    ) -> Optional[timedelta]:
        """
        Time until enough reports roll out of the window to free one slot.

        With ``used`` reports in a window of ``limit``, the
        ``used - limit + 1``-th oldest one has to expire first.
        """
        since = now - window.span
        oldest = await self.store.query(
            REPORTS,
            self._window_filter(identity, since),
            order=[("created_at", ASCENDING)],
            limit=max(1, used - window.limit + 1),
        )
        if not oldest:
            return None
        return max(timedelta(0), oldest[-1]["created_at"] + window.span - now)

    async def check(self, identity: SubmitterIdentity, now: Optional[datetime] = None) -> None:
        """
        Raise RateLimitError if any window is exhausted for this identity.

        Args:
            identity: Resolved submitter identity
            now: Evaluation time; defaults to the limiter clock
        """
        now = now or self.clock()

        for window in self.windows:
            since = now - window.span
            count = await self.store.count(REPORTS, self._window_filter(identity, since))

            if count >= window.limit:
                retry_after = await self._retry_after(identity, window, now, count)
                logger.warning(
                    f"🚫 Rate limit '{window.name}' exceeded for {identity.kind} "
                    f"({count}/{window.limit})"
                )
                raise RateLimitError(
                    window=window.name,
                    message=window.message,
                    limit=window.limit,
                    retry_after=retry_after,
                )

        logger.debug(f"✅ Rate limit OK for {identity.kind} submitter")

    async def get_status(self, identity: SubmitterIdentity, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Current usage of every window for a submitter."""
        now = now or self.clock()
        windows = []
        for window in self.windows:
            since = now - window.span
            used = await self.store.count(REPORTS, self._window_filter(identity, since))
            entry = {
                "window": window.name,
                "limit": window.limit,
                "used": used,
                "remaining": max(0, window.limit - used),
                "retry_after_seconds": None,
            }
            if used >= window.limit:
                retry_after = await self._retry_after(identity, window, now, used)
                if retry_after is not None:
                    entry["retry_after_seconds"] = int(retry_after.total_seconds())
            windows.append(entry)

        return {
            "submitter": identity.kind,
            "allowed": all(w["remaining"] > 0 for w in windows),
            "windows": windows,
        }
