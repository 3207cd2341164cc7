"""
Warning dispatch pipeline.

report -> target driver -> message -> notifier -> warning row -> status

The warning row is written for every attempt that reaches the notifier,
whatever the outcome, and before the report status is touched. Only a
``sent`` outcome resolves the report; ``failed`` and ``skipped`` leave it
as it was so an operator can retry. Repeated dispatches are not
deduplicated: each one adds a warning row.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, Optional, Tuple

from rally_watchdog.core.errors import (
    InvalidStatusTransitionError,
    MissingContactError,
    NotFoundError,
    NotifierError,
    NotifierNotConfiguredError,
    UnassignedDriverError,
)
from rally_watchdog.models.driver_model import Driver
from rally_watchdog.models.report_model import Report, ReportStatus
from rally_watchdog.models.warning_model import DeliveryStatus, DispatchResult, WarningRecord
from rally_watchdog.services.notifier_service import Notifier
from rally_watchdog.services.status_service import set_report_status
from rally_watchdog.services.store import DRIVERS, REPORTS, WARNINGS, Store
from rally_watchdog.utils.helpers import clean_text, utcnow

logger = logging.getLogger(__name__)

WARNING_TYPE_SMS = "sms"

RESULT_MESSAGES = {
    DeliveryStatus.SENT: "Warning SMS sent successfully",
    DeliveryStatus.SKIPPED: "SMS skipped; the warning was logged but not delivered",
    DeliveryStatus.FAILED: "Failed to send SMS; the warning was logged and can be retried",
}


def compose_warning_message(report: Report) -> str:
    """Deterministic SMS text for a report."""
    return (
        f"Rally Warning for vehicle #{report.vehicle_number}: "
        f"You have been reported for {report.incident_type}. "
        f"Please drive safely and follow rally regulations. "
        f"Report #{report.report_number}"
    )


def warning_parameters(report: Report) -> Dict[str, str]:
    return {
        "incident_type": report.incident_type,
        "report_number": report.report_number,
        "vehicle_number": report.vehicle_number,
    }


class WarningDispatcher:
    def __init__(
        self,
        store: Store,
        notifier: Notifier,
        clock: Callable[[], datetime] = utcnow,
        notifier_timeout: float = 10.0,
    ):
        self.store = store
        self.notifier = notifier
        self.clock = clock
        self.notifier_timeout = notifier_timeout

    async def _load_report(self, report_id: str) -> Report:
        row = await self.store.get(REPORTS, report_id)
        if row is None:
            raise NotFoundError("report", report_id)
        return Report(**row)

    async def _load_driver(self, report: Report, driver_id: Optional[str]) -> Driver:
        # Explicit driver wins over the report's linked driver
        target_driver_id = driver_id or report.driver_id
        if not target_driver_id:
            raise UnassignedDriverError(report.id)

        row = await self.store.get(DRIVERS, target_driver_id)
        if row is None:
            raise NotFoundError("driver", target_driver_id)

        driver = Driver(**row)
        if not clean_text(driver.phone_number):
            raise MissingContactError(driver.id)
        return driver

    async def _notify(self, driver: Driver, report: Report, message: str) -> Tuple[DeliveryStatus, Optional[str]]:
        """Call the notifier; every failure mode becomes a delivery status."""
        try:
            await asyncio.wait_for(
                self.notifier.send(
                    to=driver.phone_number,
                    text=message,
                    parameters=warning_parameters(report),
                    recipient_id=driver.driver_name or "driver",
                ),
                timeout=self.notifier_timeout,
            )
        except NotifierNotConfiguredError as e:
            logger.warning(f"⚠️ SMS skipped for report {report.report_number}: {e.message}")
            return DeliveryStatus.SKIPPED, e.message
        except NotifierError as e:
            logger.error(f"❌ SMS failed for report {report.report_number}: {e.message}")
            return DeliveryStatus.FAILED, e.message
        except asyncio.TimeoutError:
            reason = f"Notifier timed out after {self.notifier_timeout:g}s"
            logger.error(f"❌ SMS failed for report {report.report_number}: {reason}")
            return DeliveryStatus.FAILED, reason
        except Exception as e:
            logger.error(f"❌ Unexpected notifier error for report {report.report_number}: {e}", exc_info=True)
            return DeliveryStatus.FAILED, str(e) or type(e).__name__

        return DeliveryStatus.SENT, None

    async def _record_warning(
        self,
        report: Report,
        driver: Driver,
        message: str,
        status: DeliveryStatus,
        reason: Optional[str],
    ) -> WarningRecord:
        now = self.clock()
        row = await self.store.insert(WARNINGS, {
            "report_id": report.id,
            "driver_id": driver.id,
            "warning_type": WARNING_TYPE_SMS,
            "message": message,
            "delivery_status": status.value,
            "error_reason": reason,
            "sent_at": now,
            "created_at": now,
        })
        return WarningRecord(**row)

    async def _resolve_report(self, report: Report) -> ReportStatus:
        try:
            updated, _ = await set_report_status(
                self.store, report.id, ReportStatus.RESOLVED, clock=self.clock
            )
        except InvalidStatusTransitionError as e:
            # e.g. report was ignored: SMS went out, status stays terminal
            logger.warning(f"⚠️ Report {report.report_number} not resolved after SMS: {e.message}")
            return ReportStatus(e.current)
        return updated.status

    async def dispatch_warning(self, report_id: str, driver_id: Optional[str] = None) -> DispatchResult:
        """
        Send a warning SMS for a report and record the attempt.

        Args:
            report_id: Report to warn about
            driver_id: Optional explicit driver, overrides the report's link

        Returns:
            DispatchResult with the delivery status; notifier failures are
            reported here, not raised

        Raises:
            NotFoundError: Report or driver does not exist
            UnassignedDriverError: No driver given and none linked
            MissingContactError: Driver has no phone number (nothing recorded)
            StoreError: Database failure
        """
        report = await self._load_report(report_id)
        driver = await self._load_driver(report, driver_id)

        message = compose_warning_message(report)
        status, reason = await self._notify(driver, report, message)

        warning = await self._record_warning(report, driver, message, status, reason)
        logger.info(f"🧾 Warning {warning.id} recorded for report {report.report_number}: {status.value}")

        report_status = report.status
        if status == DeliveryStatus.SENT:
            report_status = await self._resolve_report(report)

        return DispatchResult(
            success=status == DeliveryStatus.SENT,
            delivery_status=status,
            message=RESULT_MESSAGES[status],
            reason=reason,
            warning_id=warning.id,
            report_id=report.id,
            driver_id=driver.id,
            report_status=report_status,
        )
