"""
Intake gate for incident reports.

Validates the payload locally, enforces the submitter's sliding-window rate
limits, then persists exactly one report in status ``pending``.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, Optional

from rally_watchdog.core.auth import SessionContext
from rally_watchdog.core.errors import ValidationError
from rally_watchdog.models.report_model import (
    INCIDENT_TYPES,
    OTHER_INCIDENT_TYPE,
    Report,
    ReportCreate,
    ReportStatus,
    normalize_incident_type,
)
from rally_watchdog.services.driver_service import DriverRegistry
from rally_watchdog.services.identity_service import SubmitterIdentity, resolve_session_identity
from rally_watchdog.services.rate_limiter_service import ReportRateLimiter
from rally_watchdog.services.store import REPORTS, Store
from rally_watchdog.utils.helpers import clean_text, format_report_number, utcnow

logger = logging.getLogger(__name__)

REPORT_NUMBER_SEQUENCE = "report_number"

REQUIRED_REPORT_FIELDS = {
    "vehicle_number": "Vehicle number is required.",
    "incident_type": "Select an incident type.",
    "description": "Description is required.",
}


def validate_report(payload: ReportCreate) -> Dict[str, str]:
    """Every violated field with a user-facing message (empty when valid)."""
    errors: Dict[str, str] = {}

    for field, message in REQUIRED_REPORT_FIELDS.items():
        if not clean_text(getattr(payload, field)):
            errors[field] = message

    incident_type = clean_text(payload.incident_type)
    canonical = normalize_incident_type(incident_type)
    if incident_type and canonical is None:
        errors["incident_type"] = (
            f"Unknown incident type '{incident_type}'. Choose one of: {', '.join(INCIDENT_TYPES)}."
        )

    if clean_text(payload.incident_type_detail) and canonical not in (None, OTHER_INCIDENT_TYPE):
        errors["incident_type_detail"] = "Details are only accepted for incident type 'Other'."

    return errors


class IntakeGate:
    def __init__(
        self,
        store: Store,
        clock: Callable[[], datetime] = utcnow,
        report_number_prefix: str = "RW",
        rate_limiter: Optional[ReportRateLimiter] = None,
    ):
        self.store = store
        self.clock = clock
        self.report_number_prefix = report_number_prefix
        self.rate_limiter = rate_limiter or ReportRateLimiter(store, clock=clock)
        self.drivers = DriverRegistry(store)

    async def _assign_report_number(self, now: datetime) -> str:
        sequence = await self.store.next_sequence(REPORT_NUMBER_SEQUENCE)
        return format_report_number(sequence, now, self.report_number_prefix)

    async def submit_report(self, payload: ReportCreate, identity: SubmitterIdentity) -> Report:
        """
        Accept a new incident report.

        Args:
            payload: Report fields as submitted
            identity: Resolved submitter identity (user id or fingerprint)

        Returns:
            Report: The persisted report, status ``pending``

        Raises:
            ValidationError: One or more fields missing or malformed
            RateLimitError: A sliding window is exhausted for this submitter
        """
        errors = validate_report(payload)
        if errors:
            logger.info(f"Report rejected, invalid fields: {', '.join(errors)}")
            raise ValidationError(errors)

        now = self.clock()
        await self.rate_limiter.check(identity, now=now)

        vehicle_number = clean_text(payload.vehicle_number)
        incident_type = normalize_incident_type(clean_text(payload.incident_type))
        driver = await self.drivers.find_by_vehicle_number(vehicle_number)

        document = {
            "report_number": await self._assign_report_number(now),
            "vehicle_number": vehicle_number,
            "incident_type": incident_type,
            "incident_type_detail": clean_text(payload.incident_type_detail) or None,
            "description": clean_text(payload.description),
            "location": clean_text(payload.location) or None,
            "reporter_name": clean_text(payload.reporter_name) or None,
            "reporter_contact": clean_text(payload.reporter_contact) or None,
            "incident_time": payload.incident_time,
            "media_url": clean_text(payload.media_url) or None,
            "status": ReportStatus.PENDING.value,
            "driver_id": driver.id if driver else None,
            "user_id": identity.user_id,
            "client_fingerprint": identity.fingerprint,
            "submitter_key": identity.key,
            "created_at": now,
            "updated_at": now,
        }
        row = await self.store.insert(REPORTS, document)

        logger.info(
            f"📝 Report {row['report_number']} accepted for vehicle {vehicle_number} "
            f"({incident_type}); driver {'linked' if driver else 'not found'}"
        )
        return Report(**row)

    async def submit_session_report(self, payload: ReportCreate, context: SessionContext) -> Report:
        """
        Accept a report from an HTTP caller.

        A missing or malformed identity is reported in the same
        ValidationError as the payload's field errors.
        """
        errors = validate_report(payload)
        identity = None
        try:
            identity = resolve_session_identity(context)
        except ValidationError as e:
            errors.update(e.fields)

        if errors:
            logger.info(f"Report rejected, invalid fields: {', '.join(errors)}")
            raise ValidationError(errors)
        return await self.submit_report(payload, identity)
