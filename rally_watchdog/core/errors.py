"""
Error taxonomy shared by the intake and dispatch services.

Every error except StoreError is converted into a structured, user-facing
response by the exception handlers in main.py. StoreError is the only
infrastructure failure and maps to 503.
"""

from datetime import timedelta
from typing import Any, Dict, Optional


class RallyWatchdogError(Exception):
    """Base class for all domain errors."""

    code = "error"
    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.code, "message": self.message}


class ValidationError(RallyWatchdogError):
    """Missing or malformed input. Carries every violated field at once."""

    code = "validation_error"
    status_code = 422

    def __init__(self, fields: Dict[str, str], message: Optional[str] = None):
        self.fields = dict(fields)
        if message is None:
            message = "Invalid or missing fields: " + ", ".join(self.fields)
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["fields"] = self.fields
        return body


class RateLimitError(RallyWatchdogError):
    """Submission throttled by one of the sliding windows."""

    code = "rate_limited"
    status_code = 429

    def __init__(
        self,
        window: str,
        message: str,
        limit: int,
        retry_after: Optional[timedelta] = None,
    ):
        self.window = window
        self.limit = limit
        self.retry_after = retry_after
        super().__init__(message)

    @property
    def retry_after_seconds(self) -> Optional[int]:
        if self.retry_after is None:
            return None
        return max(0, int(self.retry_after.total_seconds()))

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body.update({
            "window": self.window,
            "limit": self.limit,
            "retry_after_seconds": self.retry_after_seconds,
        })
        return body


class NotFoundError(RallyWatchdogError):
    code = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} {entity_id} not found")


class UnassignedDriverError(RallyWatchdogError):
    """Dispatch attempted for a report with no driver context."""

    code = "driver_unassigned"
    status_code = 409

    def __init__(self, report_id: str):
        self.report_id = report_id
        super().__init__(f"Driver not assigned to report {report_id}")


class MissingContactError(RallyWatchdogError):
    code = "missing_contact"
    status_code = 409

    def __init__(self, driver_id: str):
        self.driver_id = driver_id
        super().__init__(f"Driver {driver_id} has no phone number on record")


class InvalidStatusTransitionError(RallyWatchdogError):
    code = "invalid_status_transition"
    status_code = 409

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move report from '{current}' to '{target}'")


class NotifierError(RallyWatchdogError):
    """Outbound SMS failed. Downgraded to a recorded 'failed' outcome."""

    code = "notifier_error"
    status_code = 502


class NotifierNotConfiguredError(NotifierError):
    """SMS credentials absent. Downgraded to a recorded 'skipped' outcome."""

    code = "notifier_not_configured"


class StoreError(RallyWatchdogError):
    """Database unreachable or failed. Fatal for the request, never retried."""

    code = "store_unavailable"
    status_code = 503
