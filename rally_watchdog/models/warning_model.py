from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from rally_watchdog.models.report_model import ReportStatus


class DeliveryStatus(str, Enum):
    SENT = "sent"
    SKIPPED = "skipped"  # notifier not configured
    FAILED = "failed"    # notifier error or timeout


class WarningRecord(BaseModel):
    """Audit record of one dispatch attempt. Written once, never updated."""
    id: str
    report_id: str
    driver_id: str
    warning_type: str = "sms"
    message: str
    delivery_status: DeliveryStatus
    error_reason: Optional[str] = None
    sent_at: datetime


class DispatchRequest(BaseModel):
    report_id: str = Field(..., min_length=1)
    driver_id: Optional[str] = None


class DispatchResult(BaseModel):
    success: bool
    delivery_status: DeliveryStatus
    message: str
    reason: Optional[str] = None
    warning_id: str
    report_id: str
    driver_id: str
    report_status: ReportStatus
