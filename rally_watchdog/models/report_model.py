from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field


class ReportStatus(str, Enum):
    PENDING = "pending"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    IGNORED = "ignored"


OTHER_INCIDENT_TYPE = "Other"

INCIDENT_TYPES = (
    "Speeding",
    "Reckless Driving",
    "Improper Overtaking",
    "Not Following Route",
    "Unsafe Behavior",
    "Equipment Violation",
    OTHER_INCIDENT_TYPE,
)

# lower-cased lookup -> canonical spelling
_INCIDENT_TYPE_LOOKUP: Dict[str, str] = {t.lower(): t for t in INCIDENT_TYPES}


def normalize_incident_type(value: Optional[str]) -> Optional[str]:
    """Canonical spelling of a recognized incident type, or None."""
    if not value:
        return None
    return _INCIDENT_TYPE_LOOKUP.get(" ".join(value.split()).lower())


class ReportCreate(BaseModel):
    """
    Incident report as submitted by a participant.

    Every field is optional at the schema level so the intake gate can
    report all missing fields together instead of failing on the first one.
    """
    vehicle_number: Optional[str] = None
    incident_type: Optional[str] = None
    incident_type_detail: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    reporter_name: Optional[str] = None
    reporter_contact: Optional[str] = None
    incident_time: Optional[datetime] = None
    media_url: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "vehicle_number": "007",
                "incident_type": "Speeding",
                "description": "cutting corners",
                "location": "km 45",
            }
        }


class Report(BaseModel):
    id: str
    report_number: str
    vehicle_number: str
    incident_type: str
    incident_type_detail: Optional[str] = None
    description: str
    location: Optional[str] = None
    reporter_name: Optional[str] = None
    reporter_contact: Optional[str] = None
    incident_time: Optional[datetime] = None
    media_url: Optional[str] = None
    status: ReportStatus = ReportStatus.PENDING
    driver_id: Optional[str] = None
    user_id: Optional[str] = None
    client_fingerprint: Optional[str] = None
    submitter_key: str
    created_at: datetime
    updated_at: datetime


class StatusUpdateRequest(BaseModel):
    status: ReportStatus


class AssignDriverRequest(BaseModel):
    driver_id: str = Field(..., min_length=1)
