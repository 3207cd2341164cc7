from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class DriverCreate(BaseModel):
    """Registry entry as entered by an operator."""
    vehicle_number: Optional[str] = None
    driver_name: Optional[str] = None
    phone_number: Optional[str] = None
    license_plate: Optional[str] = None
    vehicle_make: Optional[str] = None
    vehicle_model: Optional[str] = None
    emergency_contact: Optional[str] = None


class DriverUpdate(DriverCreate):
    """Partial update; only fields that are sent are changed."""
    pass


class Driver(BaseModel):
    id: str
    driver_name: str
    phone_number: Optional[str] = None
    vehicle_number: str
    license_plate: Optional[str] = None
    vehicle_make: Optional[str] = None
    vehicle_model: Optional[str] = None
    emergency_contact: Optional[str] = None
    created_at: datetime
    updated_at: datetime
