"""
Driver registry: rally participants with their vehicle and contact details.
"""

import logging
from typing import Any, Dict, List, Optional

from rally_watchdog.core.errors import NotFoundError, ValidationError
from rally_watchdog.models.driver_model import Driver, DriverCreate, DriverUpdate
from rally_watchdog.services.store import ASCENDING, DESCENDING, DRIVERS, Store
from rally_watchdog.utils.helpers import clean_text
from rally_watchdog.utils.validators import validate_phone_number

logger = logging.getLogger(__name__)

REQUIRED_DRIVER_FIELDS = {
    "vehicle_number": "Vehicle number is required.",
    "driver_name": "Driver name is required.",
    "phone_number": "Phone number is required.",
}

OPTIONAL_DRIVER_FIELDS = ("license_plate", "vehicle_make", "vehicle_model", "emergency_contact")


def _validate_driver_fields(values: Dict[str, Any], required: bool) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    for field, message in REQUIRED_DRIVER_FIELDS.items():
        if field not in values and not required:
            continue
        if not clean_text(values.get(field)):
            errors[field] = message

    phone = clean_text(values.get("phone_number"))
    if phone and not validate_phone_number(phone):
        errors["phone_number"] = "Phone number must contain 7-15 digits."
    return errors


def _clean(values: Dict[str, Any]) -> Dict[str, Any]:
    cleaned = {}
    for field, value in values.items():
        text = clean_text(value)
        if field in OPTIONAL_DRIVER_FIELDS:
            cleaned[field] = text or None
        else:
            cleaned[field] = text
    return cleaned


class DriverRegistry:
    def __init__(self, store: Store):
        self.store = store

    async def find_by_vehicle_number(self, vehicle_number: str) -> Optional[Driver]:
        """
        Driver registered for a vehicle number.

        Vehicle numbers are not enforced unique; when several drivers share
        one, the most recently updated registration wins.
        """
        vehicle_number = clean_text(vehicle_number)
        if not vehicle_number:
            return None

        matches = await self.store.query(
            DRIVERS,
            {"vehicle_number": vehicle_number},
            order=[("updated_at", DESCENDING)],
            limit=2,
        )
        if not matches:
            return None
        if len(matches) > 1:
            logger.warning(
                f"⚠️ Multiple drivers registered for vehicle {vehicle_number}; "
                f"using most recently updated ({matches[0]['id']})"
            )
        return Driver(**matches[0])

    async def get_driver(self, driver_id: str) -> Driver:
        row = await self.store.get(DRIVERS, driver_id)
        if row is None:
            raise NotFoundError("driver", driver_id)
        return Driver(**row)

    async def list_drivers(self, search: Optional[str] = None) -> List[Driver]:
        rows = await self.store.query(DRIVERS, order=[("vehicle_number", ASCENDING)])
        drivers = [Driver(**row) for row in rows]

        term = clean_text(search).lower()
        if term:
            drivers = [
                d for d in drivers
                if term in d.vehicle_number.lower()
                or term in d.driver_name.lower()
                or term in (d.phone_number or "").lower()
            ]
        return drivers

    async def create_driver(self, payload: DriverCreate) -> Driver:
        values = payload.model_dump()
        errors = _validate_driver_fields(values, required=True)
        if errors:
            raise ValidationError(errors)

        values = _clean(values)
        existing = await self.store.count(DRIVERS, {"vehicle_number": values["vehicle_number"]})
        if existing:
            logger.warning(f"⚠️ Vehicle number {values['vehicle_number']} already registered ({existing} driver(s))")

        row = await self.store.insert(DRIVERS, values)
        logger.info(f"✅ Driver {row['id']} registered for vehicle {row['vehicle_number']}")
        return Driver(**row)

    async def update_driver(self, driver_id: str, payload: DriverUpdate) -> Driver:
        values = payload.model_dump(exclude_unset=True)
        errors = _validate_driver_fields(values, required=False)
        if errors:
            raise ValidationError(errors)

        if values:
            matched = await self.store.update(DRIVERS, driver_id, _clean(values))
            if not matched:
                raise NotFoundError("driver", driver_id)
        return await self.get_driver(driver_id)

    async def delete_driver(self, driver_id: str) -> None:
        deleted = await self.store.delete(DRIVERS, driver_id)
        if not deleted:
            raise NotFoundError("driver", driver_id)
        logger.info(f"🗑️ Driver {driver_id} removed from registry")
