"""Tests for the driver registry."""

from __future__ import annotations

from datetime import timedelta

import pytest

from rally_watchdog.core.errors import NotFoundError, ValidationError
from rally_watchdog.models.driver_model import DriverCreate, DriverUpdate
from rally_watchdog.services.driver_service import DriverRegistry
from rally_watchdog.services.store import DRIVERS
from tests.conftest import START, register_driver


class TestCreateDriver:
    @pytest.mark.asyncio
    async def test_registers_driver(self, store):
        driver = await register_driver(store, license_plate="  ", vehicle_make=" Subaru ")
        assert driver.vehicle_number == "007"
        assert driver.license_plate is None
        assert driver.vehicle_make == "Subaru"
        assert (await DriverRegistry(store).get_driver(driver.id)).driver_name == "Jane Rally"

    @pytest.mark.asyncio
    async def test_required_fields(self, store):
        with pytest.raises(ValidationError) as exc_info:
            await DriverRegistry(store).create_driver(DriverCreate(vehicle_number="12"))
        assert set(exc_info.value.fields) == {"driver_name", "phone_number"}
        assert await store.count(DRIVERS) == 0

    @pytest.mark.asyncio
    async def test_rejects_bad_phone(self, store):
        with pytest.raises(ValidationError) as exc_info:
            await register_driver(store, phone_number="call me")
        assert set(exc_info.value.fields) == {"phone_number"}

    @pytest.mark.asyncio
    async def test_duplicate_vehicle_number_is_allowed(self, store):
        await register_driver(store)
        await register_driver(store, driver_name="Co Driver")
        assert await store.count(DRIVERS, {"vehicle_number": "007"}) == 2


class TestFindByVehicleNumber:
    @pytest.mark.asyncio
    async def test_most_recently_updated_wins(self, store):
        await store.insert(DRIVERS, {
            "vehicle_number": "007", "driver_name": "Older", "phone_number": "+27825550101",
            "created_at": START, "updated_at": START,
        })
        newer = await store.insert(DRIVERS, {
            "vehicle_number": "007", "driver_name": "Newer", "phone_number": "+27825550102",
            "created_at": START, "updated_at": START + timedelta(days=1),
        })

        driver = await DriverRegistry(store).find_by_vehicle_number(" 007 ")
        assert driver.id == newer["id"]

    @pytest.mark.asyncio
    async def test_no_match(self, store):
        registry = DriverRegistry(store)
        assert await registry.find_by_vehicle_number("999") is None
        assert await registry.find_by_vehicle_number("") is None


class TestListUpdateDelete:
    @pytest.mark.asyncio
    async def test_list_sorted_and_searchable(self, store):
        await register_driver(store, vehicle_number="22", driver_name="Bravo")
        await register_driver(store, vehicle_number="11", driver_name="Alpha")
        registry = DriverRegistry(store)

        assert [d.vehicle_number for d in await registry.list_drivers()] == ["11", "22"]
        assert [d.driver_name for d in await registry.list_drivers("brav")] == ["Bravo"]

    @pytest.mark.asyncio
    async def test_partial_update(self, store):
        driver = await register_driver(store)
        updated = await DriverRegistry(store).update_driver(driver.id, DriverUpdate(phone_number="+27 82 555 0999"))
        assert updated.phone_number == "+27 82 555 0999"
        assert updated.driver_name == "Jane Rally"

    @pytest.mark.asyncio
    async def test_update_cannot_blank_required_field(self, store):
        driver = await register_driver(store)
        with pytest.raises(ValidationError):
            await DriverRegistry(store).update_driver(driver.id, DriverUpdate(driver_name=" "))

    @pytest.mark.asyncio
    async def test_update_unknown(self, store):
        with pytest.raises(NotFoundError):
            await DriverRegistry(store).update_driver("ghost", DriverUpdate(driver_name="X"))

    @pytest.mark.asyncio
    async def test_delete(self, store):
        driver = await register_driver(store)
        registry = DriverRegistry(store)
        await registry.delete_driver(driver.id)
        with pytest.raises(NotFoundError):
            await registry.get_driver(driver.id)
        with pytest.raises(NotFoundError):
            await registry.delete_driver(driver.id)
