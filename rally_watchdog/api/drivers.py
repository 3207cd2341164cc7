"""
Driver registry routes for operators
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from rally_watchdog.core.auth import SessionContext, require_operator
from rally_watchdog.core.database import get_store
from rally_watchdog.models.driver_model import DriverCreate, DriverUpdate
from rally_watchdog.services.driver_service import DriverRegistry
from rally_watchdog.services.store import Store

router = APIRouter(prefix="/drivers", tags=["Drivers"])


def get_driver_registry(store: Store = Depends(get_store)) -> DriverRegistry:
    return DriverRegistry(store)


@router.get("")
async def list_drivers(
    search: Optional[str] = Query(None, description="Vehicle number, name or phone"),
    operator: SessionContext = Depends(require_operator),
    registry: DriverRegistry = Depends(get_driver_registry),
):
    drivers = await registry.list_drivers(search)
    return {"success": True, "count": len(drivers), "drivers": drivers}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_driver(
    payload: DriverCreate,
    operator: SessionContext = Depends(require_operator),
    registry: DriverRegistry = Depends(get_driver_registry),
):
    driver = await registry.create_driver(payload)
    return {"success": True, "message": "New driver has been added to the registry.", "driver": driver}


@router.get("/{driver_id}")
async def get_driver(
    driver_id: str,
    operator: SessionContext = Depends(require_operator),
    registry: DriverRegistry = Depends(get_driver_registry),
):
    return {"success": True, "driver": await registry.get_driver(driver_id)}


@router.put("/{driver_id}")
async def update_driver(
    driver_id: str,
    payload: DriverUpdate,
    operator: SessionContext = Depends(require_operator),
    registry: DriverRegistry = Depends(get_driver_registry),
):
    driver = await registry.update_driver(driver_id, payload)
    return {"success": True, "message": "Driver information has been updated.", "driver": driver}


@router.delete("/{driver_id}")
async def delete_driver(
    driver_id: str,
    operator: SessionContext = Depends(require_operator),
    registry: DriverRegistry = Depends(get_driver_registry),
):
    await registry.delete_driver(driver_id)
    return {"success": True, "message": "Driver has been removed from the registry."}
