"""Shared fixtures: in-process MongoDB, a controllable clock and a scripted notifier."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Any

import pytest
from mongomock_motor import AsyncMongoMockClient

from rally_watchdog.core.errors import NotifierError, NotifierNotConfiguredError
from rally_watchdog.models.driver_model import DriverCreate
from rally_watchdog.models.report_model import ReportCreate
from rally_watchdog.services.driver_service import DriverRegistry
from rally_watchdog.services.mongodb_service import MongoStore
from rally_watchdog.services.notifier_service import Notifier

START = datetime(2026, 5, 1, 12, 0, 0)


class FakeClock:
    """Settable time source passed wherever services take ``clock``."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class ScriptedNotifier(Notifier):
    """Notifier whose outcome is chosen by the test: sent, failed, skipped or hang."""

    def __init__(self, outcome: str = "sent") -> None:
        self.outcome = outcome
        self.calls: list[dict[str, Any]] = []

    async def send(self, to, text, parameters=None, recipient_id=None) -> None:
        self.calls.append({
            "to": to,
            "text": text,
            "parameters": parameters,
            "recipient_id": recipient_id,
        })
        if self.outcome == "failed":
            raise NotifierError("NotificationAPI request failed with status 500")
        if self.outcome == "skipped":
            raise NotifierNotConfiguredError("NotificationAPI credentials are not configured")
        if self.outcome == "crash":
            raise RuntimeError("socket closed")
        if self.outcome == "hang":
            await asyncio.sleep(10)


class RacingStore(MongoStore):
    """MongoStore where another writer changes the status right before the next conditional update."""

    def __init__(self, database, race_to: str) -> None:
        super().__init__(database)
        self.race_to = race_to
        self.races = 0

    async def update(self, table, entity_id, fields, conditions=None):
        if conditions and self.race_to is not None:
            await super().update(table, entity_id, {"status": self.race_to})
            self.race_to = None
            self.races += 1
        return await super().update(table, entity_id, fields, conditions=conditions)


def make_racing_store(race_to: str) -> RacingStore:
    return RacingStore(AsyncMongoMockClient()["rally_watchdog_test"], race_to)


@pytest.fixture
def store() -> MongoStore:
    client = AsyncMongoMockClient()
    return MongoStore(client["rally_watchdog_test"])


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> ScriptedNotifier:
    return ScriptedNotifier()


def make_report_payload(**overrides: Any) -> ReportCreate:
    values = {
        "vehicle_number": "007",
        "incident_type": "Speeding",
        "description": "cutting corners",
        "location": "km 45",
    }
    values.update(overrides)
    return ReportCreate(**values)


async def register_driver(store: MongoStore, **overrides: Any):
    values = {
        "vehicle_number": "007",
        "driver_name": "Jane Rally",
        "phone_number": "+27 82 555 0101",
    }
    values.update(overrides)
    return await DriverRegistry(store).create_driver(DriverCreate(**values))
