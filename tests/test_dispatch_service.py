"""Tests for the warning dispatch pipeline."""

from __future__ import annotations

import pytest

from rally_watchdog.core.errors import MissingContactError, NotFoundError, UnassignedDriverError
from rally_watchdog.models.report_model import ReportStatus
from rally_watchdog.models.warning_model import DeliveryStatus
from rally_watchdog.services.dispatch_service import WarningDispatcher, compose_warning_message
from rally_watchdog.services.identity_service import resolve_identity
from rally_watchdog.services.intake_service import IntakeGate
from rally_watchdog.services.status_service import set_report_status
from rally_watchdog.services.store import DRIVERS, REPORTS, WARNINGS
from tests.conftest import ScriptedNotifier, make_racing_store, make_report_payload, register_driver


async def _submit(store, clock, **overrides):
    gate = IntakeGate(store, clock=clock)
    return await gate.submit_report(make_report_payload(**overrides), resolve_identity(user_id="u1"))


async def _warnings(store, report_id):
    return await store.query(WARNINGS, {"report_id": report_id})


class TestComposeWarningMessage:
    @pytest.mark.asyncio
    async def test_deterministic_text(self, store, clock):
        report = await _submit(store, clock)
        assert compose_warning_message(report) == (
            "Rally Warning for vehicle #007: You have been reported for Speeding. "
            "Please drive safely and follow rally regulations. Report #RW-2026-000001"
        )
        assert compose_warning_message(report) == compose_warning_message(report)


class TestDispatchWarning:
    @pytest.mark.asyncio
    async def test_sent_resolves_report(self, store, clock, notifier):
        driver = await register_driver(store)
        report = await _submit(store, clock)

        result = await WarningDispatcher(store, notifier, clock=clock).dispatch_warning(report.id)

        assert result.success is True
        assert result.delivery_status == DeliveryStatus.SENT
        assert result.report_status == ReportStatus.RESOLVED
        assert result.driver_id == driver.id
        assert notifier.calls[0]["to"] == "+27 82 555 0101"
        assert notifier.calls[0]["text"] == compose_warning_message(report)

        rows = await _warnings(store, report.id)
        assert len(rows) == 1
        assert rows[0]["delivery_status"] == "sent"
        assert rows[0]["warning_type"] == "sms"
        assert rows[0]["driver_id"] == driver.id
        assert rows[0]["sent_at"] == clock.now
        assert rows[0]["id"] == result.warning_id
        assert (await store.get(REPORTS, report.id))["status"] == "resolved"

    @pytest.mark.asyncio
    async def test_failed_leaves_status(self, store, clock):
        await register_driver(store)
        report = await _submit(store, clock)
        dispatcher = WarningDispatcher(store, ScriptedNotifier("failed"), clock=clock)

        result = await dispatcher.dispatch_warning(report.id)

        assert result.success is False
        assert result.delivery_status == DeliveryStatus.FAILED
        assert "500" in result.reason
        assert result.report_status == ReportStatus.PENDING
        rows = await _warnings(store, report.id)
        assert [r["delivery_status"] for r in rows] == ["failed"]
        assert rows[0]["error_reason"] == result.reason
        assert (await store.get(REPORTS, report.id))["status"] == "pending"

    @pytest.mark.asyncio
    async def test_unconfigured_is_skipped(self, store, clock):
        await register_driver(store)
        report = await _submit(store, clock)
        dispatcher = WarningDispatcher(store, ScriptedNotifier("skipped"), clock=clock)

        result = await dispatcher.dispatch_warning(report.id)

        assert result.delivery_status == DeliveryStatus.SKIPPED
        assert result.success is False
        assert [r["delivery_status"] for r in await _warnings(store, report.id)] == ["skipped"]
        assert (await store.get(REPORTS, report.id))["status"] == "pending"

    @pytest.mark.asyncio
    async def test_unexpected_notifier_error_is_failed(self, store, clock):
        await register_driver(store)
        report = await _submit(store, clock)
        dispatcher = WarningDispatcher(store, ScriptedNotifier("crash"), clock=clock)

        result = await dispatcher.dispatch_warning(report.id)

        assert result.delivery_status == DeliveryStatus.FAILED
        assert result.reason == "socket closed"

    @pytest.mark.asyncio
    async def test_hanging_notifier_times_out(self, store, clock):
        await register_driver(store)
        report = await _submit(store, clock)
        dispatcher = WarningDispatcher(store, ScriptedNotifier("hang"), clock=clock, notifier_timeout=0.05)

        result = await dispatcher.dispatch_warning(report.id)

        assert result.delivery_status == DeliveryStatus.FAILED
        assert "timed out" in result.reason
        assert len(await _warnings(store, report.id)) == 1

    @pytest.mark.asyncio
    async def test_retry_after_failure(self, store, clock):
        await register_driver(store)
        report = await _submit(store, clock)

        first = await WarningDispatcher(store, ScriptedNotifier("failed"), clock=clock).dispatch_warning(report.id)
        clock.advance(minutes=2)
        second = await WarningDispatcher(store, ScriptedNotifier("sent"), clock=clock).dispatch_warning(report.id)

        assert first.delivery_status == DeliveryStatus.FAILED
        assert second.delivery_status == DeliveryStatus.SENT
        rows = await _warnings(store, report.id)
        assert sorted(r["delivery_status"] for r in rows) == ["failed", "sent"]
        assert (await store.get(REPORTS, report.id))["status"] == "resolved"

    @pytest.mark.asyncio
    async def test_explicit_driver_overrides_link(self, store, clock, notifier):
        await register_driver(store)
        marshal = await register_driver(store, vehicle_number="M1", driver_name="Sweep Car", phone_number="+27 82 555 0199")
        report = await _submit(store, clock)

        result = await WarningDispatcher(store, notifier, clock=clock).dispatch_warning(report.id, driver_id=marshal.id)

        assert result.driver_id == marshal.id
        assert notifier.calls[0]["to"] == "+27 82 555 0199"
        assert notifier.calls[0]["recipient_id"] == "Sweep Car"

    @pytest.mark.asyncio
    async def test_unassigned_driver(self, store, clock, notifier):
        report = await _submit(store, clock, vehicle_number="404")

        with pytest.raises(UnassignedDriverError):
            await WarningDispatcher(store, notifier, clock=clock).dispatch_warning(report.id)

        assert notifier.calls == []
        assert await store.count(WARNINGS) == 0

    @pytest.mark.asyncio
    async def test_missing_contact_records_nothing(self, store, clock, notifier):
        driver = await store.insert(DRIVERS, {"vehicle_number": "007", "driver_name": "No Phone", "phone_number": None})
        report = await _submit(store, clock)
        assert report.driver_id == driver["id"]

        with pytest.raises(MissingContactError):
            await WarningDispatcher(store, notifier, clock=clock).dispatch_warning(report.id)

        assert notifier.calls == []
        assert await store.count(WARNINGS) == 0
        assert (await store.get(REPORTS, report.id))["status"] == "pending"

    @pytest.mark.asyncio
    async def test_unknown_report(self, store, clock, notifier):
        with pytest.raises(NotFoundError):
            await WarningDispatcher(store, notifier, clock=clock).dispatch_warning("missing")

    @pytest.mark.asyncio
    async def test_unknown_explicit_driver(self, store, clock, notifier):
        report = await _submit(store, clock)
        with pytest.raises(NotFoundError):
            await WarningDispatcher(store, notifier, clock=clock).dispatch_warning(report.id, driver_id="ghost")

    @pytest.mark.asyncio
    async def test_ignored_report_stays_ignored(self, store, clock, notifier):
        await register_driver(store)
        report = await _submit(store, clock)
        await set_report_status(store, report.id, ReportStatus.IGNORED, clock=clock)

        result = await WarningDispatcher(store, notifier, clock=clock).dispatch_warning(report.id)

        assert result.delivery_status == DeliveryStatus.SENT
        assert result.report_status == ReportStatus.IGNORED
        assert len(await _warnings(store, report.id)) == 1
        assert (await store.get(REPORTS, report.id))["status"] == "ignored"

    @pytest.mark.asyncio
    async def test_report_ignored_during_dispatch_stays_ignored(self, clock, notifier):
        store = make_racing_store("ignored")
        await register_driver(store)
        report = await _submit(store, clock)

        result = await WarningDispatcher(store, notifier, clock=clock).dispatch_warning(report.id)

        assert store.races == 1
        assert result.delivery_status == DeliveryStatus.SENT
        assert result.success is True
        assert result.report_status == ReportStatus.IGNORED
        assert [r["delivery_status"] for r in await _warnings(store, report.id)] == ["sent"]
        assert (await store.get(REPORTS, report.id))["status"] == "ignored"
