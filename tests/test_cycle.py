"""End-to-end tests for a single evaluation cycle."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from routine_notifier import cycle as cycle_module
from routine_notifier.cycle import run_cycle
from routine_notifier.errors import ConfigFetchFailed
from routine_notifier.store import InMemoryKeyValueStore

from conftest import GYM_ROUTINE, make_entries

# Monday 2025-01-06 in UTC-5.
MONDAY_0750 = datetime(2025, 1, 6, 12, 50, tzinfo=UTC)
MONDAY_0755 = datetime(2025, 1, 6, 12, 55, tzinfo=UTC)
MONDAY_0855 = datetime(2025, 1, 6, 13, 55, tzinfo=UTC)


def test_cycle_sends_start_reminder_at_trigger_minute(store, gateway, settings):
    outcome = run_cycle(store, gateway, settings, now=MONDAY_0750)

    assert outcome.status == "completed"
    assert [entry.id for entry in outcome.plan] == ["e1_start_mon"]
    assert gateway.calls == [
        {
            "recipients": ["player-1"],
            "title": "Gym",
            "body": "Va a comenzar: Gym a las 08:00",
            "url": "https://planning.example/index.html",
        }
    ]
    assert outcome.debug is not None
    assert outcome.debug.now_min == 470
    assert outcome.debug.day_key == "mon"
    assert outcome.debug.notifications_sent == 1


def test_cycle_sends_nothing_between_trigger_minutes(store, gateway, settings):
    outcome = run_cycle(store, gateway, settings, now=MONDAY_0755)

    assert outcome.status == "completed"
    assert outcome.plan == []
    assert outcome.results == []
    assert gateway.calls == []
    assert outcome.debug.events_today == 1


def test_cycle_sends_end_reminder(store, gateway, settings):
    outcome = run_cycle(store, gateway, settings, now=MONDAY_0855)

    assert [entry.id for entry in outcome.plan] == ["e1_end_mon"]
    assert gateway.calls[0]["body"] == "Va a finalizar: Gym a las 09:00"


def test_cycle_is_deterministic(store, gateway, settings):
    first = run_cycle(store, gateway, settings, now=MONDAY_0750, send=False)
    second = run_cycle(store, gateway, settings, now=MONDAY_0750, send=False)

    assert first.plan == second.plan
    assert gateway.calls == []


def test_cycle_without_devices_never_dispatches(gateway, settings, monkeypatch):
    store = InMemoryKeyValueStore(make_entries(devices={}))
    monkeypatch.setattr(
        cycle_module,
        "dispatch",
        lambda *args, **kwargs: pytest.fail("dispatch should not run"),
    )

    outcome = run_cycle(store, gateway, settings, now=MONDAY_0750)

    assert outcome.is_noop
    assert outcome.message == "No devices subscribed"
    assert outcome.to_payload() == {"success": True, "message": "No devices subscribed"}


def test_cycle_without_active_routine_is_noop(gateway, settings):
    store = InMemoryKeyValueStore(make_entries(active=None))

    outcome = run_cycle(store, gateway, settings, now=MONDAY_0750)

    assert outcome.is_noop
    assert outcome.plan == []
    assert outcome.message == "No active routine"
    assert gateway.calls == []


def test_cycle_with_unknown_routine_is_noop(gateway, settings):
    store = InMemoryKeyValueStore(make_entries(active="gone"))

    outcome = run_cycle(store, gateway, settings, now=MONDAY_0750)

    assert outcome.is_noop
    assert outcome.message == "Active routine not found"


def test_cycle_dedupes_recipients(gateway, settings):
    store = InMemoryKeyValueStore(
        make_entries(
            devices={
                "dev_a": {"playerId": "player-1"},
                "dev_b": {"playerId": "player-1", "platform": "MacIntel"},
            }
        )
    )

    outcome = run_cycle(store, gateway, settings, now=MONDAY_0750)

    assert gateway.calls[0]["recipients"] == ["player-1"]
    assert outcome.debug.devices_found == 1


def test_cycle_propagates_store_failures(gateway, settings):
    class BrokenStore:
        def fetch_snapshot(self):
            raise ConfigFetchFailed("store offline")

        def put(self, key, value):
            raise AssertionError("not used")

    with pytest.raises(ConfigFetchFailed, match="store offline"):
        run_cycle(BrokenStore(), gateway, settings, now=MONDAY_0750)


def test_cycle_payload_reports_failed_deliveries(settings):
    from conftest import FakeGateway

    gateway = FakeGateway(fail_titles={"Gym"})
    store = InMemoryKeyValueStore(make_entries())

    payload = run_cycle(store, gateway, settings, now=MONDAY_0750).to_payload()

    assert payload["success"] is True
    assert payload["results"] == [
        {
            "notification_id": "e1_start_mon",
            "status": "failed",
            "response": None,
            "error": "rejected Gym",
        }
    ]
    debug = payload["debug"]
    assert debug["nowMin"] == 470
    assert debug["offset"] == -300
    assert debug["devicesFound"] == 1
    assert debug["activeRoutineId"] == "r1"
    assert debug["eventsToday"] == 1
    assert debug["secretsConfigured"] == {"appId": True, "apiKey": True}
    assert debug["notificationsSent"] == 0
    assert debug["localTime"].startswith("2025-01-06T07:50:00")


def test_cycle_ignores_malformed_inactive_routine(gateway, settings):
    overnight = {
        "id": "r2",
        "days": {"tue": [{"id": "late", "title": "Turno", "start": "23:00", "end": "01:00"}]},
    }
    store = InMemoryKeyValueStore(
        make_entries(routines=[GYM_ROUTINE, overnight])
    )

    outcome = run_cycle(store, gateway, settings, now=MONDAY_0750)

    assert outcome.status == "completed"
    assert [entry.id for entry in outcome.plan] == ["e1_start_mon"]
    assert len(gateway.calls) == 1


def test_cycle_fails_when_active_routine_is_malformed(gateway, settings):
    broken = {"id": "r1", "days": {"mon": [{"id": "e1", "start": "25:00", "end": "26:00"}]}}
    store = InMemoryKeyValueStore(make_entries(routines=[broken]))

    with pytest.raises(ConfigFetchFailed, match="Active routine r1 is malformed"):
        run_cycle(store, gateway, settings, now=MONDAY_0750)
    assert gateway.calls == []
