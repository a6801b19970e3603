from __future__ import annotations

import os
from datetime import UTC, datetime

import pytest
from fastapi.testclient import TestClient

# Ensure the in-memory store during tests
os.environ["ROUTINE_NOTIFIER_STORE"] = "memory"

from routine_notifier import runner as runner_module  # noqa: E402
from routine_notifier.app import app  # noqa: E402
from routine_notifier.cycle import run_cycle  # noqa: E402
from routine_notifier.errors import ConfigFetchFailed  # noqa: E402
from routine_notifier.push.config import get_settings  # noqa: E402
from routine_notifier.store import InMemoryKeyValueStore  # noqa: E402

from conftest import FakeGateway, make_entries  # noqa: E402


client = TestClient(app)


@pytest.fixture(autouse=True)
def _override_settings(settings):
    app.dependency_overrides[get_settings] = lambda: settings
    yield
    app.dependency_overrides.clear()


def test_options_preflight_returns_ok_with_cors_headers():
    response = client.options("/push-scheduler")
    assert response.status_code == 200
    assert response.text == "ok"
    assert response.headers["access-control-allow-origin"] == "*"
    assert "x-client-info" in response.headers["access-control-allow-headers"]


def test_browser_preflight_is_accepted():
    response = client.options(
        "/push-scheduler",
        headers={
            "Origin": "https://planning.example",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "authorization, content-type",
        },
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"


def test_post_dispatches_due_notifications(monkeypatch):
    gateway = FakeGateway()
    store = InMemoryKeyValueStore(make_entries())

    def fake_cycle(settings, *, now=None, send=True):
        return run_cycle(
            store, gateway, settings, now=datetime(2025, 1, 6, 12, 50, tzinfo=UTC)
        )

    monkeypatch.setattr("routine_notifier.router.run_configured_cycle", fake_cycle)

    response = client.post("/push-scheduler")
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    data = response.json()
    assert data["success"] is True
    assert [item["notification_id"] for item in data["results"]] == ["e1_start_mon"]
    assert data["debug"]["nowMin"] == 470
    assert data["debug"]["notificationsSent"] == 1
    assert len(gateway.calls) == 1


def test_get_runs_cycle_against_configured_store(monkeypatch):
    gateway = FakeGateway()
    store = InMemoryKeyValueStore(make_entries())

    class GatewayFactory:
        @staticmethod
        def from_settings(settings):
            return gateway

    monkeypatch.setattr(runner_module, "get_store", lambda settings: store)
    monkeypatch.setattr(runner_module, "OneSignalClient", GatewayFactory)

    response = client.get("/push-scheduler")
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["debug"]["activeRoutineId"] == "r1"
    assert data["debug"]["secretsConfigured"] == {"appId": True, "apiKey": True}
    assert gateway.closed is True


def test_empty_state_reports_success_message(monkeypatch):
    store = InMemoryKeyValueStore(make_entries(devices={}))
    monkeypatch.setattr(runner_module, "get_store", lambda settings: store)

    response = client.post("/push-scheduler")
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "No devices subscribed"}


def test_store_failure_returns_400(monkeypatch):
    def broken_store(settings):
        raise ConfigFetchFailed("Supabase request failed (500): boom")

    monkeypatch.setattr(runner_module, "get_store", broken_store)

    response = client.post("/push-scheduler")
    assert response.status_code == 400
    assert response.json() == {"error": "Supabase request failed (500): boom"}
    assert response.headers["access-control-allow-origin"] == "*"


def test_health_probe():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_browser_preflight_accepts_any_requested_header():
    response = client.options(
        "/push-scheduler",
        headers={
            "Origin": "https://planning.example",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "x-requested-with",
        },
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    assert "x-requested-with" in response.headers["access-control-allow-headers"].lower()


def test_head_runs_cycle(monkeypatch):
    calls: list[str] = []

    def fake_cycle(settings, *, now=None, send=True):
        calls.append("cycle")
        return run_cycle(
            InMemoryKeyValueStore(make_entries()),
            FakeGateway(),
            settings,
            now=datetime(2025, 1, 6, 12, 55, tzinfo=UTC),
        )

    monkeypatch.setattr("routine_notifier.router.run_configured_cycle", fake_cycle)

    response = client.head("/push-scheduler")
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    assert calls == ["cycle"]
