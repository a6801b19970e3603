from __future__ import annotations

import os
from typing import Any

import pytest

os.environ.setdefault("ROUTINE_NOTIFIER_STORE", "memory")

from routine_notifier.errors import DeliveryFailed  # noqa: E402
from routine_notifier.push.config import Settings  # noqa: E402
from routine_notifier.store import InMemoryKeyValueStore  # noqa: E402

GYM_ROUTINE = {
    "id": "r1",
    "name": "Semana",
    "days": {
        "mon": [{"id": "e1", "title": "Gym", "start": "08:00", "end": "09:00"}],
    },
}


class FakeGateway:
    def __init__(self, *, fail_titles: set[str] | None = None) -> None:
        self.calls: list[dict[str, Any]] = []
        self.fail_titles = fail_titles or set()
        self.closed = False

    def send(
        self,
        recipients: list[str],
        *,
        title: str,
        body: str,
        url: str | None = None,
    ) -> dict[str, Any]:
        self.calls.append(
            {"recipients": list(recipients), "title": title, "body": body, "url": url}
        )
        if title in self.fail_titles:
            raise DeliveryFailed(f"rejected {title}")
        return {"id": f"onesignal-{len(self.calls)}", "recipients": len(recipients)}

    def close(self) -> None:
        self.closed = True


def make_entries(
    *,
    routines: list[dict[str, Any]] | None = None,
    active: str | None = "r1",
    devices: dict[str, dict[str, Any]] | None = None,
    lead_start: Any = 10,
    lead_end: Any = 5,
) -> dict[str, Any]:
    entries: dict[str, Any] = {
        "activeRoutineId": active,
        "routines": routines if routines is not None else [GYM_ROUTINE],
        "notifyBeforeStart": lead_start,
        "notifyBeforeEnd": lead_end,
    }
    if devices is None:
        devices = {"dev_a": {"playerId": "player-1", "platform": "iPhone"}}
    for device_id, payload in devices.items():
        entries[f"device:{device_id}"] = payload
    return entries


@pytest.fixture
def settings() -> Settings:
    return Settings(
        onesignal_app_id="app-id",
        onesignal_api_key="rest-key",
        deep_link_url="https://planning.example/index.html",
        utc_offset_minutes=-300,
    )


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(make_entries())
