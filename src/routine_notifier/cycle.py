"""One evaluation cycle: resolve, evaluate, plan and dispatch."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from .dispatcher import PushGateway, dispatch
from .errors import EmptyState, NoSubscribedDevices
from .push.config import Settings
from .push.utils import logger
from .schemas import (
    CycleDebug,
    DeliveryResult,
    NotificationPlanEntry,
    SecretsConfigured,
)
from .store import KeyValueStore
from .triggers import (
    evaluate,
    normalize,
    plan,
    resolve_routine,
    resolve_today,
    to_local,
)


@dataclass
class CycleOutcome:
    """Result of a single evaluation cycle."""

    status: Literal["completed", "noop"]
    message: str | None = None
    plan: list[NotificationPlanEntry] = field(default_factory=list)
    results: list[DeliveryResult] = field(default_factory=list)
    debug: CycleDebug | None = None

    @property
    def is_noop(self) -> bool:
        return self.status == "noop"

    def to_payload(self) -> dict[str, Any]:
        if self.is_noop:
            return {"success": True, "message": self.message}
        payload: dict[str, Any] = {
            "success": True,
            "results": [result.model_dump(mode="json") for result in self.results],
        }
        if self.debug is not None:
            payload["debug"] = self.debug.model_dump(mode="json", by_alias=True)
        return payload


def _now_utc(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def run_cycle(
    store: KeyValueStore,
    gateway: PushGateway,
    settings: Settings,
    *,
    now: datetime | None = None,
    send: bool = True,
) -> CycleOutcome:
    """Run ``Start -> Resolve -> Evaluate -> Plan -> Dispatch -> Done`` once.

    Store failures propagate as ``ConfigFetchFailed``. Empty states (no devices,
    no active routine, unknown routine) end the cycle as a no-op. With
    ``send=False`` the plan is computed but nothing is dispatched.
    """
    current = _now_utc(now)
    snapshot = store.fetch_snapshot()
    recipients = snapshot.recipients()

    try:
        if not recipients:
            raise NoSubscribedDevices()
        routine = resolve_routine(snapshot)
    except EmptyState as exc:
        logger.bind(
            active_routine_id=snapshot.active_routine_id,
            devices_found=len(recipients),
        ).info("Evaluation cycle is a no-op: {}", exc)
        return CycleOutcome(status="noop", message=str(exc))

    offset = settings.utc_offset_minutes
    day_key, now_minute = normalize(current, offset)
    events = resolve_today(routine, day_key)
    matches = evaluate(events, now_minute, snapshot.notify_config)
    entries = plan(matches, day_key)

    logger.bind(
        day_key=day_key,
        now_minute=now_minute,
        events_today=len(events),
        planned=len(entries),
    ).info("Evaluated routine {}", routine.id)

    results: list[DeliveryResult] = []
    if entries and send:
        results = dispatch(
            entries,
            recipients,
            gateway,
            url=settings.deep_link_url,
            max_workers=settings.dispatch_workers,
        )

    credentials = settings.credentials_configured
    debug = CycleDebug(
        server_time_utc=current.isoformat(),
        local_time=to_local(current, offset).isoformat(),
        now_min=now_minute,
        day_key=day_key,
        offset=offset,
        devices_found=len(recipients),
        active_routine_id=routine.id,
        events_today=len(events),
        secrets_configured=SecretsConfigured(
            app_id=credentials["appId"], api_key=credentials["apiKey"]
        ),
        notifications_sent=sum(1 for result in results if result.status == "sent"),
    )
    logger.bind(**debug.model_dump(mode="json")).debug("Cycle debug info")
    return CycleOutcome(status="completed", plan=entries, results=results, debug=debug)


__all__ = ["CycleOutcome", "run_cycle"]
