"""Broadcast planned notifications through the push-delivery gateway."""

from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Protocol

from .errors import DeliveryFailed
from .push.utils import logger
from .schemas import DeliveryResult, NotificationPlanEntry


class PushGateway(Protocol):
    """Port for the outbound push service."""

    def send(
        self,
        recipients: list[str],
        *,
        title: str,
        body: str,
        url: str | None = None,
    ) -> Any:
        ...


def _deliver(
    entry: NotificationPlanEntry,
    recipients: list[str],
    gateway: PushGateway,
    url: str | None,
) -> DeliveryResult:
    try:
        response = gateway.send(recipients, title=entry.title, body=entry.body, url=url)
        result = DeliveryResult(notification_id=entry.id, status="sent", response=response)
    except DeliveryFailed as exc:
        logger.bind(notification_id=entry.id).warning(
            "Notification delivery failed: {}", exc
        )
        return DeliveryResult(notification_id=entry.id, status="failed", error=str(exc))
    except Exception as exc:
        logger.bind(notification_id=entry.id).exception(
            "Unexpected error while delivering notification"
        )
        return DeliveryResult(notification_id=entry.id, status="failed", error=str(exc))

    logger.bind(
        notification_id=entry.id, recipient_count=len(recipients)
    ).info("Notification delivered")
    return result


def dispatch(
    entries: Sequence[NotificationPlanEntry],
    recipients: Sequence[str],
    gateway: PushGateway,
    *,
    url: str | None = None,
    max_workers: int = 4,
) -> list[DeliveryResult]:
    """Send every plan entry to the full recipient set, returning results in plan order.

    Entries are independent, so they are delivered concurrently. A failure for one
    entry is recorded in its result and never prevents the others from being sent.
    """
    if not entries:
        return []

    audience = list(recipients)
    workers = max(1, min(max_workers, len(entries)))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [
            pool.submit(_deliver, entry, audience, gateway, url) for entry in entries
        ]
        return [future.result() for future in futures]


__all__ = ["PushGateway", "dispatch"]
