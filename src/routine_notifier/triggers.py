"""Pure stages of the trigger engine: normalize, resolve, evaluate and plan."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from .errors import NoActiveRoutine, RoutineNotFound
from .schemas import (
    DAY_KEYS,
    BoundaryKind,
    Event,
    NotificationPlanEntry,
    NotifyConfig,
    Routine,
)
from .store import StoreSnapshot

DEFAULT_TITLE = "Evento"

Match = tuple[Event, BoundaryKind]


def to_local(instant: datetime, offset_minutes: int) -> datetime:
    """Shift ``instant`` into the fixed-offset local zone."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone(timedelta(minutes=offset_minutes)))


def normalize(instant: datetime, offset_minutes: int) -> tuple[str, int]:
    """Return the ``(day_key, minute_of_day)`` pair for ``instant``.

    Naive datetimes are taken to be UTC. The offset is expressed in minutes east
    of UTC, so ``-300`` is UTC-5.
    """
    local = to_local(instant, offset_minutes)
    return DAY_KEYS[local.weekday()], local.hour * 60 + local.minute


def resolve_routine(snapshot: StoreSnapshot) -> Routine:
    """Return the active routine or raise the matching empty-state error."""
    if not snapshot.active_routine_id:
        raise NoActiveRoutine()
    routine = snapshot.find_routine(snapshot.active_routine_id)
    if routine is None:
        raise RoutineNotFound(snapshot.active_routine_id)
    return routine


def resolve_today(routine: Routine, day_key: str) -> list[Event]:
    return routine.events_for(day_key)


def trigger_minutes(event: Event, config: NotifyConfig) -> tuple[int, int]:
    """Return the start and end trigger minutes, clamped at midnight."""
    return (
        max(0, event.start_minute - config.lead_start),
        max(0, event.end_minute - config.lead_end),
    )


def evaluate(
    events: Iterable[Event], now_minute: int, config: NotifyConfig
) -> list[Match]:
    """Return the boundaries whose trigger minute equals ``now_minute`` exactly."""
    matches: list[Match] = []
    for event in events:
        start_trigger, end_trigger = trigger_minutes(event, config)
        if now_minute == start_trigger:
            matches.append((event, BoundaryKind.START))
        if now_minute == end_trigger:
            matches.append((event, BoundaryKind.END))
    return matches


def notification_id(event_id: str, boundary: BoundaryKind, day_key: str) -> str:
    return f"{event_id}_{boundary.value}_{day_key}"


def _body(event: Event, boundary: BoundaryKind) -> str:
    if boundary is BoundaryKind.START:
        return f"Va a comenzar: {event.title} a las {event.start}"
    return f"Va a finalizar: {event.title} a las {event.end}"


def plan(matches: Iterable[Match], day_key: str) -> list[NotificationPlanEntry]:
    """Build one plan entry per match, preserving order."""
    return [
        NotificationPlanEntry(
            id=notification_id(event.id, boundary, day_key),
            title=event.title or DEFAULT_TITLE,
            body=_body(event, boundary),
            event_id=event.id,
            boundary=boundary,
            day_key=day_key,
        )
        for event, boundary in matches
    ]


__all__ = [
    "DEFAULT_TITLE",
    "Match",
    "to_local",
    "normalize",
    "resolve_routine",
    "resolve_today",
    "trigger_minutes",
    "evaluate",
    "notification_id",
    "plan",
]
