"""Pydantic models for routines, devices and notification plans."""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DAY_KEYS: tuple[str, ...] = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
DEFAULT_LEAD_START = 10
DEFAULT_LEAD_END = 5

_HHMM_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


def hhmm_to_minutes(value: str) -> int:
    """Convert an ``HH:MM`` string into minutes after midnight."""
    match = _HHMM_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Invalid time of day {value!r}; expected HH:MM.")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"Time of day {value!r} is outside 00:00-23:59.")
    return hours * 60 + minutes


class BoundaryKind(str, Enum):
    START = "start"
    END = "end"


class Event(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., min_length=1)
    title: str = ""
    start: str
    end: str

    @field_validator("title", mode="before")
    @classmethod
    def coerce_title(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("start", "end")
    @classmethod
    def validate_time(cls, value: str) -> str:
        hhmm_to_minutes(value)
        return value.strip()

    @model_validator(mode="after")
    def start_not_after_end(self) -> Event:
        if self.start_minute > self.end_minute:
            raise ValueError(
                f"Event {self.id} ends before it starts; cross-midnight events "
                "are not supported."
            )
        return self

    @property
    def start_minute(self) -> int:
        return hhmm_to_minutes(self.start)

    @property
    def end_minute(self) -> int:
        return hhmm_to_minutes(self.end)


class Routine(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., min_length=1)
    name: str | None = None
    days: dict[str, list[Event]] = Field(default_factory=dict)

    @field_validator("days", mode="before")
    @classmethod
    def keep_known_days(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {
                str(key).lower(): events or []
                for key, events in value.items()
                if str(key).lower() in DAY_KEYS
            }
        return value

    def events_for(self, day_key: str) -> list[Event]:
        return list(self.days.get(day_key, []))


class NotifyConfig(BaseModel):
    lead_start: int = Field(default=DEFAULT_LEAD_START, ge=0)
    lead_end: int = Field(default=DEFAULT_LEAD_END, ge=0)


class Device(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    player_id: str | None = Field(default=None, alias="playerId")
    token: str | None = None
    last_active: int | None = Field(default=None, alias="lastActive")
    platform: str | None = None
    user_agent: str | None = Field(default=None, alias="userAgent")


class NotificationPlanEntry(BaseModel):
    id: str
    title: str
    body: str
    event_id: str
    boundary: BoundaryKind
    day_key: str


class DeliveryResult(BaseModel):
    notification_id: str
    status: Literal["sent", "failed"]
    response: Any = None
    error: str | None = None


class SecretsConfigured(BaseModel):
    app_id: bool = Field(..., serialization_alias="appId")
    api_key: bool = Field(..., serialization_alias="apiKey")


class CycleDebug(BaseModel):
    server_time_utc: str = Field(..., serialization_alias="serverTimeUtc")
    local_time: str = Field(..., serialization_alias="localTime")
    now_min: int = Field(..., serialization_alias="nowMin")
    day_key: str = Field(..., serialization_alias="dayKey")
    offset: int
    devices_found: int = Field(..., serialization_alias="devicesFound")
    active_routine_id: str | None = Field(
        default=None, serialization_alias="activeRoutineId"
    )
    events_today: int = Field(..., serialization_alias="eventsToday")
    secrets_configured: SecretsConfigured = Field(
        ..., serialization_alias="secretsConfigured"
    )
    notifications_sent: int = Field(..., serialization_alias="notificationsSent")


__all__ = [
    "DAY_KEYS",
    "DEFAULT_LEAD_START",
    "DEFAULT_LEAD_END",
    "hhmm_to_minutes",
    "BoundaryKind",
    "Event",
    "Routine",
    "NotifyConfig",
    "Device",
    "NotificationPlanEntry",
    "DeliveryResult",
    "SecretsConfigured",
    "CycleDebug",
]
