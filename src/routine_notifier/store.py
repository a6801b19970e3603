"""Key-value store adapters supplying routines, lead times and devices."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from copy import deepcopy
from dataclasses import dataclass, field
from functools import lru_cache
from threading import Lock
from typing import Any, Protocol

import requests  # type: ignore[import-untyped]
from pydantic import ValidationError
from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .database import get_database_settings, get_session_factory
from .db_models import KeyValueModel
from .defaults import DEFAULT_STORE_ENTRIES
from .errors import ConfigFetchFailed
from .push.config import Settings
from .push.utils import logger
from .schemas import (
    DEFAULT_LEAD_END,
    DEFAULT_LEAD_START,
    Device,
    NotifyConfig,
    Routine,
)

KEY_PREFIX = "planningweb:"
ACTIVE_ROUTINE_KEY = f"{KEY_PREFIX}activeRoutineId"
ROUTINES_KEY = f"{KEY_PREFIX}routines"
NOTIFY_BEFORE_START_KEY = f"{KEY_PREFIX}notifyBeforeStart"
NOTIFY_BEFORE_END_KEY = f"{KEY_PREFIX}notifyBeforeEnd"
DEVICE_KEY_PREFIX = f"{KEY_PREFIX}device:"

CONFIG_KEYS: tuple[str, ...] = (
    ACTIVE_ROUTINE_KEY,
    ROUTINES_KEY,
    NOTIFY_BEFORE_START_KEY,
    NOTIFY_BEFORE_END_KEY,
)

SUPABASE_TABLE = "planning_web_key_value_store"


def full_key(key: str) -> str:
    """Return ``key`` with the store prefix applied."""
    return key if key.startswith(KEY_PREFIX) else f"{KEY_PREFIX}{key}"


def is_snapshot_key(key: str) -> bool:
    return key in CONFIG_KEYS or key.startswith(DEVICE_KEY_PREFIX)


def decode_value(value: Any) -> Any:
    """Decode a stored value that may be JSON text, double-encoded JSON or native."""
    for _ in range(2):
        if not isinstance(value, str):
            return value
        try:
            value = json.loads(value)
        except ValueError:
            return value
    return value


def _lead_minutes(value: Any, key: str, default: int) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ConfigFetchFailed(f"Invalid lead time for {key}: {value!r}")
    try:
        minutes = int(float(value))
    except (TypeError, ValueError, OverflowError) as exc:
        raise ConfigFetchFailed(f"Invalid lead time for {key}: {value!r}") from exc
    return max(minutes, 0)


@dataclass(frozen=True)
class StoreSnapshot:
    """A consistent read of every key the trigger engine depends on."""

    active_routine_id: str | None = None
    routines: list[Routine] = field(default_factory=list)
    notify_config: NotifyConfig = field(default_factory=NotifyConfig)
    devices: list[Device] = field(default_factory=list)

    def find_routine(self, routine_id: str) -> Routine | None:
        for routine in self.routines:
            if routine.id == routine_id:
                return routine
        return None

    def recipients(self) -> list[str]:
        """Return the deduplicated recipient ids in first-seen order."""
        seen: dict[str, None] = {}
        for device in self.devices:
            if device.player_id:
                seen.setdefault(device.player_id, None)
        return list(seen)


def build_snapshot(entries: Mapping[str, Any]) -> StoreSnapshot:
    """Decode raw store entries (full keys) into a typed snapshot."""
    values = {key: decode_value(value) for key, value in entries.items()}

    active = values.get(ACTIVE_ROUTINE_KEY)
    active_routine_id = str(active) if active not in (None, "") else None

    raw_routines = values.get(ROUTINES_KEY) or []
    if not isinstance(raw_routines, list):
        raise ConfigFetchFailed("Stored routines must be a list.")
    routines: list[Routine] = []
    for item in raw_routines:
        try:
            routines.append(Routine.model_validate(item))
        except ValidationError as exc:
            routine_id = item.get("id") if isinstance(item, dict) else None
            if routine_id is not None and str(routine_id) == active_routine_id:
                raise ConfigFetchFailed(
                    f"Active routine {routine_id} is malformed: {exc}"
                ) from exc
            logger.bind(routine_id=routine_id).warning("Skipping malformed routine")

    notify_config = NotifyConfig(
        lead_start=_lead_minutes(
            values.get(NOTIFY_BEFORE_START_KEY),
            NOTIFY_BEFORE_START_KEY,
            DEFAULT_LEAD_START,
        ),
        lead_end=_lead_minutes(
            values.get(NOTIFY_BEFORE_END_KEY),
            NOTIFY_BEFORE_END_KEY,
            DEFAULT_LEAD_END,
        ),
    )

    devices: list[Device] = []
    for key in sorted(k for k in values if k.startswith(DEVICE_KEY_PREFIX)):
        payload = values[key]
        if not isinstance(payload, dict):
            logger.bind(key=key).warning("Skipping malformed device record")
            continue
        try:
            device = Device.model_validate(payload)
        except ValidationError:
            logger.bind(key=key).warning("Skipping invalid device record")
            continue
        if device.player_id:
            devices.append(device)

    return StoreSnapshot(
        active_routine_id=active_routine_id,
        routines=routines,
        notify_config=notify_config,
        devices=devices,
    )


class KeyValueStore(Protocol):
    """Port for the persistence collaborator read once per evaluation cycle."""

    def fetch_snapshot(self) -> StoreSnapshot:
        ...

    def put(self, key: str, value: Any) -> None:
        ...


class InMemoryKeyValueStore(KeyValueStore):
    """Store that keeps entries in process memory."""

    def __init__(self, entries: Mapping[str, Any] | None = None) -> None:
        self._entries: dict[str, Any] = {
            full_key(key): value for key, value in (entries or {}).items()
        }
        self._lock = Lock()

    def fetch_snapshot(self) -> StoreSnapshot:
        with self._lock:
            entries = {
                key: deepcopy(value)
                for key, value in self._entries.items()
                if is_snapshot_key(key)
            }
        return build_snapshot(entries)

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[full_key(key)] = deepcopy(value)


class SQLKeyValueStore(KeyValueStore):
    """SQLAlchemy-backed store reading the planning key-value table."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def fetch_snapshot(self) -> StoreSnapshot:
        statement = select(KeyValueModel).where(
            or_(
                KeyValueModel.key.in_(CONFIG_KEYS),
                KeyValueModel.key.like(f"{DEVICE_KEY_PREFIX}%"),
            )
        )
        try:
            with self._session_factory() as session:
                rows = session.execute(statement).scalars().all()
                entries = {row.key: row.value for row in rows}
        except SQLAlchemyError as exc:
            raise ConfigFetchFailed(f"Key-value store query failed: {exc}") from exc
        return build_snapshot(entries)

    def put(self, key: str, value: Any) -> None:
        with self._session_factory() as session:
            session.merge(KeyValueModel(key=full_key(key), value=json.dumps(value)))
            session.commit()


class SupabaseKeyValueStore(KeyValueStore):
    """Store reading the key-value table through the Supabase REST interface."""

    def __init__(
        self,
        url: str,
        service_key: str,
        *,
        table: str = SUPABASE_TABLE,
        timeout: int = 10,
    ) -> None:
        self.base_url = url.rstrip("/")
        self.service_key = service_key
        self.table = table
        self.timeout = timeout

    @property
    def _endpoint(self) -> str:
        return f"{self.base_url}/rest/v1/{self.table}"

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    def _filter(self) -> str:
        quoted = ",".join(f'"{key}"' for key in CONFIG_KEYS)
        return (
            f"(planning_web_kv_key.in.({quoted}),"
            f"planning_web_kv_key.like.{DEVICE_KEY_PREFIX}*)"
        )

    def fetch_snapshot(self) -> StoreSnapshot:
        params = {
            "select": "planning_web_kv_key,planning_web_kv_value",
            "or": self._filter(),
        }
        try:
            response = requests.get(
                self._endpoint,
                params=params,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise ConfigFetchFailed(f"Supabase request failed: {exc}") from exc

        if not response.ok:
            raise ConfigFetchFailed(
                f"Supabase request failed ({response.status_code}): {response.text}"
            )
        try:
            rows = response.json()
        except ValueError as exc:
            raise ConfigFetchFailed("Supabase returned a non-JSON body.") from exc
        if not isinstance(rows, list):
            raise ConfigFetchFailed("Supabase returned an unexpected payload.")

        entries = {
            row["planning_web_kv_key"]: row.get("planning_web_kv_value")
            for row in rows
            if isinstance(row, dict) and "planning_web_kv_key" in row
        }
        return build_snapshot(entries)

    def put(self, key: str, value: Any) -> None:
        headers = self._headers()
        headers["Prefer"] = "resolution=merge-duplicates"
        response = requests.post(
            self._endpoint,
            json=[{"planning_web_kv_key": full_key(key), "planning_web_kv_value": value}],
            headers=headers,
            timeout=self.timeout,
        )
        if not response.ok:
            raise ConfigFetchFailed(
                f"Supabase upsert failed ({response.status_code}): {response.text}"
            )


@lru_cache
def _default_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(DEFAULT_STORE_ENTRIES)


_SQL_STORE: SQLKeyValueStore | None = None


def _get_sql_store() -> SQLKeyValueStore:
    global _SQL_STORE
    if _SQL_STORE is None:
        _SQL_STORE = SQLKeyValueStore(get_session_factory())
    return _SQL_STORE


def get_store(settings: Settings) -> KeyValueStore:
    """Return the store selected by ``ROUTINE_NOTIFIER_STORE``."""
    mode = get_database_settings().mode
    if mode == "supabase":
        if not settings.supabase_url or not settings.supabase_service_key:
            raise ConfigFetchFailed(
                "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required for the "
                "supabase store."
            )
        return SupabaseKeyValueStore(
            settings.supabase_url,
            settings.supabase_service_key,
            timeout=settings.gateway_timeout,
        )
    if mode == "database":
        try:
            return _get_sql_store()
        except RuntimeError as exc:
            raise ConfigFetchFailed(str(exc)) from exc
    return _default_store()


def seed_store(store: KeyValueStore, entries: Iterable[tuple[str, Any]]) -> int:
    """Write ``entries`` into ``store`` and return how many were written."""
    count = 0
    for key, value in entries:
        store.put(key, value)
        count += 1
    return count


__all__ = [
    "KEY_PREFIX",
    "ACTIVE_ROUTINE_KEY",
    "ROUTINES_KEY",
    "NOTIFY_BEFORE_START_KEY",
    "NOTIFY_BEFORE_END_KEY",
    "DEVICE_KEY_PREFIX",
    "StoreSnapshot",
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "SQLKeyValueStore",
    "SupabaseKeyValueStore",
    "build_snapshot",
    "decode_value",
    "full_key",
    "get_store",
    "seed_store",
]
