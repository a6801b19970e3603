"""Configuration helpers for the push gateway and trigger engine."""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from loguru import logger

DEFAULT_ONESIGNAL_API_URL = "https://onesignal.com/api/v1"
DEFAULT_DEEP_LINK_URL = "https://web-planning-hub.vercel.app/index.html"
# UTC-5 (Colombia), the region the routines were authored in.
DEFAULT_UTC_OFFSET_MINUTES = -300
DEFAULT_GATEWAY_TIMEOUT = 10
DEFAULT_DISPATCH_WORKERS = 4
DEFAULT_INTERVAL_SECONDS = 60


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        logger.bind(variable=name, value=raw).warning(
            "Ignoring non-integer configuration value"
        )
        return default


def _candidate_env_paths(start: Path) -> Iterable[Path]:
    """Yield plausible .env locations from closest to farthest."""
    override = os.environ.get("ROUTINE_NOTIFIER_ENV_FILE")
    if override:
        yield Path(override).expanduser()

    for directory in (start, *start.parents):
        yield directory / ".env"


def _discover_env_path() -> Path | None:
    """Return the first .env path that exists, if any."""
    package_dir = Path(__file__).resolve().parent
    for candidate in _candidate_env_paths(package_dir):
        if candidate.exists():
            return candidate
    return None


def _load_env_file(path: Path | None = None) -> None:
    """Populate os.environ with values from a .env file if present."""
    env_path = path or _discover_env_path()
    if env_path is None or not env_path.exists():
        logger.debug("No .env file discovered for configuration")
        return

    logger.bind(path=str(env_path)).info("Loading environment variables from .env")
    for raw_line in env_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        # Respect existing environment variables so runtime overrides win.
        os.environ.setdefault(key, value)


_load_env_file()


@dataclass(frozen=True)
class Settings:
    """Typed accessors for configuration derived from the environment."""

    onesignal_app_id: str | None
    onesignal_api_key: str | None
    onesignal_api_url: str = DEFAULT_ONESIGNAL_API_URL
    deep_link_url: str = DEFAULT_DEEP_LINK_URL
    utc_offset_minutes: int = DEFAULT_UTC_OFFSET_MINUTES
    gateway_timeout: int = DEFAULT_GATEWAY_TIMEOUT
    dispatch_workers: int = DEFAULT_DISPATCH_WORKERS
    run_scheduler: bool = False
    interval_seconds: int = DEFAULT_INTERVAL_SECONDS
    supabase_url: str | None = None
    supabase_service_key: str | None = None

    @property
    def credentials_configured(self) -> dict[str, bool]:
        return {
            "appId": bool(self.onesignal_app_id),
            "apiKey": bool(self.onesignal_api_key),
        }

    @classmethod
    def from_env(cls) -> Settings:
        app_id = os.environ.get("ONESIGNAL_APP_ID") or None
        api_key = os.environ.get("ONESIGNAL_REST_API_KEY") or None
        if not app_id or not api_key:
            logger.warning(
                "OneSignal credentials are incomplete; deliveries will fail until "
                "ONESIGNAL_APP_ID and ONESIGNAL_REST_API_KEY are set."
            )

        run_scheduler_env = os.environ.get("ROUTINE_NOTIFIER_RUN_SCHEDULER")
        settings = cls(
            onesignal_app_id=app_id,
            onesignal_api_key=api_key,
            onesignal_api_url=os.environ.get(
                "ONESIGNAL_API_URL", DEFAULT_ONESIGNAL_API_URL
            ),
            deep_link_url=os.environ.get(
                "ROUTINE_NOTIFIER_DEEP_LINK_URL", DEFAULT_DEEP_LINK_URL
            ),
            utc_offset_minutes=_parse_int(
                "ROUTINE_NOTIFIER_UTC_OFFSET_MINUTES", DEFAULT_UTC_OFFSET_MINUTES
            ),
            gateway_timeout=max(
                _parse_int("ROUTINE_NOTIFIER_GATEWAY_TIMEOUT", DEFAULT_GATEWAY_TIMEOUT),
                1,
            ),
            dispatch_workers=max(
                _parse_int(
                    "ROUTINE_NOTIFIER_DISPATCH_WORKERS", DEFAULT_DISPATCH_WORKERS
                ),
                1,
            ),
            run_scheduler=(
                _parse_bool(run_scheduler_env)
                if run_scheduler_env is not None
                else False
            ),
            interval_seconds=max(
                _parse_int(
                    "ROUTINE_NOTIFIER_INTERVAL_SECONDS", DEFAULT_INTERVAL_SECONDS
                ),
                1,
            ),
            supabase_url=os.environ.get("SUPABASE_URL") or None,
            supabase_service_key=os.environ.get("SUPABASE_SERVICE_ROLE_KEY") or None,
        )

        logger.bind(
            utc_offset_minutes=settings.utc_offset_minutes,
            secrets=settings.credentials_configured,
        ).info("Configuration loaded from environment")
        return settings


@lru_cache
def get_settings() -> Settings:
    """Return cached settings for the running process."""
    return Settings.from_env()
