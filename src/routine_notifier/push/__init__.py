"""Push gateway configuration, client and logging helpers."""

from __future__ import annotations

from .config import Settings, get_settings
from .onesignal import OneSignalClient
from .utils import configure_logging, logger

__all__ = [
    "Settings",
    "get_settings",
    "OneSignalClient",
    "configure_logging",
    "logger",
]
