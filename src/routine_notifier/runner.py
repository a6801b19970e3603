"""Invokers for the evaluation cycle: on demand and once per tick."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime

from .cycle import CycleOutcome, run_cycle
from .push.config import Settings, get_settings
from .push.onesignal import OneSignalClient
from .push.utils import logger
from .store import get_store


def run_configured_cycle(
    settings: Settings, *, now: datetime | None = None, send: bool = True
) -> CycleOutcome:
    """Run one cycle against the configured store and OneSignal gateway."""
    store = get_store(settings)
    gateway = OneSignalClient.from_settings(settings)
    try:
        return run_cycle(store, gateway, settings, now=now, send=send)
    finally:
        gateway.close()


@dataclass
class CycleRunner:
    interval_seconds: int = 60
    settings_factory: Callable[[], Settings] = get_settings
    _task: asyncio.Task[None] | None = field(default=None, init=False)
    _running: bool = field(default=False, init=False)

    async def start(self) -> None:
        if self._task:
            return
        self._running = True
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run())
        logger.bind(interval_seconds=self.interval_seconds).info("Cycle runner started.")

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        logger.info("Cycle runner stopped.")

    async def _run(self) -> None:
        while self._running:
            try:
                await asyncio.to_thread(self.evaluate_once)
            except Exception as exc:  # pragma: no cover - defensive logging
                logger.exception("Evaluation cycle failed.", error=str(exc))
            await asyncio.sleep(self.interval_seconds)

    def evaluate_once(self, *, now: datetime | None = None) -> CycleOutcome:
        return run_configured_cycle(self.settings_factory(), now=now)


__all__ = ["CycleRunner", "run_configured_cycle"]
