"""FastAPI application exposing the routine notification trigger engine."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .push.config import get_settings
from .push.utils import configure_logging, logger
from .router import router as scheduler_router
from .runner import CycleRunner

configure_logging()


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    if not settings.run_scheduler:
        logger.debug("In-process cycle runner disabled; waiting for external invocations")
        yield
        return

    cycle_runner = CycleRunner(interval_seconds=settings.interval_seconds)
    await cycle_runner.start()
    try:
        yield
    finally:
        await cycle_runner.stop()


app = FastAPI(
    title="Routine Notifier API",
    version="1.0.0",
    description=(
        "Evaluates the active routine once per invocation and pushes start/end "
        "reminders to subscribed devices."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(scheduler_router)


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    """Simple readiness probe."""
    return {"status": "ok"}
