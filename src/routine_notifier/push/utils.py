"""Loguru setup shared by the API, the cycle runner and the CLI."""

from __future__ import annotations

import os
import sys

from loguru import logger

_TRUTHY = {"1", "true", "yes", "on"}
_LOGGER_CONFIGURED = False


def configure_logging(*, force: bool = False) -> None:
    """Route Loguru output to stderr once per process.

    ``ROUTINE_NOTIFIER_LOG_LEVEL`` picks the minimum level (``INFO`` by default)
    and ``ROUTINE_NOTIFIER_LOG_DIAGNOSE`` enables variable values in tracebacks.
    Cycle context added with ``logger.bind`` is kept in each record's extras.
    Pass ``force=True`` to rebuild the sink after the environment changed.
    """
    global _LOGGER_CONFIGURED
    if _LOGGER_CONFIGURED and not force:
        return

    level = os.getenv("ROUTINE_NOTIFIER_LOG_LEVEL", "INFO").upper()
    diagnose = os.getenv("ROUTINE_NOTIFIER_LOG_DIAGNOSE", "false").lower() in _TRUTHY

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        backtrace=False,
        diagnose=diagnose,
        colorize=sys.stderr.isatty(),
    )
    _LOGGER_CONFIGURED = True


configure_logging()

__all__ = ["configure_logging", "logger"]
