# src/beads_ops/connectors/notifier.py

from __future__ import annotations

import logging
from datetime import datetime

from ..core.ports import NotifyLevel

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


class LoggingNotifier:
    """Routes notifications into the log only (headless runs)."""

    def notify(self, message: str, level: NotifyLevel = "info") -> None:
        logger.log(_LOG_LEVELS.get(level, logging.INFO), "%s", message)


class ConsoleNotifier:
    """
    Toast-style console output for interactive use.

    The message is printed for the user and logged at DEBUG so the file log
    keeps a record without echoing it twice on the console.
    """

    def notify(self, message: str, level: NotifyLevel = "info") -> None:
        tag = "" if level == "info" else f"[{level.upper()}] "
        try:
            print(f"[{_ts_local()}] {tag}{message}", flush=True)
        except Exception:
            logger.debug("console notify failed", exc_info=True)
        logger.debug("notify level=%s: %s", level, message)
