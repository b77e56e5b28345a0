# src/beads_ops/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs on one asyncio loop:
- auto sync in the background (optional),
- console REPL (optional); otherwise just keep background work alive.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.state import AppState
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        state.sync.stop_auto_sync()
    except Exception:
        logger.debug("Auto sync stop failed.", exc_info=True)

    state.debouncer.flush_all()

    try:
        state.scheduler.shutdown()
    except Exception:
        logger.exception("Scheduler shutdown failed.")


async def _run(state: AppState) -> None:
    settings = state.settings

    interval = float(getattr(settings, "auto_sync_interval_seconds", 0.0))
    if interval > 0:
        state.sync.start_auto_sync(interval)

    try:
        if getattr(settings, "console_enabled", True):
            await run_console_loop(state)
        else:
            logger.info("Console disabled. Running background sync only. Press Ctrl+C to stop.")
            await asyncio.Event().wait()
    finally:
        _shutdown(state)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    state = create_initial_state(settings=settings)

    try:
        asyncio.run(_run(state))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
    finally:
        logger.info("Bye.")


if __name__ == "__main__":
    main()
