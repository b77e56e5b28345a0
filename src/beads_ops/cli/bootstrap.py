# src/beads_ops/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures the local (gitignored) data directory exists,
- wires concrete implementations into AppState (invoker/cache/scheduler/sync/debouncer).
"""

from __future__ import annotations

import logging

from ..bd.client import BeadsClient
from ..bd.invoker import BdInvoker
from ..cache.debounce import DebounceRegistry
from ..cache.result_cache import ResultCache
from ..config import get_settings
from ..connectors.notifier import ConsoleNotifier, LoggingNotifier
from ..core.ports import Invoker, Notifier
from ..core.state import AppState
from ..ops.models import SchedulerConfig
from ..ops.progress import ProgressRegistry
from ..ops.scheduler import OperationScheduler
from ..ops.sync_service import SyncService

logger = logging.getLogger(__name__)


def create_initial_state(
    *,
    settings=None,
    invoker: Invoker | None = None,
    notifier: Notifier | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and the invoker/notifier ports) injectable makes the app
    easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    settings.data_dir.mkdir(parents=True, exist_ok=True)

    if invoker is None:
        bd = BdInvoker(binary=settings.bd_binary, timeout=settings.bd_timeout_seconds)
        if not bd.is_available():
            logger.warning("'%s' not found in PATH; bd commands will fail until it is installed", settings.bd_binary)
        invoker = bd

    if notifier is None:
        notifier = ConsoleNotifier() if settings.console_enabled else LoggingNotifier()

    cache = ResultCache(ttl_seconds=settings.cache_ttl_seconds, enabled=settings.cache_enabled)
    client = BeadsClient(invoker, cache)
    progress = ProgressRegistry()
    debouncer = DebounceRegistry()
    scheduler = OperationScheduler(
        notifier=notifier,
        progress=progress,
        config=SchedulerConfig.from_settings(settings),
    )

    return AppState(
        settings=settings,
        notifier=notifier,
        cache=cache,
        client=client,
        progress=progress,
        scheduler=scheduler,
        sync=SyncService(client, scheduler, notifier, debouncer=debouncer),
        debouncer=debouncer,
    )
