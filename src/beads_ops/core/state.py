# src/beads_ops/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..bd.client import BeadsClient
from ..cache.debounce import DebounceRegistry
from ..cache.result_cache import ResultCache
from ..ops.progress import ProgressRegistry
from ..ops.scheduler import OperationScheduler
from ..ops.sync_service import SyncService
from .ports import Notifier


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: object

    notifier: Notifier
    cache: ResultCache
    client: BeadsClient
    progress: ProgressRegistry
    scheduler: OperationScheduler
    sync: SyncService
    debouncer: DebounceRegistry
