# src/beads_ops/ops/sync_service.py

from __future__ import annotations

"""
Sync coordination.

Every sync goes through the OperationScheduler queue, so bd never runs
outside the max_concurrent budget:
- submit()        -> queue one sync now (the /sync command and ops.api.sync)
- request_sync()  -> debounced submit; a burst of requests becomes one sync
- run_auto_sync() -> a small polling loop that submits every interval_seconds,
                     skipping a tick while the previous auto sync is unfinished

sync() is the worker body: one bd sync at a time, remembers when it last
succeeded and fans out to registered on_sync callbacks.

To stop the loop, cancel the coroutine/task (or call stop_auto_sync()).
"""

import asyncio
import logging
import threading
import time
from collections.abc import Callable

from ..bd.client import BeadsClient
from ..bd.invoker import CommandError
from ..cache.debounce import DebounceRegistry
from ..core.ports import Notifier
from .models import CompletionCallback
from .scheduler import OperationScheduler

logger = logging.getLogger(__name__)

SKIPPED = "Sync already in progress"
SYNCED = "Sync complete"
REQUEST_DELAY = 0.5


class SyncService:
    def __init__(
        self,
        client: BeadsClient,
        scheduler: OperationScheduler,
        notifier: Notifier | None = None,
        *,
        debouncer: DebounceRegistry | None = None,
    ) -> None:
        self.client = client
        self.scheduler = scheduler
        self.notifier = notifier
        self.last_sync_at: float = 0.0
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []
        self._auto_task: asyncio.Task[None] | None = None
        self._auto_op_id: str | None = None

        self.debouncer = debouncer if debouncer is not None else DebounceRegistry()
        self._request = self.debouncer.register("sync", self.submit, REQUEST_DELAY)

    def on_sync(self, callback: Callable[[], None]) -> None:
        self._callbacks.append(callback)

    def is_syncing(self) -> bool:
        return self._lock.locked()

    # ---- worker body ----

    def _sync_once(self) -> str | None:
        """Run bd sync; return None on success, else the error text."""
        # Workers run in threads: a non-blocking acquire is the re-entrancy guard.
        if not self._lock.acquire(blocking=False):
            logger.debug("sync skipped: already syncing")
            return SKIPPED
        try:
            _, error = self.client.sync()
        finally:
            self._lock.release()

        if error is not None:
            logger.warning("sync failed: %s", error)
            return error

        self.last_sync_at = time.time()
        for cb in list(self._callbacks):
            try:
                cb()
            except Exception:
                logger.exception("on_sync callback failed")
        return None

    def sync(self) -> bool:
        """Run bd sync unless one is already in flight. Returns success."""
        error = self._sync_once()
        if error is None:
            return True
        if error != SKIPPED and self.notifier is not None:
            self.notifier.notify(f"Sync failed: {error}", "warn")
        return False

    def _sync_or_raise(self) -> str:
        # The scheduler reports the failure, so no notification here.
        error = self._sync_once()
        if error is not None:
            raise CommandError(error, command="sync")
        return SYNCED

    # ---- scheduling ----

    def submit(self, on_complete: CompletionCallback | None = None) -> str:
        """Queue one sync through the scheduler and return its operation id."""
        return self.scheduler.queue("sync", self._sync_or_raise, (), on_complete)

    def request_sync(self) -> None:
        """Debounced submit(): only the last request in a burst is scheduled."""
        self._request()

    def time_since_last_sync(self) -> float:
        """Seconds since the last successful sync, or -1 if there has been none."""
        if self.last_sync_at == 0:
            return -1
        return time.time() - self.last_sync_at

    def _auto_sync_busy(self) -> bool:
        if self._auto_op_id is None:
            return False
        snapshot = self.scheduler.get_status(self._auto_op_id)
        return snapshot is not None and not snapshot.status.is_terminal

    async def run_auto_sync(self, interval_seconds: float) -> None:
        """
        Simple polling loop.

        Every interval_seconds queue a sync on the scheduler, unless the
        previous auto sync is still queued or running.
        """
        sleep_s = max(0.5, float(interval_seconds))
        while True:
            await asyncio.sleep(sleep_s)
            if self._auto_sync_busy():
                logger.debug("auto sync tick skipped: %s still pending", self._auto_op_id)
                continue
            try:
                self._auto_op_id = self.submit()
            except Exception:
                logger.exception("auto sync failed")

    def start_auto_sync(self, interval_seconds: float) -> asyncio.Task[None]:
        self.stop_auto_sync()
        self._auto_task = asyncio.get_running_loop().create_task(
            self.run_auto_sync(interval_seconds), name="beads-auto-sync"
        )
        logger.info("Auto sync every %.1fs", interval_seconds)
        return self._auto_task

    def stop_auto_sync(self) -> None:
        self.debouncer.cancel("sync")
        if self._auto_task is not None:
            self._auto_task.cancel()
            self._auto_task = None
