# src/beads_ops/ops/scheduler.py

from __future__ import annotations

"""
Async operation scheduler.

Runs named callables on the asyncio event loop without blocking the caller:
- run()   -> start now, return the operation id synchronously
- queue() -> append to a FIFO queue, drained while running < max_concurrent

Every operation ends in exactly one bucket:
- completed (callable returned)
- failed    (callable raised, or the operation was cancelled)

Blocking callables (the bd subprocess) are dispatched with asyncio.to_thread;
coroutine functions are awaited directly. Nothing a callable raises escapes:
failures become Operation / ProgressTracker state plus a notification.

All bookkeeping (buckets, queue, progress) is touched only from the event loop
thread, so no locking is needed here.
"""

import asyncio
import dataclasses
import inspect
import itertools
import logging
import time
from collections import deque
from collections.abc import Callable, Sequence
from typing import Any

from ..core.ports import Notifier, NotifyLevel
from .models import (
    CompletionCallback,
    Operation,
    OperationSnapshot,
    OperationStatus,
    QueuedOperation,
    SchedulerConfig,
)
from .progress import ProgressRegistry

logger = logging.getLogger(__name__)

NOT_FOUND = "Operation not found"
TIMED_OUT = "Operation timed out"
CANCELLED = "Operation cancelled"


class OperationScheduler:
    def __init__(
        self,
        *,
        notifier: Notifier | None = None,
        progress: ProgressRegistry | None = None,
        config: SchedulerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.notifier = notifier
        self.progress = progress if progress is not None else ProgressRegistry(clock=clock)
        self.config = config if config is not None else SchedulerConfig()
        self._clock = clock

        self._counter = itertools.count(1)
        self._active: dict[str, Operation] = {}
        self._completed: dict[str, Operation] = {}
        self._failed: dict[str, Operation] = {}
        self._queue: deque[QueuedOperation] = deque()

        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._retry_timers: set[asyncio.TimerHandle] = set()

    # ---- ids / lookup ----

    def _next_id(self) -> str:
        return f"op_{next(self._counter)}"

    def _find(self, op_id: str) -> Operation | None:
        return self._active.get(op_id) or self._completed.get(op_id) or self._failed.get(op_id)

    def _find_queued(self, op_id: str) -> QueuedOperation | None:
        for q in self._queue:
            if q.id == op_id:
                return q
        return None

    # ---- submission ----

    def run(
        self,
        name: str,
        fn: Callable[..., Any],
        args: Sequence[Any] = (),
        on_complete: CompletionCallback | None = None,
    ) -> str:
        """
        Start an operation now (ignores max_concurrent) and return its id.

        Must be called with a running event loop. The callable never runs
        inline: the id is always returned before any completion callback fires.
        Without a loop this raises RuntimeError before any id or tracker exists.
        """
        asyncio.get_running_loop()
        op_id = self._next_id()
        self.progress.create_operation(op_id, name)
        self._start(op_id, name, fn, tuple(args), on_complete)
        return op_id

    def queue(
        self,
        name: str,
        fn: Callable[..., Any],
        args: Sequence[Any] = (),
        on_complete: CompletionCallback | None = None,
    ) -> str:
        """Append an operation to the FIFO queue and return its id."""
        op_id = self._next_id()
        # Tracker exists while queued so UIs can show pending work.
        self.progress.create_operation(op_id, name)
        self._queue.append(
            QueuedOperation(
                id=op_id,
                name=name,
                fn=fn,
                args=tuple(args),
                on_complete=on_complete,
                queued_at=self._clock(),
            )
        )
        logger.debug("Queued %s (%s), queue size=%d", op_id, name, len(self._queue))
        if self.config.queue_enabled:
            self.process_queue()
        return op_id

    def process_queue(self) -> None:
        """
        Start queued operations while there is capacity. Safe to call repeatedly.

        Without a running loop nothing is dequeued; the next call made from
        the loop (queue(), a finishing operation, a setter) drains it.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; %d operation(s) stay queued", len(self._queue))
            return

        while (
            self.config.queue_enabled
            and self._queue
            and len(self._active) < self.config.max_concurrent
        ):
            q = self._queue.popleft()
            logger.debug("Dequeued %s (%s) after %.2fs", q.id, q.name, self._clock() - q.queued_at)
            self._start(q.id, q.name, q.fn, q.args, q.on_complete)

    def _start(
        self,
        op_id: str,
        name: str,
        fn: Callable[..., Any],
        args: Sequence[Any],
        on_complete: CompletionCallback | None,
        *,
        retry_count: int = 0,
    ) -> Operation:
        loop = asyncio.get_running_loop()
        op = Operation(
            id=op_id,
            name=name,
            fn=fn,
            args=args,
            on_complete=on_complete,
            status=OperationStatus.RUNNING,
            started_at=self._clock(),
            retry_count=retry_count,
        )
        self._active[op_id] = op
        if self.progress.get_tracker(op_id) is None:
            self.progress.create_operation(op_id, name)

        task = loop.create_task(self._execute(op), name=f"beads-op-{op_id}")
        self._tasks[op_id] = task
        task.add_done_callback(lambda _t, op_id=op_id: self._tasks.pop(op_id, None))
        logger.debug("Started %s (%s), active=%d", op_id, name, len(self._active))
        return op

    # ---- execution ----

    @staticmethod
    async def _call(fn: Callable[..., Any], args: Sequence[Any]) -> Any:
        if inspect.iscoroutinefunction(fn):
            return await fn(*args)
        result = await asyncio.to_thread(fn, *args)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _execute(self, op: Operation) -> None:
        try:
            result = await self._call(op.fn, op.args)
        except asyncio.CancelledError:
            if op.status == OperationStatus.CANCELLED:
                return
            # Task cancelled directly (loop teardown, task.cancel()): record it.
            if self._active.get(op.id) is op:
                self._mark_cancelled(op)
                self.process_queue()
            raise
        except Exception as e:
            logger.warning("Operation %s (%s) raised: %s", op.id, op.name, e)
            self._finish(op, False, e)
            return
        except BaseException as e:
            # SystemExit / KeyboardInterrupt raised by the callable end this operation only.
            logger.error("Operation %s (%s) raised %s", op.id, op.name, type(e).__name__)
            self._finish(op, False, e)
            return
        self._finish(op, True, result)

    def _finish(self, op: Operation, success: bool, result: Any) -> None:
        if op.status != OperationStatus.RUNNING or self._active.get(op.id) is not op:
            logger.debug("Ignoring late completion of %s (status=%s)", op.id, op.status)
            return

        op.status = OperationStatus.COMPLETED if success else OperationStatus.FAILED
        op.ended_at = self._clock()
        op.result = result
        op.success = success

        del self._active[op.id]
        if success:
            self._completed[op.id] = op
            self.progress.succeed_operation(op.id, result)
            if self.config.notify_on_complete:
                self._notify(f"Operation '{op.name}' completed", "info")
        else:
            self._failed[op.id] = op
            self.progress.fail_operation(op.id, result)
            if self.config.notify_on_error:
                self._notify(f"Operation '{op.name}' failed: {result}", "error")

        logger.info(
            "Operation %s (%s) -> %s in %.3fs",
            op.id,
            op.name,
            op.status.value,
            op.ended_at - op.started_at,
        )

        if op.on_complete is not None:
            try:
                op.on_complete(success, result)
            except Exception:
                logger.exception("on_complete callback failed op=%s", op.id)

        if not success and self.config.retry_enabled:
            self._schedule_auto_retry(op)

        self.process_queue()

    def _notify(self, message: str, level: NotifyLevel) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.notify(message, level)
        except Exception:
            logger.exception("notifier failed message=%r", message)

    # ---- cancel / wait / retry ----

    def cancel(self, op_id: str) -> None:
        """Best-effort: only running operations are affected; anything else is a no-op."""
        op = self._active.get(op_id)
        if op is None:
            return

        self._mark_cancelled(op)

        # Coroutine callables stop at their next await; thread-dispatched
        # callables keep running and their result is ignored.
        task = self._tasks.pop(op_id, None)
        if task is not None and not task.done():
            task.cancel()

        self.process_queue()

    def _mark_cancelled(self, op: Operation) -> None:
        op.status = OperationStatus.CANCELLED
        op.ended_at = self._clock()
        op.result = CANCELLED
        op.success = False
        del self._active[op.id]
        self._failed[op.id] = op
        self.progress.fail_operation(op.id, CANCELLED)
        logger.info("Operation %s (%s) cancelled", op.id, op.name)

    async def wait(self, op_id: str, timeout: float | None = None) -> tuple[bool, Any]:
        """
        Poll until the operation leaves "running" or the timeout elapses.

        A timeout only ends the wait: the operation keeps running and is
        recorded normally when it finishes.
        """
        if timeout is None:
            timeout = self.config.default_timeout
        loop = asyncio.get_running_loop()
        start = loop.time()

        while True:
            op = self._find(op_id)
            if op is None and self._find_queued(op_id) is None:
                return False, NOT_FOUND
            if op is not None and op.status.is_terminal:
                return bool(op.success), op.result

            elapsed = loop.time() - start
            if elapsed >= timeout:
                return False, TIMED_OUT
            await asyncio.sleep(min(self.config.poll_interval, timeout - elapsed))

    def retry(self, op_id: str) -> str | None:
        """
        Re-run a finished operation under a new id.

        The retry counter lives on the original record and is checked before
        re-running; past retry_max_attempts the lineage is exhausted.
        """
        op = self._completed.get(op_id) or self._failed.get(op_id)
        if op is None:
            return None

        op.retry_count += 1
        if op.retry_count > self.config.retry_max_attempts:
            self._notify(
                f"Operation '{op.name}' exceeded max retry attempts ({self.config.retry_max_attempts})",
                "warn",
            )
            return None

        new_id = self._next_id()
        self.progress.create_operation(new_id, op.name)
        self._start(new_id, op.name, op.fn, op.args, op.on_complete, retry_count=op.retry_count)
        logger.info("Retrying %s (%s) as %s, attempt %d", op_id, op.name, new_id, op.retry_count)
        return new_id

    def _schedule_auto_retry(self, op: Operation) -> None:
        loop = asyncio.get_running_loop()
        delay = self.config.retry_delay * (2**op.retry_count)

        def _fire() -> None:
            self._retry_timers.discard(handle)
            # History may have been cleared in the meantime.
            if op.id in self._failed:
                self.retry(op.id)

        handle = loop.call_later(delay, _fire)
        self._retry_timers.add(handle)
        logger.debug("Auto-retry of %s scheduled in %.2fs", op.id, delay)

    # ---- queries ----

    def get_status(self, op_id: str) -> OperationSnapshot | None:
        op = self._find(op_id)
        if op is not None:
            return OperationSnapshot(
                id=op.id,
                name=op.name,
                status=op.status,
                started_at=op.started_at,
                ended_at=op.ended_at,
                success=op.success,
                result=op.result,
                elapsed=self.get_elapsed(op_id),
                retry_count=op.retry_count,
            )

        q = self._find_queued(op_id)
        if q is not None:
            return OperationSnapshot(
                id=q.id,
                name=q.name,
                status=OperationStatus.QUEUED,
                started_at=None,
                ended_at=None,
                success=None,
                result=None,
                elapsed=0.0,
            )
        return None

    def get_operation(self, op_id: str) -> Operation | None:
        op = self._find(op_id)
        return dataclasses.replace(op) if op is not None else None

    def get_elapsed(self, op_id: str) -> float:
        op = self._find(op_id)
        if op is None:
            return self.progress.elapsed(op_id)
        end = op.ended_at if op.ended_at is not None else self._clock()
        return max(0.0, end - op.started_at)

    def get_active(self) -> list[str]:
        """Running operation ids plus running trackers, deduplicated; queued ids excluded."""
        queued = {q.id for q in self._queue}
        out: list[str] = []
        seen: set[str] = set()
        for op_id in [*self._active, *self.progress.get_active()]:
            if op_id in seen or op_id in queued:
                continue
            seen.add(op_id)
            out.append(op_id)
        return out

    def get_queued(self) -> list[str]:
        return [q.id for q in self._queue]

    def get_queue_size(self) -> int:
        return len(self._queue)

    def get_stats(self) -> dict[str, int]:
        active = len(self._active)
        completed = len(self._completed)
        failed = len(self._failed)
        return {
            "active": active,
            "completed": completed,
            "failed": failed,
            "total": active + completed + failed,
        }

    # ---- history ----

    def clear_completed(self) -> None:
        for op_id in self._completed:
            self.progress.clear(op_id)
        self._completed.clear()

    def clear_failed(self) -> None:
        for op_id in self._failed:
            self.progress.clear(op_id)
        self._failed.clear()

    def clear_history(self) -> None:
        """Drop completed and failed history; running operations are untouched."""
        self.clear_completed()
        self.clear_failed()

    # ---- config ----

    def get_config(self) -> dict[str, Any]:
        return dataclasses.asdict(self.config)

    def set_config(self, **fields: Any) -> None:
        """Update config fields; clamped fields go through their typed setters."""
        setters: dict[str, Callable[[Any], None]] = {
            "max_concurrent": self.set_max_concurrent,
            "queue_enabled": self.set_queue_enabled,
            "default_timeout": self.set_default_timeout,
            "retry_enabled": self.set_retry_enabled,
            "retry_max_attempts": self.set_retry_max_attempts,
            "retry_delay": self.set_retry_delay,
        }
        for key, value in fields.items():
            setter = setters.get(key)
            if setter is not None:
                setter(value)
            elif hasattr(self.config, key):
                setattr(self.config, key, value)
            else:
                logger.warning("Unknown scheduler config key ignored: %s", key)

    def set_max_concurrent(self, n: int) -> None:
        self.config.max_concurrent = max(1, int(n))
        self.process_queue()

    def set_queue_enabled(self, enabled: bool) -> None:
        self.config.queue_enabled = bool(enabled)
        if enabled:
            self.process_queue()

    def set_default_timeout(self, seconds: float) -> None:
        self.config.default_timeout = max(0.0, float(seconds))

    def set_retry_enabled(self, enabled: bool) -> None:
        self.config.retry_enabled = bool(enabled)

    def set_retry_max_attempts(self, n: int) -> None:
        self.config.retry_max_attempts = max(0, int(n))

    def set_retry_delay(self, seconds: float) -> None:
        self.config.retry_delay = max(0.0, float(seconds))

    # ---- shutdown ----

    def shutdown(self) -> None:
        """Stop draining, cancel pending auto-retries and every running operation."""
        self.config.queue_enabled = False
        for handle in list(self._retry_timers):
            handle.cancel()
        self._retry_timers.clear()
        for op_id in list(self._active):
            self.cancel(op_id)
