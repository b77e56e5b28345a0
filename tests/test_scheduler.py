# tests/test_scheduler.py

from __future__ import annotations

import asyncio
import time

import pytest

from beads_ops.ops.models import OperationStatus, SchedulerConfig
from beads_ops.ops.scheduler import NOT_FOUND, TIMED_OUT, OperationScheduler

from .fakes import RecordingNotifier


async def _until(predicate, timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


async def _drain(scheduler: OperationScheduler, timeout: float = 2.0) -> None:
    await _until(lambda: not (scheduler.get_stats()["active"] or scheduler.get_queue_size()), timeout)


@pytest.mark.asyncio
async def test_run_returns_id_before_completion(scheduler: OperationScheduler) -> None:
    calls: list[tuple[bool, object]] = []

    op_id = scheduler.run("instant", lambda: 42, (), lambda ok, res: calls.append((ok, res)))

    assert op_id.startswith("op_")
    assert calls == []
    assert scheduler.get_status(op_id).status == OperationStatus.RUNNING
    assert op_id in scheduler.get_active()

    assert await scheduler.wait(op_id) == (True, 42)
    assert calls == [(True, 42)]


@pytest.mark.asyncio
async def test_ids_are_unique_across_run_and_queue(scheduler: OperationScheduler) -> None:
    ids = [scheduler.run("r", lambda: None) for _ in range(5)]
    ids += [scheduler.queue("q", lambda: None) for _ in range(5)]
    assert len(set(ids)) == 10
    await _drain(scheduler)


@pytest.mark.asyncio
async def test_success_updates_bucket_progress_and_notifier(
    scheduler: OperationScheduler, notifier: RecordingNotifier
) -> None:
    async def fetch(x: int) -> int:
        await asyncio.sleep(0)
        return x * 2

    op_id = scheduler.run("double", fetch, [21])
    await scheduler.wait(op_id)

    op = scheduler.get_operation(op_id)
    assert op.status == OperationStatus.COMPLETED
    assert op.result == 42
    assert op.ended_at is not None
    assert scheduler.get_stats() == {"active": 0, "completed": 1, "failed": 0, "total": 1}
    assert scheduler.progress.is_operation_success(op_id) is True
    assert scheduler.progress.get_tracker(op_id).status == "completed"
    assert notifier.sent[-1].message == "Operation 'double' completed"
    assert notifier.sent[-1].level == "info"


@pytest.mark.asyncio
async def test_exception_becomes_failed_operation(
    scheduler: OperationScheduler, notifier: RecordingNotifier
) -> None:
    seen: list[tuple[bool, object]] = []

    def boom() -> None:
        raise RuntimeError("bd exploded")

    op_id = scheduler.run("sync", boom, (), lambda ok, res: seen.append((ok, res)))
    ok, result = await scheduler.wait(op_id)

    assert ok is False
    assert isinstance(result, RuntimeError)
    assert scheduler.get_status(op_id).status == OperationStatus.FAILED
    assert scheduler.get_stats()["failed"] == 1
    assert scheduler.progress.get_tracker(op_id).error == "bd exploded"
    assert notifier.sent[-1].level == "error"
    assert "bd exploded" in notifier.sent[-1].message
    assert len(seen) == 1 and seen[0][0] is False


@pytest.mark.asyncio
async def test_notifications_respect_config(scheduler: OperationScheduler, notifier: RecordingNotifier) -> None:
    scheduler.set_config(notify_on_complete=False, notify_on_error=False)

    def boom() -> None:
        raise ValueError("x")

    await scheduler.wait(scheduler.run("ok", lambda: 1))
    await scheduler.wait(scheduler.run("bad", boom))
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_callback_errors_do_not_escape(scheduler: OperationScheduler) -> None:
    def bad_callback(ok: bool, res: object) -> None:
        raise RuntimeError("callback bug")

    first = scheduler.run("a", lambda: 1, (), bad_callback)
    second = scheduler.queue("b", lambda: 2)

    assert await scheduler.wait(first) == (True, 1)
    assert await scheduler.wait(second) == (True, 2)


@pytest.mark.asyncio
async def test_queue_drains_in_fifo_order(notifier: RecordingNotifier) -> None:
    scheduler = OperationScheduler(notifier=notifier, config=SchedulerConfig(max_concurrent=1))
    started: list[str] = []
    gates = {name: asyncio.Event() for name in "ABC"}

    def step(name: str):
        async def _op() -> str:
            started.append(name)
            await gates[name].wait()
            return name

        return _op

    a = scheduler.queue("A", step("A"))
    b = scheduler.queue("B", step("B"))
    c = scheduler.queue("C", step("C"))

    assert scheduler.get_queued() == [b, c]
    assert scheduler.get_status(b).status == OperationStatus.QUEUED
    assert scheduler.progress.get_tracker(c) is not None

    gates["A"].set()
    await _until(lambda: scheduler.get_status(a).status == OperationStatus.COMPLETED)
    assert scheduler.get_status(b).status == OperationStatus.RUNNING
    assert scheduler.get_status(c).status == OperationStatus.QUEUED

    gates["B"].set()
    gates["C"].set()
    await _drain(scheduler)
    assert started == ["A", "B", "C"]
    assert scheduler.get_stats()["completed"] == 3


@pytest.mark.asyncio
async def test_queue_never_exceeds_max_concurrent(scheduler: OperationScheduler) -> None:
    scheduler.set_max_concurrent(2)
    running = 0
    peak = 0

    async def work() -> None:
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.01)
        running -= 1

    for _ in range(6):
        scheduler.queue("w", work)
        assert scheduler.get_stats()["active"] <= 2

    await _drain(scheduler)
    assert peak == 2
    assert scheduler.get_stats()["completed"] == 6


@pytest.mark.asyncio
async def test_raising_capacity_starts_blocked_work(scheduler: OperationScheduler) -> None:
    gate = asyncio.Event()

    async def blocked() -> None:
        await gate.wait()

    scheduler.set_max_concurrent(1)
    first = scheduler.queue("first", blocked)
    second = scheduler.queue("second", blocked)
    assert scheduler.get_queued() == [second]

    scheduler.set_max_concurrent(2)
    assert scheduler.get_queued() == []
    assert scheduler.get_status(second).status == OperationStatus.RUNNING

    gate.set()
    assert (await scheduler.wait(first))[0] is True


@pytest.mark.asyncio
async def test_disabled_queue_holds_work_until_enabled(scheduler: OperationScheduler) -> None:
    scheduler.set_queue_enabled(False)
    op_id = scheduler.queue("held", lambda: "done")
    await asyncio.sleep(0.02)
    assert scheduler.get_queue_size() == 1

    scheduler.set_queue_enabled(True)
    assert await scheduler.wait(op_id) == (True, "done")


@pytest.mark.asyncio
async def test_cancel_running_operation(scheduler: OperationScheduler, notifier: RecordingNotifier) -> None:
    callbacks: list[object] = []
    never = asyncio.Event()

    async def hang() -> None:
        await never.wait()

    op_id = scheduler.run("hang", hang, (), lambda ok, res: callbacks.append(res))
    await asyncio.sleep(0.01)

    scheduler.cancel(op_id)

    assert scheduler.get_status(op_id).status == OperationStatus.CANCELLED
    assert op_id not in scheduler.get_active()
    assert scheduler.get_stats() == {"active": 0, "completed": 0, "failed": 1, "total": 1}

    await asyncio.sleep(0.02)
    assert callbacks == []
    assert notifier.sent == []
    assert (await scheduler.wait(op_id))[0] is False


@pytest.mark.asyncio
async def test_late_completion_after_cancel_is_ignored(scheduler: OperationScheduler) -> None:
    def slow() -> str:
        time.sleep(0.05)
        return "late"

    op_id = scheduler.run("slow", slow)
    await asyncio.sleep(0.01)
    scheduler.cancel(op_id)
    await asyncio.sleep(0.1)

    assert scheduler.get_status(op_id).status == OperationStatus.CANCELLED
    assert scheduler.get_stats()["completed"] == 0


@pytest.mark.asyncio
async def test_cancel_unknown_or_finished_is_noop(scheduler: OperationScheduler) -> None:
    scheduler.cancel("op_999")
    op_id = scheduler.run("done", lambda: 1)
    await scheduler.wait(op_id)
    scheduler.cancel(op_id)
    assert scheduler.get_status(op_id).status == OperationStatus.COMPLETED


@pytest.mark.asyncio
async def test_wait_timeout_leaves_operation_running(scheduler: OperationScheduler) -> None:
    async def slow() -> str:
        await asyncio.sleep(0.5)
        return "finished"

    op_id = scheduler.run("slow", slow)

    started = time.monotonic()
    assert await scheduler.wait(op_id, 0.1) == (False, TIMED_OUT)
    assert time.monotonic() - started < 0.4
    assert scheduler.get_status(op_id).status == OperationStatus.RUNNING

    assert await scheduler.wait(op_id, 2.0) == (True, "finished")
    assert scheduler.get_stats()["completed"] == 1


@pytest.mark.asyncio
async def test_wait_unknown_operation(scheduler: OperationScheduler) -> None:
    assert await scheduler.wait("op_404", 0.1) == (False, NOT_FOUND)


@pytest.mark.asyncio
async def test_retry_creates_new_operation(scheduler: OperationScheduler) -> None:
    attempts = 0

    def flaky() -> str:
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            raise RuntimeError("first try fails")
        return "ok"

    first = scheduler.run("flaky", flaky)
    await scheduler.wait(first)

    second = scheduler.retry(first)
    assert second is not None and second != first
    assert await scheduler.wait(second) == (True, "ok")

    assert scheduler.get_status(first).status == OperationStatus.FAILED
    assert scheduler.get_operation(first).retry_count == 1
    assert scheduler.get_operation(second).retry_count == 1


@pytest.mark.asyncio
async def test_retry_cap(scheduler: OperationScheduler, notifier: RecordingNotifier) -> None:
    scheduler.set_retry_max_attempts(2)
    scheduler.set_config(notify_on_complete=False)

    op_id = scheduler.run("once", lambda: 1)
    await scheduler.wait(op_id)

    assert scheduler.retry(op_id) is not None
    assert scheduler.retry(op_id) is not None
    assert notifier.sent == []

    assert scheduler.retry(op_id) is None
    assert notifier.levels() == ["warn"]
    assert "exceeded max retry attempts" in notifier.sent[0].message
    await _drain(scheduler)


@pytest.mark.asyncio
async def test_retry_unknown_or_running_returns_none(scheduler: OperationScheduler) -> None:
    gate = asyncio.Event()

    async def blocked() -> None:
        await gate.wait()

    op_id = scheduler.run("blocked", blocked)
    assert scheduler.retry(op_id) is None
    assert scheduler.retry("op_404") is None
    gate.set()
    await scheduler.wait(op_id)


@pytest.mark.asyncio
async def test_auto_retry_with_backoff_stops_at_cap(scheduler: OperationScheduler, notifier: RecordingNotifier) -> None:
    scheduler.set_config(retry_enabled=True, retry_max_attempts=2, retry_delay=0.01, notify_on_error=False)
    attempts = 0

    def always_fails() -> None:
        nonlocal attempts
        attempts += 1
        raise RuntimeError("still broken")

    scheduler.run("broken", always_fails)

    await _until(lambda: "warn" in notifier.levels())

    assert attempts == 3
    assert scheduler.get_stats()["failed"] == 3


@pytest.mark.asyncio
async def test_clear_history_keeps_running_operations(scheduler: OperationScheduler) -> None:
    gate = asyncio.Event()

    async def blocked() -> None:
        await gate.wait()

    def boom() -> None:
        raise RuntimeError("x")

    done = scheduler.run("done", lambda: 1)
    failed = scheduler.run("failed", boom)
    await scheduler.wait(done)
    await scheduler.wait(failed)
    running = scheduler.run("running", blocked)

    scheduler.clear_completed()
    assert scheduler.get_stats()["completed"] == 0
    assert scheduler.progress.get_tracker(done) is None

    scheduler.clear_history()
    assert scheduler.get_stats() == {"active": 1, "completed": 0, "failed": 0, "total": 1}
    assert scheduler.get_status(failed) is None
    assert scheduler.get_active() == [running]

    gate.set()
    await scheduler.wait(running)


@pytest.mark.asyncio
async def test_get_active_deduplicates_progress_trackers(scheduler: OperationScheduler) -> None:
    gate = asyncio.Event()

    async def blocked() -> None:
        await gate.wait()

    op_id = scheduler.run("blocked", blocked)
    scheduler.progress.create("batch", 10, "Import")

    assert scheduler.get_active() == [op_id, "batch"]

    gate.set()
    await scheduler.wait(op_id)


@pytest.mark.asyncio
async def test_elapsed_is_frozen_after_completion(scheduler: OperationScheduler) -> None:
    async def short() -> None:
        await asyncio.sleep(0.02)

    op_id = scheduler.run("short", short)
    await scheduler.wait(op_id)
    elapsed = scheduler.get_elapsed(op_id)
    await asyncio.sleep(0.02)

    assert elapsed > 0.0
    assert scheduler.get_elapsed(op_id) == elapsed
    assert scheduler.get_elapsed("op_404") == 0.0


def test_config_accessors() -> None:
    scheduler = OperationScheduler()
    config = scheduler.get_config()
    assert config["max_concurrent"] == 3
    assert config["queue_enabled"] is True
    assert config["default_timeout"] == 30.0
    assert config["retry_max_attempts"] == 3
    assert config["notify_on_complete"] is True

    scheduler.set_default_timeout(60)
    scheduler.set_retry_enabled(True)
    scheduler.set_config(bogus=1)
    config = scheduler.get_config()
    assert config["default_timeout"] == 60.0
    assert config["retry_enabled"] is True
    assert "bogus" not in config


@pytest.mark.asyncio
async def test_shutdown_cancels_running_work(scheduler: OperationScheduler) -> None:
    never = asyncio.Event()

    async def hang() -> None:
        await never.wait()

    scheduler.set_max_concurrent(1)
    op_id = scheduler.run("hang", hang)
    queued_id = scheduler.queue("later", hang)

    scheduler.shutdown()

    assert scheduler.get_status(op_id).status == OperationStatus.CANCELLED
    assert scheduler.get_status(queued_id).status == OperationStatus.QUEUED
    assert scheduler.get_stats()["active"] == 0


@pytest.mark.asyncio
async def test_system_exit_from_callable_fails_only_that_operation(scheduler: OperationScheduler) -> None:
    async def bail() -> None:
        raise SystemExit(3)

    op_id = scheduler.run("bail", bail)
    ok, result = await scheduler.wait(op_id)

    assert ok is False
    assert isinstance(result, SystemExit)
    assert scheduler.get_status(op_id).status == OperationStatus.FAILED
    assert scheduler.get_stats()["active"] == 0

    assert await scheduler.wait(scheduler.run("after", lambda: "still alive")) == (True, "still alive")


@pytest.mark.asyncio
async def test_task_cancelled_directly_is_recorded_and_frees_its_slot(scheduler: OperationScheduler) -> None:
    never = asyncio.Event()

    async def hang() -> None:
        await never.wait()

    scheduler.set_max_concurrent(1)
    op_id = scheduler.run("hang", hang)
    queued_id = scheduler.queue("next", lambda: "next done")
    await asyncio.sleep(0)

    scheduler._tasks[op_id].cancel()

    assert await scheduler.wait(queued_id) == (True, "next done")
    assert scheduler.get_status(op_id).status == OperationStatus.CANCELLED
    assert op_id not in scheduler.get_active()
    assert scheduler.progress.get_tracker(op_id).status == "failed"


def test_queue_without_loop_keeps_the_entry() -> None:
    scheduler = OperationScheduler(config=SchedulerConfig(notify_on_complete=False))

    op_id = scheduler.queue("offline", lambda: "ran")

    assert scheduler.get_queued() == [op_id]
    assert scheduler.get_status(op_id).status == OperationStatus.QUEUED

    async def drain() -> tuple[bool, object]:
        scheduler.process_queue()
        return await scheduler.wait(op_id)

    assert asyncio.run(drain()) == (True, "ran")
    assert scheduler.get_queue_size() == 0


def test_run_without_loop_raises_and_leaves_no_trace() -> None:
    scheduler = OperationScheduler()

    with pytest.raises(RuntimeError):
        scheduler.run("offline", lambda: None)

    assert scheduler.progress.get_active() == []
    assert scheduler.get_stats()["total"] == 0


@pytest.mark.asyncio
async def test_set_config_clamps_through_typed_setters(scheduler: OperationScheduler) -> None:
    scheduler.set_config(max_concurrent=0, default_timeout=-5, retry_max_attempts=-1, retry_delay=-1)

    config = scheduler.get_config()
    assert config["max_concurrent"] == 1
    assert config["default_timeout"] == 0.0
    assert config["retry_max_attempts"] == 0
    assert config["retry_delay"] == 0.0

    op_id = scheduler.queue("after clamp", lambda: "drained")
    assert await scheduler.wait(op_id, 2.0) == (True, "drained")
