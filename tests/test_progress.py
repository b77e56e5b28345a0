# tests/test_progress.py

from __future__ import annotations

import pytest

from beads_ops.ops.progress import ProgressRegistry

from .fakes import ManualClock


@pytest.fixture()
def progress(clock: ManualClock) -> ProgressRegistry:
    return ProgressRegistry(clock=clock)


def test_create_defaults(progress: ProgressRegistry) -> None:
    tracker = progress.create("batch", 100, "Import")
    assert (tracker.id, tracker.title, tracker.total, tracker.current) == ("batch", "Import", 100, 0)
    assert tracker.status == "running"
    assert progress.create("other").title == "other"


def test_update_and_increment_are_clamped(progress: ProgressRegistry) -> None:
    progress.create("t", 10, "T")

    progress.update("t", 15)
    assert progress.get_tracker("t").current == 10

    progress.update("t", -3)
    assert progress.get_tracker("t").current == 0

    progress.increment("t")
    progress.increment("t", 4, "five done")
    assert progress.get_tracker("t").current == 5
    assert [m.text for m in progress.get_tracker("t").messages] == ["five done"]

    progress.increment("t", 100)
    assert progress.get_tracker("t").current == 10


def test_indeterminate_tracker_reports_zero(progress: ProgressRegistry) -> None:
    progress.create("spin", 0, "Working")
    progress.update("spin", 5)
    assert progress.percentage("spin") == 0
    assert progress.bar("spin", 4) == "░░░░"
    assert progress.display("spin") == "░" * 15 + " Working"


def test_percentage_bar_and_display(progress: ProgressRegistry) -> None:
    progress.create("t", 3, "Sync")
    progress.update("t", 1)

    assert progress.percentage("t") == 33
    assert progress.bar("t", 10) == "███░░░░░░░"
    assert progress.display("t") == "█████░░░░░░░░░░  33% [1/3] Sync"


def test_complete_forces_total_and_finalizes_once(progress: ProgressRegistry, clock: ManualClock) -> None:
    progress.create("t", 100, "T")
    clock.advance(2.5)
    progress.complete("t", "Done!")
    clock.advance(10)
    progress.fail("t", "late failure")

    tracker = progress.get_tracker("t")
    assert tracker.status == "completed"
    assert tracker.current == 100
    assert tracker.error is None
    assert progress.elapsed("t") == pytest.approx(2.5)


def test_fail_records_error(progress: ProgressRegistry) -> None:
    progress.create("t", 100, "T")
    progress.update("t", 40)
    progress.fail("t", "Error occurred")

    info = progress.info("t")
    assert info["status"] == "failed"
    assert info["error"] == "Error occurred"
    assert info["current"] == 40
    assert progress.get_tracker("t").messages[-1].text == "Error: Error occurred"


def test_elapsed_runs_until_finalized(progress: ProgressRegistry, clock: ManualClock) -> None:
    progress.create("t", 4, "T")
    clock.advance(2)
    assert progress.elapsed("t") == pytest.approx(2)
    progress.update("t", 2)

    info = progress.info("t")
    assert info["rate"] == pytest.approx(1.0)
    assert info["eta"] == 2


def test_summary_and_clear_completed(progress: ProgressRegistry) -> None:
    progress.create("a", 1)
    progress.create("b", 1)
    progress.create("c", 1)
    progress.complete("a")
    progress.fail("b", "x")

    assert progress.summary() == {"running": 1, "completed": 1, "failed": 1, "total": 3}
    assert progress.get_active() == ["c"]

    progress.clear_completed()
    assert progress.summary() == {"running": 1, "completed": 0, "failed": 0, "total": 1}

    progress.clear("c")
    assert progress.get_tracker("c") is None


def test_operation_helpers(progress: ProgressRegistry) -> None:
    progress.create_operation("op_1", "ready")
    progress.create_operation("op_2", "sync")

    progress.succeed_operation("op_1", ["task"])
    progress.fail_operation("op_2", RuntimeError("boom"))

    assert progress.get_tracker("op_1").total == 1
    assert progress.get_operation_result("op_1") == ["task"]
    assert progress.is_operation_success("op_1") is True
    assert progress.get_operation("op_1")["percentage"] == 100

    assert progress.is_operation_success("op_2") is False
    assert progress.get_tracker("op_2").error == "boom"


def test_unknown_ids_are_neutral(progress: ProgressRegistry) -> None:
    progress.update("nope", 1)
    progress.complete("nope")
    assert progress.percentage("nope") == 0
    assert progress.display("nope") == ""
    assert progress.info("nope") is None
    assert progress.elapsed("nope") == 0.0
    assert progress.get_operation_result("nope") is None
    assert progress.is_operation_success("nope") is False
