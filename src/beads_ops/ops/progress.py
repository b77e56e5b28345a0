# src/beads_ops/ops/progress.py

from __future__ import annotations

"""
Progress tracking for operations and multi-step work.

A tracker is keyed by id (the operation id when it backs a scheduled
operation), counts current/total, keeps timestamped messages and is finalized
at most once by complete() or fail(). total == 0 means indeterminate.

Unknown ids are silent no-ops: the UI polls ids that may already be cleared.
"""

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

RUNNING = "running"
COMPLETED = "completed"
FAILED = "failed"

FILLED = "█"
EMPTY = "░"


@dataclass(slots=True)
class ProgressMessage:
    at: float
    text: str


@dataclass(slots=True)
class ProgressTracker:
    id: str
    title: str
    total: int
    started_at: float
    current: int = 0
    status: str = RUNNING
    ended_at: float | None = None
    messages: list[ProgressMessage] = field(default_factory=list)
    error: str | None = None
    result: Any = None
    success: bool | None = None


def _clamp(value: int, total: int) -> int:
    return max(0, min(int(value), total))


class ProgressRegistry:
    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._trackers: dict[str, ProgressTracker] = {}

    # ---- lifecycle ----

    def create(self, tracker_id: str, total: int = 0, title: str | None = None) -> ProgressTracker:
        """Create (or replace) a tracker. total=0 means indeterminate."""
        tracker = ProgressTracker(
            id=tracker_id,
            title=title or tracker_id,
            total=max(0, int(total)),
            started_at=self._clock(),
        )
        self._trackers[tracker_id] = tracker
        return tracker

    def get_tracker(self, tracker_id: str) -> ProgressTracker | None:
        return self._trackers.get(tracker_id)

    def _note(self, tracker: ProgressTracker, text: str | None) -> None:
        if text:
            tracker.messages.append(ProgressMessage(at=self._clock(), text=text))

    def update(self, tracker_id: str, current: int, message: str | None = None) -> None:
        tracker = self._trackers.get(tracker_id)
        if tracker is None:
            return
        tracker.current = _clamp(current, tracker.total)
        self._note(tracker, message)

    def increment(self, tracker_id: str, by: int = 1, message: str | None = None) -> None:
        tracker = self._trackers.get(tracker_id)
        if tracker is None:
            return
        tracker.current = _clamp(tracker.current + by, tracker.total)
        self._note(tracker, message)

    def complete(self, tracker_id: str, message: str | None = None) -> None:
        tracker = self._trackers.get(tracker_id)
        if tracker is None or tracker.status != RUNNING:
            return
        tracker.status = COMPLETED
        tracker.current = tracker.total
        tracker.ended_at = self._clock()
        self._note(tracker, message)

    def fail(self, tracker_id: str, error: str) -> None:
        tracker = self._trackers.get(tracker_id)
        if tracker is None or tracker.status != RUNNING:
            return
        tracker.status = FAILED
        tracker.ended_at = self._clock()
        tracker.error = error
        self._note(tracker, f"Error: {error}")

    # ---- rendering ----

    def percentage(self, tracker_id: str) -> int:
        tracker = self._trackers.get(tracker_id)
        if tracker is None or tracker.total == 0:
            return 0
        return math.floor(tracker.current / tracker.total * 100)

    def bar(self, tracker_id: str, width: int = 20) -> str:
        width = max(0, int(width))
        tracker = self._trackers.get(tracker_id)
        if tracker is None or tracker.total == 0:
            return EMPTY * width
        filled = math.floor(tracker.current / tracker.total * width)
        return FILLED * filled + EMPTY * (width - filled)

    def elapsed(self, tracker_id: str) -> float:
        """Seconds between start and end (or now, while running)."""
        tracker = self._trackers.get(tracker_id)
        if tracker is None:
            return 0.0
        end = tracker.ended_at if tracker.ended_at is not None else self._clock()
        return max(0.0, end - tracker.started_at)

    def info(self, tracker_id: str) -> dict[str, Any] | None:
        tracker = self._trackers.get(tracker_id)
        if tracker is None:
            return None

        elapsed = self.elapsed(tracker_id)
        rate = tracker.current / elapsed if elapsed > 0 else 0.0
        eta = 0
        if rate > 0 and tracker.current < tracker.total:
            eta = math.floor((tracker.total - tracker.current) / rate)

        return {
            "id": tracker.id,
            "title": tracker.title,
            "current": tracker.current,
            "total": tracker.total,
            "percentage": self.percentage(tracker_id),
            "status": tracker.status,
            "elapsed": elapsed,
            "rate": rate,
            "eta": eta,
            "error": tracker.error,
            "message_count": len(tracker.messages),
        }

    def display(self, tracker_id: str) -> str:
        """One-line summary: bar, percentage, counts and title."""
        tracker = self._trackers.get(tracker_id)
        if tracker is None:
            return ""
        bar = self.bar(tracker_id, 15)
        if tracker.total > 0:
            pct = self.percentage(tracker_id)
            return f"{bar} {pct:3d}% [{tracker.current}/{tracker.total}] {tracker.title}"
        return f"{bar} {tracker.title}"

    # ---- queries ----

    def get_active(self) -> list[str]:
        return [tid for tid, t in self._trackers.items() if t.status == RUNNING]

    def summary(self) -> dict[str, int]:
        running = completed = failed = 0
        for t in self._trackers.values():
            if t.status == RUNNING:
                running += 1
            elif t.status == COMPLETED:
                completed += 1
            elif t.status == FAILED:
                failed += 1
        return {
            "running": running,
            "completed": completed,
            "failed": failed,
            "total": running + completed + failed,
        }

    def clear(self, tracker_id: str) -> None:
        self._trackers.pop(tracker_id, None)

    def clear_completed(self) -> None:
        """Drop every finalized tracker (completed or failed)."""
        for tid in [tid for tid, t in self._trackers.items() if t.status != RUNNING]:
            del self._trackers[tid]

    # ---- operation helpers ----

    def create_operation(self, op_id: str, name: str) -> ProgressTracker:
        return self.create(op_id, total=1, title=name)

    def succeed_operation(self, op_id: str, result: Any = None) -> None:
        tracker = self._trackers.get(op_id)
        if tracker is None:
            return
        tracker.result = result
        tracker.success = True
        self.complete(op_id, "completed")

    def fail_operation(self, op_id: str, error: Any) -> None:
        tracker = self._trackers.get(op_id)
        if tracker is None:
            return
        tracker.result = error
        tracker.success = False
        self.fail(op_id, str(error))

    def get_operation_result(self, op_id: str) -> Any:
        tracker = self._trackers.get(op_id)
        return tracker.result if tracker is not None else None

    def is_operation_success(self, op_id: str) -> bool:
        tracker = self._trackers.get(op_id)
        return bool(tracker is not None and tracker.success)

    def get_operation(self, op_id: str) -> dict[str, Any] | None:
        return self.info(op_id)
