# src/beads_ops/ops/models.py

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

CompletionCallback = Callable[[bool, Any], None]


class OperationStatus(StrEnum):
    """
    Operation lifecycle status.

    Notes:
    - "queued" is only reported for ids still waiting in the FIFO queue;
      stored Operation records start at "running".
    - completed / failed / cancelled are terminal.
    """

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (OperationStatus.COMPLETED, OperationStatus.FAILED, OperationStatus.CANCELLED)


@dataclass(slots=True)
class Operation:
    id: str
    name: str
    fn: Callable[..., Any]
    args: Sequence[Any]
    on_complete: CompletionCallback | None

    status: OperationStatus
    started_at: float
    ended_at: float | None = None

    result: Any = None
    success: bool | None = None
    retry_count: int = 0


@dataclass(slots=True)
class QueuedOperation:
    id: str
    name: str
    fn: Callable[..., Any]
    args: Sequence[Any]
    on_complete: CompletionCallback | None
    queued_at: float


@dataclass(slots=True)
class SchedulerConfig:
    max_concurrent: int = 3
    queue_enabled: bool = True
    default_timeout: float = 30.0
    retry_enabled: bool = False
    retry_max_attempts: int = 3
    retry_delay: float = 1.0
    notify_on_complete: bool = True
    notify_on_error: bool = True
    poll_interval: float = 0.1

    @classmethod
    def from_settings(cls, settings: Any) -> SchedulerConfig:
        return cls(
            max_concurrent=int(settings.max_concurrent),
            queue_enabled=bool(settings.queue_enabled),
            default_timeout=float(settings.default_timeout_seconds),
            retry_enabled=bool(settings.retry_enabled),
            retry_max_attempts=int(settings.retry_max_attempts),
            retry_delay=float(settings.retry_delay_seconds),
            notify_on_complete=bool(settings.notify_on_complete),
            notify_on_error=bool(settings.notify_on_error),
        )


@dataclass(slots=True, frozen=True)
class OperationSnapshot:
    """Read-only view returned by OperationScheduler.get_status()."""

    id: str
    name: str
    status: OperationStatus
    started_at: float | None
    ended_at: float | None
    success: bool | None
    result: Any
    elapsed: float
    retry_count: int = 0
