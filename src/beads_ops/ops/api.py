# src/beads_ops/ops/api.py

from __future__ import annotations

"""
Named async wrappers around BeadsClient.

Each helper schedules one bd call through the OperationScheduler and returns
the operation id. An (None, error) result from the invoker is raised as
CommandError inside the worker, so the scheduler records the operation as
failed with that error as its result.

sync() is the exception: it is queued by SyncService, which owns the
re-entrancy guard, last-sync time and on_sync callbacks.
"""

from collections.abc import Callable
from typing import Any

from ..bd.client import BeadsClient
from ..bd.invoker import CommandError
from ..core.ports import InvokeResult
from .models import CompletionCallback
from .scheduler import OperationScheduler
from .sync_service import SyncService


def _unwrap(command: str, call: Callable[..., InvokeResult], *args: Any, **kwargs: Any) -> Any:
    result, error = call(*args, **kwargs)
    if error is not None:
        raise CommandError(error, command=command)
    return result


def ready(
    scheduler: OperationScheduler,
    client: BeadsClient,
    on_complete: CompletionCallback | None = None,
) -> str:
    return scheduler.run("ready", _unwrap, ["ready", client.ready], on_complete)


def show(
    scheduler: OperationScheduler,
    client: BeadsClient,
    task_id: str,
    on_complete: CompletionCallback | None = None,
) -> str:
    return scheduler.run("show", _unwrap, ["show", client.show, task_id], on_complete)


def create(
    scheduler: OperationScheduler,
    client: BeadsClient,
    title: str,
    on_complete: CompletionCallback | None = None,
    **opts: Any,
) -> str:
    def _create() -> Any:
        return _unwrap("create", client.create, title, **opts)

    return scheduler.run("create", _create, (), on_complete)


def update(
    scheduler: OperationScheduler,
    client: BeadsClient,
    task_id: str,
    on_complete: CompletionCallback | None = None,
    **fields: Any,
) -> str:
    def _update() -> Any:
        return _unwrap("update", client.update, task_id, **fields)

    return scheduler.run("update", _update, (), on_complete)


def close(
    scheduler: OperationScheduler,
    client: BeadsClient,
    task_id: str,
    on_complete: CompletionCallback | None = None,
) -> str:
    return scheduler.run("close", _unwrap, ["close", client.close, task_id], on_complete)


def delete(
    scheduler: OperationScheduler,
    client: BeadsClient,
    task_id: str,
    on_complete: CompletionCallback | None = None,
) -> str:
    return scheduler.run("delete", _unwrap, ["delete", client.delete, task_id], on_complete)


def sync(
    service: SyncService,
    on_complete: CompletionCallback | None = None,
) -> str:
    # Syncs are heavy; let them wait for a free slot instead of piling up.
    return service.submit(on_complete)
