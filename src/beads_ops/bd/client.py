# src/beads_ops/bd/client.py

from __future__ import annotations

"""
High-level bd client: cached read paths + write-side invalidation.

Read paths (ready, show):
- cache hit  -> count hit, return the payload, skip the invoker entirely
- cache miss -> count miss, invoke, cache only successful payloads

Write paths (create, update, close, delete, sync) invalidate on success:
- create                 -> the ready list
- update / close / delete -> the ready list + that task's detail entry
- sync                   -> everything
"""

import logging
from collections.abc import Callable
from typing import Any

from ..cache.result_cache import ResultCache
from ..core.ports import InvokeResult, Invoker

logger = logging.getLogger(__name__)


def validate_id(task_id: str | None) -> str | None:
    """Return an error message for an empty task id, else None."""
    if task_id is None or not str(task_id).strip():
        return "Task ID required"
    return None


def _flag_args(**fields: Any) -> list[str]:
    args: list[str] = []
    for name, value in fields.items():
        if value is None:
            continue
        args.extend([f"--{name.replace('_', '-')}", str(value)])
    return args


class BeadsClient:
    def __init__(self, invoker: Invoker, cache: ResultCache) -> None:
        self.invoker = invoker
        self.cache = cache

    def _cached(
        self,
        lookup: Callable[[], Any],
        store: Callable[[Any], None],
        command: str,
        args: list[str],
    ) -> InvokeResult:
        payload = lookup()
        if payload is not None:
            logger.debug("Cache hit: %s %s", command, " ".join(args))
            return payload, None

        self.cache.record_miss()
        result, error = self.invoker.invoke(command, args)
        if error is None and result is not None:
            store(result)
        return result, error

    # ---- reads ----

    def ready(self) -> InvokeResult:
        return self._cached(self.cache.get_list, self.cache.put_list, "ready", [])

    def show(self, task_id: str) -> InvokeResult:
        err = validate_id(task_id)
        if err:
            return None, err
        key = str(task_id)
        return self._cached(
            lambda: self.cache.get(key),
            lambda payload: self.cache.put(key, payload),
            "show",
            [key],
        )

    def incremental_updates(self, since: float | None = None) -> InvokeResult:
        """Tasks changed since a unix timestamp (uncached)."""
        args = [] if since is None else ["--since", str(int(since))]
        return self.invoker.invoke("show", args)

    # ---- writes ----

    def create(
        self,
        title: str,
        *,
        description: str | None = None,
        priority: str | int | None = None,
    ) -> InvokeResult:
        if not title or not title.strip():
            return None, "Title required"
        args = [title, *_flag_args(description=description, priority=priority)]
        result, error = self.invoker.invoke("create", args)
        if error is None:
            self.cache.invalidate_list()
        return result, error

    def update(
        self,
        task_id: str,
        *,
        status: str | None = None,
        priority: str | int | None = None,
        description: str | None = None,
    ) -> InvokeResult:
        err = validate_id(task_id)
        if err:
            return None, err
        args = [str(task_id), *_flag_args(status=status, priority=priority, description=description)]
        result, error = self.invoker.invoke("update", args)
        if error is None:
            self._invalidate_task(str(task_id))
        return result, error

    def update_incremental(self, task_id: str, **changed: Any) -> InvokeResult:
        """
        Update only the changed fields, then seed the detail slot with the
        returned task instead of forcing a refetch on the next show().
        """
        result, error = self.update(task_id, **changed)
        if error is None and result is not None:
            self.cache.put(str(task_id), result)
        return result, error

    def close(self, task_id: str) -> InvokeResult:
        err = validate_id(task_id)
        if err:
            return None, err
        result, error = self.invoker.invoke("close", [str(task_id)])
        if error is None:
            self._invalidate_task(str(task_id))
        return result, error

    def delete(self, task_id: str, *, force: bool = True) -> InvokeResult:
        err = validate_id(task_id)
        if err:
            return None, err
        args = [str(task_id)] + (["--force"] if force else [])
        result, error = self.invoker.invoke("delete", args)
        if error is None:
            self._invalidate_task(str(task_id))
        return result, error

    def sync(self) -> InvokeResult:
        result, error = self.invoker.invoke("sync", [])
        if error is None:
            # Remote changes are arbitrary: nothing cached can be trusted.
            self.cache.invalidate_all()
            logger.info("Sync succeeded; cache cleared")
        return result, error

    def _invalidate_task(self, task_id: str) -> None:
        self.cache.invalidate_list()
        self.cache.invalidate(task_id)
