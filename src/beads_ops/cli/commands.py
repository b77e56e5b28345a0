# src/beads_ops/cli/commands.py

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from typing import Any, cast

from ..core.state import AppState
from ..ops import api
from ..ops.scheduler import OperationScheduler

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], "str | Awaitable[str]"]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], "str | Awaitable[str]"]
CommandHandler = CommandHandler2 | CommandHandler3


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /ready, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        Handlers may be plain functions or coroutines.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        if nparams >= 3:
            reply: Any = cast(CommandHandler3, handler)(state, args, emit)
        else:
            reply = cast(CommandHandler2, handler)(state, args)

        if inspect.isawaitable(reply):
            reply = await reply
        return reply

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def format_tasks(payload: Any) -> str:
    """Best-effort rendering of a bd payload (list of tasks, one task, or text)."""
    if isinstance(payload, dict):
        payload = [payload]
    if not isinstance(payload, list):
        return str(payload)
    if not payload:
        return "(no tasks)"
    lines = []
    for item in payload:
        if isinstance(item, dict):
            tid = item.get("id", "?")
            status = item.get("status", "")
            title = item.get("title", "")
            lines.append(f"  {tid} [{status}] {title}".rstrip())
        else:
            lines.append(f"  {item}")
    return "\n".join(lines)


def _reporter(emit: CommandEmitter | None, label: str) -> Callable[[bool, Any], None] | None:
    if emit is None:
        return None

    def _on_complete(success: bool, result: Any) -> None:
        if success:
            emit(f"{label}:\n{format_tasks(result)}")
        else:
            emit(f"{label} failed: {result}")

    return _on_complete


def _started(scheduler: OperationScheduler, op_id: str) -> str:
    status = scheduler.get_status(op_id)
    label = status.status.value if status else "unknown"
    return f"{op_id} {label}"


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_ready(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    op_id = api.ready(state.scheduler, state.client, _reporter(emit, "Ready tasks"))
    return _started(state.scheduler, op_id)


def cmd_show(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /show ID"
    op_id = api.show(state.scheduler, state.client, args[0], _reporter(emit, f"Task {args[0]}"))
    return _started(state.scheduler, op_id)


def cmd_create(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    title = " ".join(args).strip()
    if not title:
        return "Usage: /create TITLE"
    op_id = api.create(state.scheduler, state.client, title, _reporter(emit, "Created"))
    return _started(state.scheduler, op_id)


def cmd_close(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /close ID"
    op_id = api.close(state.scheduler, state.client, args[0], _reporter(emit, f"Closed {args[0]}"))
    return _started(state.scheduler, op_id)


def cmd_delete(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /delete ID"
    op_id = api.delete(state.scheduler, state.client, args[0], _reporter(emit, f"Deleted {args[0]}"))
    return _started(state.scheduler, op_id)


def cmd_sync(state: AppState, args: list[str]) -> str:
    """
    /sync        -> queue a sync now
    /sync later  -> debounced request; repeated requests collapse into one sync
    """
    if args and args[0].lower() == "later":
        state.sync.request_sync()
        return "Sync requested."
    op_id = api.sync(state.sync)
    return _started(state.scheduler, op_id)


def cmd_ops(state: AppState, args: list[str]) -> str:
    """
    /ops        -> counts, running and queued operations
    /ops clear  -> drop completed/failed history
    """
    sched = state.scheduler
    if args and args[0].lower() == "clear":
        sched.clear_history()
        return "Operation history cleared."

    stats = sched.get_stats()
    lines = [
        f"Operations: active={stats['active']} completed={stats['completed']} "
        f"failed={stats['failed']} queued={sched.get_queue_size()}"
    ]
    for op_id in sched.get_active():
        lines.append(f"  {op_id} {state.progress.display(op_id)} ({sched.get_elapsed(op_id):.1f}s)")
    for op_id in sched.get_queued():
        lines.append(f"  {op_id} (queued)")
    return "\n".join(lines)


async def cmd_wait(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /wait ID [SECONDS]"
    timeout = None
    if len(args) > 1:
        try:
            timeout = float(args[1])
        except ValueError:
            return "SECONDS must be a number."
    ok, result = await state.scheduler.wait(args[0], timeout)
    if ok:
        return f"{args[0]} completed:\n{format_tasks(result)}"
    return f"{args[0]}: {result}"


def cmd_cancel(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /cancel ID"
    state.scheduler.cancel(args[0])
    return _started(state.scheduler, args[0])


def cmd_retry(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /retry ID"
    new_id = state.scheduler.retry(args[0])
    if new_id is None:
        return f"Cannot retry {args[0]}."
    return f"Retrying {args[0]} as {new_id}."


def cmd_cache(state: AppState, args: list[str]) -> str:
    """
    /cache          -> hit/miss stats
    /cache on|off   -> enable/disable (disabling clears)
    /cache clear    -> drop entries and counters
    /cache ttl N    -> set TTL in seconds
    """
    cache = state.cache
    sub = args[0].lower() if args else "stats"

    if sub == "stats":
        mode = "ON" if cache.enabled else "OFF"
        return f"Cache {mode} ttl={cache.ttl:g}s {cache.format_stats()}"
    if sub in ("on", "off"):
        cache.set_enabled(sub == "on")
        return f"Cache {sub.upper()}."
    if sub == "clear":
        cache.clear()
        return "Cache cleared."
    if sub == "ttl":
        if len(args) < 2:
            return "Usage: /cache ttl SECONDS"
        try:
            cache.set_ttl(float(args[1]))
        except ValueError:
            return "SECONDS must be a number."
        return f"Cache TTL set to {cache.ttl:g}s."
    return "Usage: /cache [stats|on|off|clear|ttl N]"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("ready", cmd_ready, help_text="List ready tasks.", aliases=["r"])
registry.register("show", cmd_show, help_text="Show one task: /show ID.")
registry.register("create", cmd_create, help_text="Create a task: /create TITLE.")
registry.register("close", cmd_close, help_text="Close a task: /close ID.")
registry.register("delete", cmd_delete, help_text="Delete a task: /delete ID.")
registry.register("sync", cmd_sync, help_text="Sync with the remote (clears the cache): /sync [later].")
registry.register("ops", cmd_ops, help_text="Operation status: /ops | /ops clear.")
registry.register("wait", cmd_wait, help_text="Wait for an operation: /wait ID [SECONDS].")
registry.register("cancel", cmd_cancel, help_text="Cancel a running operation: /cancel ID.")
registry.register("retry", cmd_retry, help_text="Retry a finished operation: /retry ID.")
registry.register("cache", cmd_cache, help_text="Cache control: /cache [stats|on|off|clear|ttl N].")
