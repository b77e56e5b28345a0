# src/beads_ops/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The scheduler and cache depend on Protocols instead of concrete implementations.
This keeps the bd subprocess and the user-facing notification sink swappable
and makes testing easier.
"""

from typing import Any, Literal, Protocol

InvokeResult = tuple[Any | None, str | None]
# (payload, error): exactly one side is meaningful. Expected failures are
# returned as an error string, never raised.

NotifyLevel = Literal["info", "warn", "error"]


class Invoker(Protocol):
    """Synchronous command runner (the `bd` CLI in production)."""

    def invoke(self, command: str, args: list[str]) -> InvokeResult: ...


class Notifier(Protocol):
    """
    Toast-style sink for user-visible messages.

    Fire-and-forget: implementations must not raise and return nothing.
    """

    def notify(self, message: str, level: NotifyLevel = "info") -> None: ...
