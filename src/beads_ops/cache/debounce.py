# src/beads_ops/cache/debounce.py

from __future__ import annotations

"""
Call-rate limiting on the asyncio event loop.

- debounce(fn, delay): every call restarts the timer; fn runs once, `delay`
  seconds after the last call, with the last call's arguments
- throttle(fn, delay): fn runs immediately unless it already ran within the
  last `delay` seconds; suppressed calls are dropped, not deferred
- DebounceRegistry: named debouncers that can be cancelled one by one or all
  at once (flush_all drops pending calls without running them)

Debounced calls must be made from the event loop thread.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_DELAY = 0.3


class Debounced:
    def __init__(self, fn: Callable[..., Any], delay: float = DEFAULT_DELAY, *, name: str | None = None) -> None:
        self.fn = fn
        self.delay = max(0.0, float(delay))
        self.name = name or getattr(fn, "__name__", "debounced")
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire, args, kwargs)

    def _fire(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        self._handle = None
        try:
            self.fn(*args, **kwargs)
        except Exception:
            logger.exception("debounced call failed name=%s", self.name)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class Throttled:
    def __init__(
        self,
        fn: Callable[..., Any],
        delay: float = DEFAULT_DELAY,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.fn = fn
        self.delay = max(0.0, float(delay))
        self._clock = clock
        self._last: float | None = None

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        """Run fn and return its result, or return None when throttled."""
        now = self._clock()
        if self._last is not None and now - self._last < self.delay:
            return None
        self._last = now
        return self.fn(*args, **kwargs)


def debounce(fn: Callable[..., Any], delay: float = DEFAULT_DELAY) -> Debounced:
    return Debounced(fn, delay)


def throttle(
    fn: Callable[..., Any],
    delay: float = DEFAULT_DELAY,
    *,
    clock: Callable[[], float] = time.monotonic,
) -> Throttled:
    return Throttled(fn, delay, clock=clock)


class DebounceRegistry:
    """Named debouncers; registering a name again replaces (and cancels) the old one."""

    def __init__(self) -> None:
        self._debouncers: dict[str, Debounced] = {}

    def register(self, name: str, fn: Callable[..., Any], delay: float = DEFAULT_DELAY) -> Debounced:
        self.cancel(name)
        debounced = Debounced(fn, delay, name=name)
        self._debouncers[name] = debounced
        return debounced

    def cancel(self, name: str) -> None:
        debounced = self._debouncers.get(name)
        if debounced is not None:
            debounced.cancel()

    def pending(self) -> list[str]:
        return [name for name, d in self._debouncers.items() if d.pending]

    def flush_all(self) -> None:
        """Drop every pending call without running it."""
        dropped = self.pending()
        for debounced in self._debouncers.values():
            debounced.cancel()
        if dropped:
            logger.debug("Dropped pending debounced calls: %s", ", ".join(dropped))
