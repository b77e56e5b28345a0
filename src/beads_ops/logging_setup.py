# src/beads_ops/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

BD_LOGGER = "beads_ops.bd"
MAIN_LOG = "beads.log"
TRACE_LOG = "bd.log"
MAX_BYTES = 1_000_000
BACKUP_COUNT = 3


def _is_bd(name: str) -> bool:
    return name == BD_LOGGER or name.startswith(BD_LOGGER + ".")


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console rules for the REPL:
    - bd invocations and cache hits stay out of the prompt unless ERROR+
      (failures already reach the user through the notifier)
    - asyncio only at WARNING+
    - captured Python warnings and any other library only at ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if _is_bd(name):
            return record.levelno >= logging.ERROR
        if name.startswith("beads_ops.cache."):
            return record.levelno >= logging.INFO
        if name.startswith("beads_ops."):
            return True
        if name.startswith("asyncio"):
            return record.levelno >= logging.WARNING
        return record.levelno >= logging.ERROR


class _CommandTraceFilter(logging.Filter):
    """Only bd command records (invocations, exit codes, cache hits/misses)."""

    def filter(self, record: logging.LogRecord) -> bool:
        return _is_bd(record.name)


def _rotating(path: Path, level: int, fmt: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(fmt)
    return handler


def setup_logging(
    *,
    log_dir: str | Path = ".local/beads-ops",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    trace_commands: bool = True,
) -> None:
    """
    Configure root logging:
    - stderr: filtered so the REPL stays readable
    - <log_dir>/beads.log: everything at file_level, rotated at 1 MB
    - <log_dir>/bd.log: every bd invocation at DEBUG (trace_commands=True)

    Replaces whatever handlers the root logger had.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    root.addHandler(_rotating(log_dir / MAIN_LOG, file_level, fmt))

    if trace_commands:
        trace = _rotating(log_dir / TRACE_LOG, logging.DEBUG, logging.Formatter("%(asctime)s %(message)s"))
        trace.addFilter(_CommandTraceFilter())
        root.addHandler(trace)

    logging.captureWarnings(True)
