# src/beads_ops/bd/invoker.py

from __future__ import annotations

"""
bd subprocess invoker.

Runs one `bd` command per call and returns (payload, error):
- payload is the parsed JSON output, or the raw text when it is not JSON
- expected failures (missing binary, timeout, non-zero exit, empty output)
  come back as an error string instead of an exception
"""

import json
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Any

from ..core.ports import InvokeResult

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Beads CLI not found. Please install 'bd' or ensure it's in your PATH"


class CommandError(Exception):
    """A bd command returned an error (raised by callers that want failure as an exception)."""

    def __init__(self, message: str, *, command: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.command = command


def parse_output(output: str) -> Any:
    """Parse bd output as JSON; fall back to the stripped raw text."""
    text = output.strip()
    try:
        return json.loads(text)
    except ValueError:
        return text


class BdInvoker:
    """Invoker backed by the `bd` executable."""

    def __init__(
        self,
        *,
        binary: str = "bd",
        timeout: float = 30.0,
        cwd: str | Path | None = None,
    ) -> None:
        self.binary = binary
        self.timeout = float(timeout)
        self.cwd = Path(cwd) if cwd is not None else None

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None

    def invoke(self, command: str, args: list[str]) -> InvokeResult:
        if not self.is_available():
            logger.warning("bd binary not found: %s", self.binary)
            return None, NOT_FOUND_MESSAGE

        argv = [self.binary, *command.split(), *[str(a) for a in args]]
        cmd_str = " ".join(argv)
        logger.debug("Executing command: %s", cmd_str)

        try:
            proc = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                cwd=str(self.cwd) if self.cwd is not None else None,
            )
        except subprocess.TimeoutExpired:
            logger.warning("bd command timed out after %.1fs: %s", self.timeout, cmd_str)
            return None, f"Command timed out after {self.timeout:g} seconds"
        except OSError as e:
            logger.warning("bd command could not be started: %s (%s)", cmd_str, e)
            return None, f"Failed to run command: {command} ({e})"

        if proc.returncode != 0:
            detail = proc.stderr.strip() or proc.stdout.strip() or "unknown error"
            logger.warning("bd command failed: %s (exit=%d, stderr=%s)", cmd_str, proc.returncode, detail)
            return None, f"bd {command} failed (exit={proc.returncode}): {detail}"

        if not proc.stdout.strip():
            return None, "No output from command"

        logger.debug("Command succeeded: %s", cmd_str)
        return parse_output(proc.stdout), None
